"""Webhook receiver - accepts signed Twilio callbacks."""

from collections.abc import Awaitable, Callable
from xml.sax.saxutils import escape

import uvicorn
from pydantic import ValidationError
from starlette.applications import Starlette
from starlette.requests import Request
from starlette.responses import JSONResponse, Response
from starlette.routing import Route

from twilix.common.errors import ErrorCode, error_response
from twilix.common.http import RequestIdMiddleware
from twilix.common.logging import get_logger, setup_logging
from twilix.common.metrics import MetricsMiddleware, metrics_endpoint
from twilix.common.settings import Settings, get_settings
from twilix.security.middleware import TwilioSignatureMiddleware
from twilix.security.signature import MalformedBody, collect_fields
from twilix.webhooks.payloads import SmsWebhook, parse_sms_webhook

logger = get_logger(__name__)

SmsHandler = Callable[[SmsWebhook], Awaitable[str | None]]

TWIML_MEDIA_TYPE = "application/xml"


def twiml_response(reply: str | None = None) -> Response:
    """TwiML document, with a single <Message> when there is a reply."""
    inner = f"<Message>{escape(reply)}</Message>" if reply else ""
    body = f'<?xml version="1.0" encoding="UTF-8"?><Response>{inner}</Response>'
    return Response(body, media_type=TWIML_MEDIA_TYPE)


def create_app(
    settings: Settings | None = None,
    on_sms: SmsHandler | None = None,
) -> Starlette:
    """
    Create the webhook application.

    Args:
        settings: Application settings (defaults to environment)
        on_sms: Coroutine called with each inbound SMS; a returned string is
            sent back as the reply
    """
    settings = settings or get_settings()

    async def health(_request: Request) -> JSONResponse:
        return JSONResponse({"status": "healthy"})

    async def sms(request: Request) -> Response:
        params = getattr(request.state, "twilio_params", None)
        if params is None:
            try:
                params = collect_fields(
                    request.url.query,
                    await request.body(),
                    request.headers.get("content-type", ""),
                )
            except MalformedBody:
                return error_response(ErrorCode.MALFORMED_BODY, "Malformed form body", 400)

        try:
            payload = parse_sms_webhook(params)
        except ValidationError as exc:
            return error_response(
                ErrorCode.INVALID_PAYLOAD,
                "Incomplete SMS webhook",
                400,
                details={"errors": exc.errors(include_url=False, include_input=False)},
            )

        logger.info(
            "Inbound SMS",
            message_sid=payload.message_sid,
            num_media=payload.num_media,
        )

        reply = await on_sms(payload) if on_sms else None
        return twiml_response(reply)

    app = Starlette(
        routes=[
            Route("/health", health, methods=["GET"]),
            Route("/metrics", metrics_endpoint, methods=["GET"]),
            Route("/sms", sms, methods=["POST"]),
        ],
    )
    app.add_middleware(TwilioSignatureMiddleware, settings=settings)
    app.add_middleware(
        MetricsMiddleware,
        exclude_paths=["/health", "/metrics"],
    )
    app.add_middleware(RequestIdMiddleware)

    return app


def main():
    """Entry point for the webhook receiver."""
    settings = get_settings()
    setup_logging(settings.log_level, json_output=settings.log_json)
    app = create_app(settings)

    uvicorn.run(
        app,
        host=settings.webhook_host,
        port=settings.webhook_port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
