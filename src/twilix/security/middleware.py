"""Signature validation middleware for webhook endpoints."""

from __future__ import annotations

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response
from starlette.types import ASGIApp

from twilix.common.errors import ErrorCode, error_response
from twilix.common.http import public_url
from twilix.common.logging import get_logger
from twilix.common.metrics import record_signature_check
from twilix.common.settings import Settings
from twilix.security.signature import (
    MalformedBody,
    MissingSignatureHeader,
    SignatureCodec,
    collect_fields,
)

logger = get_logger(__name__)


class TwilioSignatureMiddleware(BaseHTTPMiddleware):
    """Rejects webhook requests whose X-Twilio-Signature does not match."""

    def __init__(
        self,
        app: ASGIApp,
        settings: Settings,
        codec: SignatureCodec | None = None,
    ) -> None:
        super().__init__(app)
        self._settings = settings
        self._exempt_paths = set(settings.webhook_exempt_paths)
        self._codec = codec or SignatureCodec(
            settings.auth_token,
            header_name=settings.signature_header,
        )

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        if request.url.path in self._exempt_paths:
            return await call_next(request)

        if not self._settings.webhook_validation_enabled:
            try:
                request.state.twilio_params = collect_fields(
                    request.url.query,
                    await request.body(),
                    request.headers.get("content-type", ""),
                )
            except MalformedBody:
                return error_response(ErrorCode.MALFORMED_BODY, "Malformed form body", 400)
            return await call_next(request)

        base_url = self._settings.webhook_base_url
        if not base_url or not self._settings.auth_token.get_secret_value():
            return error_response(
                ErrorCode.NOT_CONFIGURED,
                "Webhook base URL or auth token not configured",
                500,
            )

        try:
            result = await self._codec.check_request(request, base_url.rstrip("/"))
        except MissingSignatureHeader as exc:
            record_signature_check("missing_header")
            logger.warning("Webhook missing signature header", path=request.url.path)
            return error_response(ErrorCode.MISSING_SIGNATURE, str(exc), 401)
        except MalformedBody as exc:
            record_signature_check("malformed_body")
            logger.warning("Webhook body is not form encoded", path=request.url.path, error=str(exc))
            return error_response(ErrorCode.MALFORMED_BODY, "Malformed form body", 400)

        if not result.valid:
            record_signature_check("invalid")
            logger.warning(
                "Webhook signature mismatch",
                url=public_url(str(request.url)),
            )
            return error_response(ErrorCode.INVALID_SIGNATURE, "Invalid signature", 403)

        record_signature_check("valid")
        request.state.twilio_params = result.fields
        return await call_next(request)
