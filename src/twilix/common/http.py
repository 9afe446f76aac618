"""HTTP request utilities."""

from __future__ import annotations

import uuid

import structlog
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response
from starlette.types import ASGIApp

# Twilio sets this on every webhook, retries of one delivery share it
TWILIO_IDEMPOTENCY_HEADER = "I-Twilio-Idempotency-Token"


def public_url(url: str) -> str:
    """Strip the query string so URLs can be logged without webhook parameters."""
    return url.split("?", 1)[0]


def request_id_for(request: Request, header_name: str = "X-Request-ID") -> str:
    """Caller-supplied id, else Twilio's delivery token, else a fresh one."""
    return (
        request.headers.get(header_name)
        or request.headers.get(TWILIO_IDEMPOTENCY_HEADER)
        or uuid.uuid4().hex
    )


class RequestIdMiddleware(BaseHTTPMiddleware):
    """Attach a request id to each request, its response and the log context."""

    def __init__(self, app: ASGIApp, header_name: str = "X-Request-ID") -> None:
        super().__init__(app)
        self._header_name = header_name

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        request_id = request_id_for(request, self._header_name)
        request.state.request_id = request_id
        structlog.contextvars.bind_contextvars(request_id=request_id, path=request.url.path)

        try:
            response = await call_next(request)
            response.headers.setdefault(self._header_name, request_id)
            return response
        finally:
            structlog.contextvars.clear_contextvars()
