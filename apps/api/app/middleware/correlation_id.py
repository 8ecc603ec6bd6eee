from __future__ import annotations

import re
import uuid
from collections.abc import Mapping

from opentelemetry import trace
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

from app.context import reset_correlation_id, set_correlation_id


CORRELATION_HEADERS = ("x-correlation-id", "x-request-id")
_ACCEPTED_ID_RE = re.compile(r"^[A-Za-z0-9._:\-]{1,128}$")


def resolve_correlation_id(headers: Mapping[str, str]) -> str:
    """First well-formed inbound id wins; otherwise mint a new one.

    Values with whitespace, control characters or over 128 characters are
    ignored so they never reach log lines or response headers.
    """

    for name in CORRELATION_HEADERS:
        value = (headers.get(name) or "").strip()
        if value and _ACCEPTED_ID_RE.match(value):
            return value
    return str(uuid.uuid4())


class CorrelationIdMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):  # type: ignore[no-untyped-def]
        correlation_id = resolve_correlation_id(request.headers)
        request.state.correlation_id = correlation_id
        span = trace.get_current_span()
        if span.is_recording():
            span.set_attribute("correlation_id", correlation_id)

        token = set_correlation_id(correlation_id)
        try:
            response = await call_next(request)
        finally:
            reset_correlation_id(token)

        response.headers["x-correlation-id"] = correlation_id
        return response
