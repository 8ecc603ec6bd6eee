from __future__ import annotations

import logging
import time

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

from app.metrics import observe_http_request, resolve_http_path_label


logger = logging.getLogger("app.request")


def _record_request(request: Request, *, status_code: int, started: float, failed: bool = False) -> None:
    duration = time.perf_counter() - started
    # Resolved after the call so the matched route template is available.
    path = resolve_http_path_label(request)
    observe_http_request(method=request.method, path=path, status=status_code, duration=duration)

    fields: dict[str, object] = {
        "method": request.method,
        "path": path,
        "status_code": status_code,
        "duration_ms": round(duration * 1000, 2),
    }
    context = getattr(request.state, "context", None)
    if context is not None:
        fields.update(context.log_fields())

    if failed:
        logger.error("http.error", exc_info=True, extra=fields)
    else:
        logger.info("http.request", extra=fields)


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):  # type: ignore[no-untyped-def]
        started = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception:
            _record_request(request, status_code=500, started=started, failed=True)
            raise
        _record_request(request, status_code=response.status_code, started=started)
        return response
