from dataclasses import dataclass

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request


@dataclass
class RequestContext:
    request_id: str
    correlation_id: str
    user_id: str | None = None
    role: str | None = None

    @classmethod
    def from_request(cls, request: Request) -> "RequestContext":
        correlation_id = getattr(request.state, "correlation_id", None) or ""
        return cls(
            request_id=request.headers.get("x-request-id") or correlation_id,
            correlation_id=correlation_id,
        )

    def log_fields(self) -> dict[str, str | None]:
        return {"user_id": self.user_id, "role": self.role}


class RequestContextMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):  # type: ignore[no-untyped-def]
        context = RequestContext.from_request(request)
        request.state.context = context
        response = await call_next(request)
        response.headers["x-request-id"] = context.request_id
        return response
