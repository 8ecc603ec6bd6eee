from dataclasses import dataclass, field

from jose import JWTError, jwt
from starlette.requests import Request

from app.context import bind_actor
from app.core.config import get_settings


ANONYMOUS_SUBJECT = "anonymous"


@dataclass
class AuthUser:
    sub: str
    role: str | None
    permissions: list[str] = field(default_factory=list)

    @property
    def is_authenticated(self) -> bool:
        return self.sub != ANONYMOUS_SUBJECT


def _resolve_role(payload: dict) -> str | None:
    role = payload.get("role")
    if isinstance(role, str) and role:
        return role
    roles = payload.get("roles")
    if isinstance(roles, list) and roles:
        return str(roles[0])
    return None


async def get_current_user(request: Request) -> AuthUser:
    auth_header = request.headers.get("authorization", "")
    token = auth_header.replace("Bearer ", "") if auth_header.startswith("Bearer ") else ""

    if not token:
        return AuthUser(sub=ANONYMOUS_SUBJECT, role=None)

    settings = get_settings()
    try:
        payload = jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    except JWTError:
        return AuthUser(sub=ANONYMOUS_SUBJECT, role=None)

    subject = str(payload.get("sub") or ANONYMOUS_SUBJECT)
    role = _resolve_role(payload)
    permissions = payload.get("permissions", [])
    if not isinstance(permissions, list):
        permissions = []
    bind_actor(subject, role)
    context = getattr(request.state, "context", None)
    if context is not None:
        context.user_id = subject
        context.role = role
    return AuthUser(sub=subject, role=role, permissions=[str(item) for item in permissions])
