from app.platform.security.context import AuthContext
from app.platform.security.errors import AuthorizationError, InvalidRoleError
from app.platform.security.scoping import Role, parse_role, resolve_se_filter

__all__ = [
    "AuthContext",
    "AuthorizationError",
    "InvalidRoleError",
    "Role",
    "parse_role",
    "resolve_se_filter",
]
