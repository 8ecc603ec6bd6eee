from __future__ import annotations

import logging
from enum import Enum

from app.metrics import observe_scope_resolution
from app.platform.security.context import AuthContext
from app.platform.security.errors import InvalidRoleError


logger = logging.getLogger("app.security.scoping")


class Role(str, Enum):
    SE = "se"
    SE_MANAGER = "se_manager"
    ADMIN = "admin"


def parse_role(value: str | None) -> Role:
    if value is None:
        raise InvalidRoleError(value)
    try:
        return Role(value.strip().lower())
    except ValueError:
        raise InvalidRoleError(value) from None


def resolve_se_filter(ctx: AuthContext, requested_se_user_id: str | None = None) -> str | None:
    """Derive the effective SE filter for list reads.

    SEs always see their own book, whatever filter the caller sends. Managers
    and admins get the requested SE filter, or no filter at all when none is
    supplied.
    """

    role = parse_role(ctx.role)

    if role is Role.SE:
        if requested_se_user_id and requested_se_user_id != ctx.user_id:
            logger.info(
                "scope.override",
                extra={"user_id": ctx.user_id, "role": role.value},
            )
        observe_scope_resolution(role=role.value, scope="self")
        return ctx.user_id

    requested = (requested_se_user_id or "").strip() or None
    observe_scope_resolution(role=role.value, scope="filtered" if requested else "all")
    return requested
