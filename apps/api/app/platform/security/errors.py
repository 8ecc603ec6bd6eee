from __future__ import annotations


class AuthorizationError(Exception):
    """Base authorization error for role scoping failures."""


class InvalidRoleError(AuthorizationError):
    """Raised when an identity carries a role outside the recognized set."""

    def __init__(self, role: str | None) -> None:
        self.role = role
        super().__init__(f"Unrecognized role '{role}'")
