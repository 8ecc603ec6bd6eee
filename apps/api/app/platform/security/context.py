from __future__ import annotations

from dataclasses import dataclass


@dataclass(slots=True, frozen=True)
class AuthContext:
    """Identity used by role scoping."""

    user_id: str
    role: str
    correlation_id: str | None = None
