from __future__ import annotations

from contextvars import ContextVar, Token
from dataclasses import dataclass

correlation_id_var: ContextVar[str | None] = ContextVar("correlation_id", default=None)


@dataclass(frozen=True, slots=True)
class BoundActor:
    user_id: str
    role: str | None


actor_var: ContextVar[BoundActor | None] = ContextVar("actor", default=None)


def set_correlation_id(value: str | None) -> Token[str | None]:
    return correlation_id_var.set(value)


def reset_correlation_id(token: Token[str | None]) -> None:
    correlation_id_var.reset(token)


def get_correlation_id() -> str | None:
    return correlation_id_var.get()


def bind_actor(user_id: str, role: str | None) -> Token[BoundActor | None]:
    return actor_var.set(BoundActor(user_id=user_id, role=role))


def get_log_context() -> dict[str, str | None]:
    """Fields stamped on every log record emitted while handling a request."""

    actor = actor_var.get()
    return {
        "correlation_id": get_correlation_id(),
        "user_id": actor.user_id if actor else None,
        "role": actor.role if actor else None,
    }
