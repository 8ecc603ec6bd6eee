from __future__ import annotations


class NotFoundError(Exception):
    """Raised when a lookup by id finds no row."""

    def __init__(self, entity_kind: str, entity_id: str) -> None:
        self.entity_kind = entity_kind
        self.entity_id = entity_id
        super().__init__(f"{entity_kind} '{entity_id}' not found")
