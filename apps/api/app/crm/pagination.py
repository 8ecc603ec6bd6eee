from __future__ import annotations

import math
from collections.abc import Sequence
from dataclasses import dataclass
from typing import TypeVar

from app.crm.schemas import PaginatedResponse


T = TypeVar("T")

# OFFSET is bound as a signed 64-bit integer by both Postgres and sqlite.
MAX_OFFSET = 2**63 - 1


@dataclass(frozen=True, slots=True)
class PageRequest:
    page: int
    page_size: int

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.page_size


def _positive_int(raw: str | int | None) -> int | None:
    if raw is None:
        return None
    if isinstance(raw, int):
        value = raw
    else:
        text = raw.strip()
        # isdigit() also accepts non-ASCII digits such as "²" that int() rejects.
        if not (text.isascii() and text.isdigit()):
            return None
        text = text.lstrip("0") or "0"
        # Anything wider than MAX_OFFSET is clamped by the caller anyway.
        value = int(text) if len(text) <= len(str(MAX_OFFSET)) else MAX_OFFSET
    return value if value >= 1 else None


def parse_pagination(
    page: str | int | None,
    page_size: str | int | None,
    *,
    default_page_size: int,
    max_page_size: int,
) -> PageRequest:
    """Clamp raw query values into a valid page window.

    Malformed or non-positive values fall back to the defaults instead of
    failing the request; oversized pages are capped at ``max_page_size`` and
    page numbers are capped so the row offset stays within ``MAX_OFFSET``.
    """

    resolved_size = min(_positive_int(page_size) or default_page_size, max_page_size)
    resolved_page = min(_positive_int(page) or 1, MAX_OFFSET // resolved_size + 1)
    return PageRequest(page=resolved_page, page_size=resolved_size)


def build_paginated_response(
    data: Sequence[T],
    total: int,
    page_request: PageRequest,
) -> PaginatedResponse[T]:
    return PaginatedResponse(
        data=list(data),
        total=total,
        page=page_request.page,
        page_size=page_request.page_size,
        total_pages=math.ceil(total / page_request.page_size) if total else 0,
    )
