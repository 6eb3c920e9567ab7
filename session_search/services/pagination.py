"""Offset/limit pagination over fully materialised, sorted results."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Generic, Sequence, TypeVar

T = TypeVar("T")


@dataclass(frozen=True)
class Page(Generic[T]):
    items: list[T]
    total: int
    has_more: bool


def paginate(items: Sequence[T], offset: int, limit: int) -> Page[T]:
    offset = max(0, offset)
    limit = max(0, limit)
    total = len(items)
    return Page(
        items=list(items[offset:offset + limit]),
        total=total,
        has_more=offset + limit < total,
    )


def clamp_limit(limit: int, maximum: int, minimum: int = 1) -> int:
    return min(max(minimum, limit), maximum)
