"""Pagination helpers for list endpoints."""

from typing import Generic, TypeVar

from pydantic import BaseModel

T = TypeVar("T")


class Page(BaseModel, Generic[T]):
    items: list[T]
    limit: int
    offset: int
    total: int | None = None


def paginate(limit: int, offset: int, max_limit: int = 200) -> tuple[int, int]:
    """Clamp limit/offset; return (limit, offset)."""
    limit = max(1, min(limit, max_limit))
    offset = max(0, offset)
    return limit, offset


def slice_page(items: list[T], limit: int, offset: int) -> Page[T]:
    """Cut one page out of an already ordered in-memory list."""
    limit, offset = paginate(limit, offset)
    return Page(items=items[offset:offset + limit], limit=limit, offset=offset, total=len(items))
