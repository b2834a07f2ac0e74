from __future__ import annotations

import math
from typing import Any, Generic, TypeVar

from pydantic import BaseModel, Field

T = TypeVar("T")


class ApiResponse(BaseModel, Generic[T]):
    """Envelope shared by every endpoint, success or failure."""

    success: bool = True
    data: T | None = None
    message: str | None = None


class Pagination(BaseModel):
    current_page: int
    per_page: int
    total_count: int
    total_pages: int
    has_next_page: bool
    has_prev_page: bool

    @classmethod
    def build(cls, *, page: int, per_page: int, total: int) -> "Pagination":
        total_pages = max(1, math.ceil(total / per_page)) if per_page else 1
        return cls(
            current_page=page,
            per_page=per_page,
            total_count=total,
            total_pages=total_pages,
            has_next_page=page < total_pages,
            has_prev_page=page > 1,
        )


class ContributorList(BaseModel):
    contributors: list[str] = Field(default_factory=list)


def ok(data: Any = None, message: str | None = None) -> dict[str, Any]:
    return {"success": True, "data": data, "message": message}


def fail(message: str, data: Any = None) -> dict[str, Any]:
    return {"success": False, "data": data, "message": message}
