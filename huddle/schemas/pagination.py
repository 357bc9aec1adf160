"""
Generic page wrapper for list endpoints (group listings, flat comment lists).
"""
from __future__ import annotations

import math
from collections.abc import Sequence
from typing import Generic, TypeVar

from pydantic import BaseModel, computed_field

T = TypeVar("T")


class PaginatedResponse(BaseModel, Generic[T]):

    items: list[T]
    total: int
    page: int
    size: int

    @computed_field  # type: ignore[misc]
    @property
    def pages(self) -> int:
        if self.size == 0:
            return 0
        return math.ceil(self.total / self.size)

    @classmethod
    def slice(cls, rows: Sequence[T], *, page: int, size: int) -> "PaginatedResponse[T]":
        """Page over an already materialised, ordered sequence."""
        start = (page - 1) * size
        return cls(items=list(rows[start:start + size]), total=len(rows), page=page, size=size)

    model_config = {"from_attributes": True}
