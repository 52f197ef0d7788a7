# src/squashrank/schemas/pagination.py

"""Pagination schemas for list responses."""

from typing import Generic, TypeVar

from pydantic import BaseModel, Field

T = TypeVar("T")


class PaginatedResponse(BaseModel, Generic[T]):
    """Standard paginated response wrapper.

    Attributes:
        items: List of items for the current page
        total: Total number of records matching the filters
        skip: Number of records skipped
        limit: Maximum number of records returned
        has_more: Whether more records exist beyond this page
    """

    items: list[T]
    total: int = Field(..., description="Total records matching filters")
    skip: int = Field(..., description="Records skipped")
    limit: int = Field(..., description="Max records returned")
    has_more: bool = Field(..., description="More records exist beyond this page")

    @classmethod
    def build(cls, items: list, total: int, skip: int, limit: int):
        return cls(
            items=items,
            total=total,
            skip=skip,
            limit=limit,
            has_more=(skip + len(items)) < total,
        )
