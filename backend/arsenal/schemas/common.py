"""
Shared response pieces.
"""

import math

from pydantic import BaseModel, Field


class PageMeta(BaseModel):
    """Pagination fields shared by every list response."""

    total: int = Field(..., ge=0, description="Total matching items")
    page: int = Field(..., ge=1, description="Current page (1-based)")
    limit: int = Field(..., ge=1, description="Page size")
    pages: int = Field(..., ge=0, description="Total number of pages")


def page_count(total: int, limit: int) -> int:
    """Number of pages needed for `total` items."""
    return math.ceil(total / limit) if limit else 0
