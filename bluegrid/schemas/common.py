"""Common Pydantic response schemas.

Pagination wrapper and generic message responses shared across routers.
"""

from typing import Any
from pydantic import BaseModel


class PaginatedResponse(BaseModel):
    """Paginated response wrapper schema.

    Attributes:
        items: List of result items
        total: Total count across all pages
        page: Current page number, 1-based
        per_page: Items per page
    """

    items: list[Any]
    total: int
    page: int
    per_page: int


class MessageResponse(BaseModel):
    """Generic message response for deletes and other confirmations."""

    message: str
