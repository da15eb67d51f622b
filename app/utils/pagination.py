"""
Pagination utilities for list endpoints
"""
from typing import Any, Callable, Generic, TypeVar, List, Optional, Tuple
from pydantic import BaseModel, ConfigDict
from sqlalchemy.orm import Query
from math import ceil

from app.core.config import settings

T = TypeVar('T')


class PaginatedResponse(BaseModel, Generic[T]):
    """Paginated response model"""
    items: List[T]
    total: int
    page: int
    page_size: int
    total_pages: int
    has_next: bool
    has_prev: bool

    model_config = ConfigDict(from_attributes=True)


def normalize_page(page: int, page_size: int) -> Tuple[int, int]:
    """Clamp page and page_size to the configured bounds"""
    if page_size > settings.MAX_PAGE_SIZE:
        page_size = settings.MAX_PAGE_SIZE
    if page_size < 1:
        page_size = settings.DEFAULT_PAGE_SIZE
    if page < 1:
        page = 1
    return page, page_size


def paginate_query(
    query: Query,
    page: int = 1,
    page_size: int = settings.DEFAULT_PAGE_SIZE,
    transform: Optional[Callable[[Any], Any]] = None
) -> PaginatedResponse:
    """
    Paginate a SQLAlchemy query

    Args:
        query: SQLAlchemy query object (already ordered)
        page: Page number (1-indexed)
        page_size: Number of items per page
        transform: Optional function applied to each row, e.g. Schema.model_validate

    Returns:
        PaginatedResponse
    """
    page, page_size = normalize_page(page, page_size)

    total = query.count()
    total_pages = ceil(total / page_size) if total > 0 else 0
    offset = (page - 1) * page_size

    items = query.offset(offset).limit(page_size).all()
    if transform:
        items = [transform(item) for item in items]

    return PaginatedResponse(
        items=items,
        total=total,
        page=page,
        page_size=page_size,
        total_pages=total_pages,
        has_next=page < total_pages,
        has_prev=page > 1
    )


def paginate_list(
    items: List[T],
    page: int = 1,
    page_size: int = settings.DEFAULT_PAGE_SIZE
) -> PaginatedResponse[T]:
    """Paginate an in-memory list (CMS results)"""
    page, page_size = normalize_page(page, page_size)

    total = len(items)
    total_pages = ceil(total / page_size) if total > 0 else 0
    offset = (page - 1) * page_size

    return PaginatedResponse(
        items=items[offset:offset + page_size],
        total=total,
        page=page,
        page_size=page_size,
        total_pages=total_pages,
        has_next=page < total_pages,
        has_prev=page > 1
    )
