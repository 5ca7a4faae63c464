import math
from typing import Generic, List, Optional, TypeVar

from fastapi import Query
from pydantic import BaseModel

T = TypeVar("T")

MAX_PAGE_SIZE = 100


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    totalPages: int
    hasNext: bool
    hasPrev: bool


class ApiResponse(BaseModel, Generic[T]):
    """Envelope returned by every endpoint."""

    success: bool = True
    message: str = ""
    data: Optional[T] = None
    pagination: Optional[Pagination] = None
    error: Optional[str] = None


class PageParams:
    """`page` / `limit` query parameters shared by list endpoints."""

    def __init__(
        self,
        page: int = Query(1, ge=1, description="Page number, starting at 1"),
        limit: int = Query(10, ge=1, le=MAX_PAGE_SIZE, description="Items per page"),
    ):
        self.page = page
        self.limit = limit

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit


def build_pagination(page: int, limit: int, total: int) -> Pagination:
    total_pages = math.ceil(total / limit) if total else 0
    return Pagination(
        page=page,
        limit=limit,
        total=total,
        totalPages=total_pages,
        hasNext=page < total_pages,
        hasPrev=page > 1,
    )


def ok(data=None, message: str = "Success") -> ApiResponse:
    return ApiResponse(success=True, message=message, data=data)


def paginated(items: List, params: PageParams, total: int, message: str = "Success") -> ApiResponse:
    return ApiResponse(
        success=True,
        message=message,
        data=items,
        pagination=build_pagination(params.page, params.limit, total),
    )
