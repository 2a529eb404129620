from typing import Any, Generic, Optional, TypeVar
from pydantic import BaseModel, Field

DataT = TypeVar("DataT")


class Envelope(BaseModel, Generic[DataT]):
    success: bool = True
    message: Optional[str] = None
    data: DataT


class ErrorEnvelope(BaseModel):
    success: bool = False
    message: str
    error: Optional[Any] = None
    request_id: Optional[str] = None


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    pages: int = Field(..., description="Number of pages at this limit.")

    @classmethod
    def build(cls, page: int, limit: int, total: int) -> "Pagination":
        return cls(page=page, limit=limit, total=total, pages=(total + limit - 1) // limit if limit else 0)


ERROR_RESPONSES = {
    code: {"model": ErrorEnvelope}
    for code in (400, 401, 404, 500)
}
