from typing import Generic, List, Optional, TypeVar

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

T = TypeVar("T")


class CamelModel(BaseModel):
    """Snake_case in Python, camelCase on the wire. Either spelling is accepted on input."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


class ApiResponse(CamelModel, Generic[T]):
    """Envelope for single-object responses: {success, message?, data?}."""

    success: bool = True
    message: Optional[str] = None
    data: Optional[T] = None


class PageLink(CamelModel):
    page: int
    limit: int


class Pagination(CamelModel):
    prev: Optional[PageLink] = None
    next: Optional[PageLink] = None


class ApiListResponse(CamelModel, Generic[T]):
    """Envelope for list responses: {success, count, total?, pagination?, data}."""

    success: bool = True
    count: int
    total: Optional[int] = None
    pagination: Optional[Pagination] = None
    data: List[T]
