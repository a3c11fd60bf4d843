from datetime import datetime
from typing import Annotated, Generic, Optional, TypeVar

from pydantic import AfterValidator, BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from timetracker.core.timeutil import as_utc

T = TypeVar("T")

# Naive values (SQLite round-trips, clients without an offset) are read as UTC.
UtcDatetime = Annotated[datetime, AfterValidator(as_utc)]


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
        str_strip_whitespace=True,
    )


class ApiResponse(CamelModel, Generic[T]):
    success: bool = True
    message: Optional[str] = None
    data: Optional[T] = None


class PaginationInfo(CamelModel):
    current_page: int
    total_pages: int
    total_items: int
    limit: int
    has_next: bool
    has_prev: bool


class UserSummary(CamelModel):
    id: str
    name: str
    email: str
    role: str
