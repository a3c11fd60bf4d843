from typing import Optional

from pydantic import ConfigDict, Field

from timetracker.schemas.common import CamelModel, UtcDatetime


class ProcessCreateRequest(CamelModel):
    name: str = Field(min_length=2, max_length=200)
    description: Optional[str] = Field(default=None, max_length=1000)
    category: Optional[str] = Field(default=None, max_length=100)


class ProcessUpdateRequest(CamelModel):
    model_config = ConfigDict(extra="forbid")

    name: Optional[str] = Field(default=None, min_length=2, max_length=200)
    description: Optional[str] = Field(default=None, max_length=1000)
    category: Optional[str] = Field(default=None, max_length=100)
    is_active: Optional[bool] = None


class ActivityCreateRequest(CamelModel):
    name: str = Field(min_length=2, max_length=200)
    description: Optional[str] = Field(default=None, max_length=1000)


class ActivityUpdateRequest(CamelModel):
    model_config = ConfigDict(extra="forbid")

    name: Optional[str] = Field(default=None, min_length=2, max_length=200)
    description: Optional[str] = Field(default=None, max_length=1000)
    is_active: Optional[bool] = None


class ActivityResponse(CamelModel):
    id: str
    process_id: str
    name: str
    description: Optional[str] = None
    is_active: bool
    created_at: Optional[UtcDatetime] = None


class ProcessResponse(CamelModel):
    id: str
    name: str
    description: Optional[str] = None
    category: Optional[str] = None
    is_active: bool
    created_at: Optional[UtcDatetime] = None
    activities: list[ActivityResponse] = []


class ActivityData(CamelModel):
    activity: ActivityResponse


class ProcessData(CamelModel):
    process: ProcessResponse


class ProcessListData(CamelModel):
    processes: list[ProcessResponse]
