from typing import Optional

from pydantic import ConfigDict, Field

from timetracker.schemas.common import CamelModel, PaginationInfo, UtcDatetime


class BreakResponse(CamelModel):
    start_time: UtcDatetime
    end_time: Optional[UtcDatetime] = None
    reason: Optional[str] = None


class TimeEntryResponse(CamelModel):
    id: str
    user_id: str
    organization_id: str
    organization_name: Optional[str] = None
    customer_id: str
    customer_name: Optional[str] = None
    process_id: str
    process_name: Optional[str] = None
    activity_id: str
    activity_name: Optional[str] = None
    project_name: Optional[str] = None
    task_name: str
    description: Optional[str] = None
    notes: Optional[str] = None
    start_time: UtcDatetime
    end_time: Optional[UtcDatetime] = None
    duration_minutes: Optional[int] = None
    is_manual: bool
    status: str
    breaks: list[BreakResponse] = []
    created_at: Optional[UtcDatetime] = None
    updated_at: Optional[UtcDatetime] = None


class TimerStartRequest(CamelModel):
    organization_id: str = Field(min_length=1)
    customer_id: str = Field(min_length=1)
    process_id: str = Field(min_length=1)
    activity_id: str = Field(min_length=1)
    task_name: str = Field(min_length=2, max_length=300)
    description: Optional[str] = Field(default=None, max_length=1000)


class TimerStopRequest(CamelModel):
    description: Optional[str] = Field(default=None, max_length=1000)


class BreakStartRequest(CamelModel):
    reason: str = Field(default="Break", min_length=1, max_length=200)


class ManualEntryRequest(TimerStartRequest):
    start_time: UtcDatetime
    end_time: UtcDatetime
    notes: Optional[str] = Field(default=None, max_length=2000)


class TimeEntryUpdateRequest(CamelModel):
    model_config = ConfigDict(extra="forbid")

    task_name: Optional[str] = Field(default=None, min_length=2, max_length=300)
    description: Optional[str] = Field(default=None, max_length=1000)
    notes: Optional[str] = Field(default=None, max_length=2000)
    start_time: Optional[UtcDatetime] = None
    end_time: Optional[UtcDatetime] = None


class TimeEntryData(CamelModel):
    time_entry: TimeEntryResponse


class ActiveTimerData(CamelModel):
    active_timer: Optional[TimeEntryResponse] = None


class TimeEntryListData(CamelModel):
    time_entries: list[TimeEntryResponse]
    pagination: PaginationInfo
