from datetime import date
from typing import Optional

from pydantic import ConfigDict, Field, computed_field

from timetracker.core.timeutil import format_hours
from timetracker.schemas.common import CamelModel, PaginationInfo, UserSummary, UtcDatetime


class TrackerResponse(CamelModel):
    id: str
    user_id: str
    login_date: date
    first_login_time: UtcDatetime
    day_end_time: Optional[UtcDatetime] = None
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    location: Optional[str] = None
    notes: Optional[str] = None
    total_working_hours: Optional[float] = None

    @computed_field(alias="workingHours")
    @property
    def working_hours(self) -> str:
        return format_hours(self.total_working_hours)


class EndDayRequest(CamelModel):
    notes: Optional[str] = Field(default=None, max_length=1000)
    location: Optional[str] = Field(default=None, max_length=255)


class TrackerUpdateRequest(CamelModel):
    model_config = ConfigDict(extra="forbid")

    notes: Optional[str] = Field(default=None, max_length=1000)
    location: Optional[str] = Field(default=None, max_length=255)


class TodayData(CamelModel):
    tracker: Optional[TrackerResponse] = None
    has_started_day: bool
    can_end_day: bool
    user: Optional[UserSummary] = None


class TrackerData(CamelModel):
    tracker: TrackerResponse


class EndDayData(CamelModel):
    tracker: TrackerResponse
    working_hours: str
    total_hours: Optional[float] = None


class HistorySummary(CamelModel):
    total_days: int
    completed_days: int
    total_working_hours: float
    average_hours_per_day: float


class HistoryData(CamelModel):
    trackers: list[TrackerResponse]
    pagination: PaginationInfo
    summary: HistorySummary
    user: Optional[UserSummary] = None


class TeamMemberStatusResponse(CamelModel):
    has_started_day: bool
    has_ended_day: bool
    first_login_time: Optional[UtcDatetime] = None
    day_end_time: Optional[UtcDatetime] = None
    working_hours: str = "N/A"
    location: Optional[str] = None


class TeamMemberResponse(CamelModel):
    user: UserSummary
    today_status: TeamMemberStatusResponse


class TeamSummary(CamelModel):
    total_users: int
    users_started_today: int
    users_ended_today: int
    users_currently_active: int


class TeamOverviewData(CamelModel):
    login_date: date = Field(alias="date")
    team_overview: list[TeamMemberResponse]
    summary: TeamSummary
