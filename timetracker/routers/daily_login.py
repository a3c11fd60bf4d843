from datetime import date
from typing import Optional

from fastapi import APIRouter, Body, Depends, Query
from sqlalchemy.orm import Session

from timetracker.core.authorization import Role
from timetracker.core.config import Settings
from timetracker.core.pagination import page_request
from timetracker.core.timeutil import format_hours
from timetracker.database import get_db
from timetracker.deps.auth import get_settings, require_auth, require_role
from timetracker.models.user import User
from timetracker.schemas.common import ApiResponse, PaginationInfo, UserSummary
from timetracker.schemas.daily_login import (
    EndDayData,
    EndDayRequest,
    HistoryData,
    HistorySummary,
    TeamMemberResponse,
    TeamMemberStatusResponse,
    TeamOverviewData,
    TeamSummary,
    TodayData,
    TrackerData,
    TrackerResponse,
    TrackerUpdateRequest,
)
from timetracker.services import daily_login_service, user_service

router = APIRouter(prefix="/daily-login", tags=["daily-login"])


def _today_data(tracker, user: Optional[User] = None) -> TodayData:
    return TodayData(
        tracker=TrackerResponse.model_validate(tracker) if tracker else None,
        has_started_day=tracker is not None,
        can_end_day=tracker is not None and tracker.day_end_time is None,
        user=UserSummary.model_validate(user) if user else None,
    )


def _history_data(history, user: Optional[User] = None) -> HistoryData:
    return HistoryData(
        trackers=[TrackerResponse.model_validate(t) for t in history.trackers],
        pagination=PaginationInfo.model_validate(history.page),
        summary=HistorySummary(
            total_days=history.total_days,
            completed_days=history.completed_days,
            total_working_hours=history.total_working_hours,
            average_hours_per_day=history.average_hours_per_day,
        ),
        user=UserSummary.model_validate(user) if user else None,
    )


@router.get("/today", response_model=ApiResponse[TodayData])
def get_today(
    user: User = Depends(require_auth),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    tracker = daily_login_service.get_tracker_for_date(
        db, user_id=user.id, login_date=daily_login_service.today_for(settings)
    )
    return ApiResponse[TodayData](data=_today_data(tracker))


@router.post("/end-day", response_model=ApiResponse[EndDayData])
def end_day(
    payload: Optional[EndDayRequest] = Body(default=None),
    user: User = Depends(require_auth),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    tracker = daily_login_service.end_day(
        db,
        settings,
        user_id=user.id,
        notes=payload.notes if payload else None,
        location=payload.location if payload else None,
    )
    db.commit()
    return ApiResponse[EndDayData](
        message="Day ended successfully",
        data=EndDayData(
            tracker=TrackerResponse.model_validate(tracker),
            working_hours=format_hours(tracker.total_working_hours),
            total_hours=tracker.total_working_hours,
        ),
    )


@router.get("/history", response_model=ApiResponse[HistoryData])
def get_history(
    page: int = Query(default=1, ge=1),
    limit: Optional[int] = Query(default=None, ge=1),
    start_date: Optional[date] = Query(default=None, alias="startDate"),
    end_date: Optional[date] = Query(default=None, alias="endDate"),
    user: User = Depends(require_auth),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    history = daily_login_service.get_user_day_history(
        db,
        user_id=user.id,
        page=page_request(settings, page, limit),
        start_date=start_date,
        end_date=end_date,
    )
    return ApiResponse[HistoryData](data=_history_data(history))


@router.put("/tracker/{tracker_id}", response_model=ApiResponse[TrackerData])
def update_tracker(
    tracker_id: str,
    payload: TrackerUpdateRequest,
    user: User = Depends(require_auth),
    db: Session = Depends(get_db),
):
    tracker = daily_login_service.update_tracker(
        db,
        tracker_id=tracker_id,
        user_id=user.id,
        changes=payload.model_dump(exclude_unset=True),
    )
    db.commit()
    return ApiResponse[TrackerData](
        message="Tracker updated successfully",
        data=TrackerData(tracker=TrackerResponse.model_validate(tracker)),
    )


@router.get("/user/{user_id}/today", response_model=ApiResponse[TodayData])
def get_user_today(
    user_id: str,
    _manager: User = Depends(require_role(Role.MANAGER)),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    target = user_service.get_user(db, user_id)
    tracker = daily_login_service.get_tracker_for_date(
        db, user_id=target.id, login_date=daily_login_service.today_for(settings)
    )
    return ApiResponse[TodayData](data=_today_data(tracker, target))


@router.get("/users/{user_id}/history", response_model=ApiResponse[HistoryData])
def get_user_history(
    user_id: str,
    page: int = Query(default=1, ge=1),
    limit: Optional[int] = Query(default=None, ge=1),
    start_date: Optional[date] = Query(default=None, alias="startDate"),
    end_date: Optional[date] = Query(default=None, alias="endDate"),
    _manager: User = Depends(require_role(Role.MANAGER)),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    target = user_service.get_user(db, user_id)
    history = daily_login_service.get_user_day_history(
        db,
        user_id=target.id,
        page=page_request(settings, page, limit),
        start_date=start_date,
        end_date=end_date,
    )
    return ApiResponse[HistoryData](data=_history_data(history, target))


@router.get("/team-overview", response_model=ApiResponse[TeamOverviewData])
def get_team_overview(
    day: Optional[date] = Query(default=None, alias="date"),
    user: User = Depends(require_auth),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    overview = daily_login_service.get_team_overview(
        db,
        login_date=day or daily_login_service.today_for(settings),
        requester_role=user.role,
    )

    members = []
    for member in overview.members:
        tracker = member.tracker
        members.append(
            TeamMemberResponse(
                user=UserSummary.model_validate(member.user),
                today_status=TeamMemberStatusResponse(
                    has_started_day=member.has_started_day,
                    has_ended_day=member.has_ended_day,
                    first_login_time=tracker.first_login_time if tracker else None,
                    day_end_time=tracker.day_end_time if tracker else None,
                    working_hours=format_hours(tracker.total_working_hours) if tracker else "N/A",
                    location=tracker.location if tracker else None,
                ),
            )
        )

    return ApiResponse[TeamOverviewData](
        data=TeamOverviewData(
            login_date=overview.login_date,
            team_overview=members,
            summary=TeamSummary(
                total_users=len(overview.members),
                users_started_today=overview.users_started,
                users_ended_today=overview.users_ended,
                users_currently_active=overview.users_started - overview.users_ended,
            ),
        )
    )
