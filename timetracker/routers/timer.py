from datetime import date
from typing import Literal, Optional

from fastapi import APIRouter, Body, Depends, Query
from sqlalchemy.orm import Session

from timetracker.core.config import Settings
from timetracker.core.pagination import page_request
from timetracker.database import get_db
from timetracker.deps.auth import get_settings, require_auth
from timetracker.models.user import User
from timetracker.schemas.common import ApiResponse, PaginationInfo
from timetracker.schemas.time_entry import (
    ActiveTimerData,
    BreakStartRequest,
    ManualEntryRequest,
    TimeEntryData,
    TimeEntryListData,
    TimeEntryResponse,
    TimeEntryUpdateRequest,
    TimerStartRequest,
    TimerStopRequest,
)
from timetracker.services import time_engine
from timetracker.services.time_engine import TimeEntryFilters, TimeEntryTarget

router = APIRouter(prefix="/timer", tags=["timer"])


def _target(payload: TimerStartRequest) -> TimeEntryTarget:
    return TimeEntryTarget(
        organization_id=payload.organization_id,
        customer_id=payload.customer_id,
        process_id=payload.process_id,
        activity_id=payload.activity_id,
    )


def _entry_response(view, message: Optional[str] = None) -> ApiResponse[TimeEntryData]:
    return ApiResponse[TimeEntryData](
        message=message,
        data=TimeEntryData(time_entry=TimeEntryResponse.model_validate(view)),
    )


def entry_filters(
    start_date: Optional[date] = Query(default=None, alias="startDate"),
    end_date: Optional[date] = Query(default=None, alias="endDate"),
    organization_id: Optional[str] = Query(default=None, alias="organizationId"),
    customer_id: Optional[str] = Query(default=None, alias="customerId"),
    process_id: Optional[str] = Query(default=None, alias="processId"),
    activity_id: Optional[str] = Query(default=None, alias="activityId"),
    search: Optional[str] = None,
    completion: Literal["open", "completed", "all"] = "all",
    sort_by: Literal["startTime", "endTime", "durationMinutes", "taskName", "createdAt"] = Query(
        default="startTime", alias="sortBy"
    ),
    sort_order: Literal["asc", "desc"] = Query(default="desc", alias="sortOrder"),
    settings: Settings = Depends(get_settings),
) -> TimeEntryFilters:
    return TimeEntryFilters(
        start_date=start_date,
        end_date=end_date,
        organization_id=organization_id,
        customer_id=customer_id,
        process_id=process_id,
        activity_id=activity_id,
        search=search,
        completion=completion,
        sort_by=sort_by,
        sort_order=sort_order,
        timezone=settings.login_date_timezone,
    )


@router.post("/start", status_code=201, response_model=ApiResponse[TimeEntryData])
def start_timer(
    payload: TimerStartRequest,
    user: User = Depends(require_auth),
    db: Session = Depends(get_db),
):
    view = time_engine.start_timer(
        db,
        user=user,
        target=_target(payload),
        task_name=payload.task_name,
        description=payload.description,
    )
    db.commit()
    return _entry_response(view, "Timer started successfully")


@router.put("/stop", response_model=ApiResponse[TimeEntryData])
def stop_timer(
    payload: Optional[TimerStopRequest] = Body(default=None),
    user: User = Depends(require_auth),
    db: Session = Depends(get_db),
):
    view = time_engine.stop_timer(
        db,
        user_id=user.id,
        description=payload.description if payload else None,
    )
    db.commit()
    return _entry_response(view, "Timer stopped successfully")


@router.get("/active", response_model=ApiResponse[ActiveTimerData])
def get_active_timer(
    user: User = Depends(require_auth),
    db: Session = Depends(get_db),
):
    view = time_engine.get_active_timer(db, user_id=user.id)
    return ApiResponse[ActiveTimerData](
        message=None if view else "No active timer",
        data=ActiveTimerData(active_timer=TimeEntryResponse.model_validate(view) if view else None),
    )


@router.post("/breaks/start", response_model=ApiResponse[TimeEntryData])
def start_break(
    payload: Optional[BreakStartRequest] = Body(default=None),
    user: User = Depends(require_auth),
    db: Session = Depends(get_db),
):
    view = time_engine.start_break(db, user_id=user.id, reason=payload.reason if payload else "Break")
    db.commit()
    return _entry_response(view, "Break started")


@router.put("/breaks/end", response_model=ApiResponse[TimeEntryData])
def end_break(
    user: User = Depends(require_auth),
    db: Session = Depends(get_db),
):
    view = time_engine.end_break(db, user_id=user.id)
    db.commit()
    return _entry_response(view, "Break ended")


@router.get("/entries", response_model=ApiResponse[TimeEntryListData])
def list_entries(
    page: int = Query(default=1, ge=1),
    limit: Optional[int] = Query(default=None, ge=1),
    filters: TimeEntryFilters = Depends(entry_filters),
    user: User = Depends(require_auth),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    views, page_info = time_engine.list_entries(
        db,
        requester=user,
        user_id=user.id,
        filters=filters,
        page=page_request(settings, page, limit),
    )
    return ApiResponse[TimeEntryListData](
        data=TimeEntryListData(
            time_entries=[TimeEntryResponse.model_validate(v) for v in views],
            pagination=PaginationInfo.model_validate(page_info),
        )
    )


@router.get("/entries/user/{user_id}", response_model=ApiResponse[TimeEntryListData])
def list_user_entries(
    user_id: str,
    page: int = Query(default=1, ge=1),
    limit: Optional[int] = Query(default=None, ge=1),
    filters: TimeEntryFilters = Depends(entry_filters),
    user: User = Depends(require_auth),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    views, page_info = time_engine.list_entries(
        db,
        requester=user,
        user_id=user_id,
        filters=filters,
        page=page_request(settings, page, limit),
    )
    return ApiResponse[TimeEntryListData](
        data=TimeEntryListData(
            time_entries=[TimeEntryResponse.model_validate(v) for v in views],
            pagination=PaginationInfo.model_validate(page_info),
        )
    )


@router.post("/entries", status_code=201, response_model=ApiResponse[TimeEntryData])
def create_manual_entry(
    payload: ManualEntryRequest,
    user: User = Depends(require_auth),
    db: Session = Depends(get_db),
):
    view = time_engine.create_manual_entry(
        db,
        user=user,
        target=_target(payload),
        task_name=payload.task_name,
        start_time=payload.start_time,
        end_time=payload.end_time,
        description=payload.description,
        notes=payload.notes,
    )
    db.commit()
    return _entry_response(view, "Time entry created successfully")


@router.get("/entries/{entry_id}", response_model=ApiResponse[TimeEntryData])
def get_entry(
    entry_id: str,
    user: User = Depends(require_auth),
    db: Session = Depends(get_db),
):
    return _entry_response(time_engine.get_entry(db, entry_id=entry_id, user_id=user.id))


@router.put("/entries/{entry_id}", response_model=ApiResponse[TimeEntryData])
def update_entry(
    entry_id: str,
    payload: TimeEntryUpdateRequest,
    user: User = Depends(require_auth),
    db: Session = Depends(get_db),
):
    view = time_engine.update_entry(
        db,
        entry_id=entry_id,
        user_id=user.id,
        changes=payload.model_dump(exclude_unset=True),
    )
    db.commit()
    return _entry_response(view, "Time entry updated successfully")


@router.delete("/entries/{entry_id}", response_model=ApiResponse[None])
def delete_entry(
    entry_id: str,
    user: User = Depends(require_auth),
    db: Session = Depends(get_db),
):
    time_engine.delete_entry(db, entry_id=entry_id, user_id=user.id)
    db.commit()
    return ApiResponse[None](message="Time entry deleted successfully")
