from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from timetracker.core.authorization import Role, has_role
from timetracker.database import get_db
from timetracker.deps.auth import require_auth, require_role
from timetracker.models.user import User
from timetracker.schemas.common import ApiResponse
from timetracker.schemas.process import (
    ActivityCreateRequest,
    ActivityData,
    ActivityResponse,
    ActivityUpdateRequest,
    ProcessCreateRequest,
    ProcessData,
    ProcessListData,
    ProcessResponse,
    ProcessUpdateRequest,
)
from timetracker.services import catalog_service

router = APIRouter(tags=["processes"])

require_admin = require_role(Role.ADMIN)


def _process_response(process, activities) -> ProcessResponse:
    return ProcessResponse(
        id=process.id,
        name=process.name,
        description=process.description,
        category=process.category,
        is_active=process.is_active,
        created_at=process.created_at,
        activities=[ActivityResponse.model_validate(a) for a in activities],
    )


@router.get("/processes", response_model=ApiResponse[ProcessListData])
def list_processes(
    category: Optional[str] = None,
    include_inactive: bool = Query(default=False, alias="includeInactive"),
    user: User = Depends(require_auth),
    db: Session = Depends(get_db),
):
    # Inactive rows are only listed for admins.
    include_inactive = include_inactive and has_role(user.role, Role.ADMIN)
    processes = catalog_service.list_processes(db, include_inactive=include_inactive, category=category)
    activities = catalog_service.list_activities(
        db, [p.id for p in processes], include_inactive=include_inactive
    )
    return ApiResponse[ProcessListData](
        data=ProcessListData(processes=[_process_response(p, activities[p.id]) for p in processes])
    )


@router.get("/processes/{process_id}", response_model=ApiResponse[ProcessData])
def get_process(
    process_id: str,
    user: User = Depends(require_auth),
    db: Session = Depends(get_db),
):
    process = catalog_service.get_process(db, process_id)
    activities = catalog_service.list_activities(
        db, [process.id], include_inactive=has_role(user.role, Role.ADMIN)
    )
    return ApiResponse[ProcessData](
        data=ProcessData(process=_process_response(process, activities[process.id]))
    )


@router.post("/processes", status_code=201, response_model=ApiResponse[ProcessData])
def create_process(
    payload: ProcessCreateRequest,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    process = catalog_service.create_process(
        db,
        actor=admin,
        name=payload.name,
        description=payload.description,
        category=payload.category,
    )
    db.commit()
    return ApiResponse[ProcessData](
        message="Process created successfully",
        data=ProcessData(process=_process_response(process, [])),
    )


@router.put("/processes/{process_id}", response_model=ApiResponse[ProcessData])
def update_process(
    process_id: str,
    payload: ProcessUpdateRequest,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    process = catalog_service.update_process(
        db,
        actor=admin,
        process_id=process_id,
        changes=payload.model_dump(exclude_unset=True),
    )
    db.commit()
    activities = catalog_service.list_activities(db, [process.id], include_inactive=True)
    return ApiResponse[ProcessData](
        message="Process updated successfully",
        data=ProcessData(process=_process_response(process, activities[process.id])),
    )


@router.delete("/processes/{process_id}", response_model=ApiResponse[None])
def delete_process(
    process_id: str,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    catalog_service.delete_process(db, actor=admin, process_id=process_id)
    db.commit()
    return ApiResponse[None](message="Process deleted successfully")


@router.post("/processes/{process_id}/activities", status_code=201, response_model=ApiResponse[ActivityData])
def create_activity(
    process_id: str,
    payload: ActivityCreateRequest,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    activity = catalog_service.create_activity(
        db,
        actor=admin,
        process_id=process_id,
        name=payload.name,
        description=payload.description,
    )
    db.commit()
    return ApiResponse[ActivityData](
        message="Activity created successfully",
        data=ActivityData(activity=ActivityResponse.model_validate(activity)),
    )


@router.put("/activities/{activity_id}", response_model=ApiResponse[ActivityData])
def update_activity(
    activity_id: str,
    payload: ActivityUpdateRequest,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    activity = catalog_service.update_activity(
        db,
        actor=admin,
        activity_id=activity_id,
        changes=payload.model_dump(exclude_unset=True),
    )
    db.commit()
    return ApiResponse[ActivityData](
        message="Activity updated successfully",
        data=ActivityData(activity=ActivityResponse.model_validate(activity)),
    )


@router.delete("/activities/{activity_id}", response_model=ApiResponse[None])
def delete_activity(
    activity_id: str,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    catalog_service.delete_activity(db, actor=admin, activity_id=activity_id)
    db.commit()
    return ApiResponse[None](message="Activity deleted successfully")
