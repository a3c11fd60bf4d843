from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from timetracker.core.authorization import Role
from timetracker.core.config import Settings
from timetracker.core.pagination import page_request
from timetracker.database import get_db
from timetracker.deps.auth import get_settings, require_role
from timetracker.models.user import User
from timetracker.schemas.auth import UserData, UserResponse
from timetracker.schemas.common import ApiResponse, PaginationInfo
from timetracker.schemas.user import AdminUserCreateRequest, AdminUserUpdateRequest, UserListData
from timetracker.services import user_service

router = APIRouter(prefix="/admin/users", tags=["admin"])

require_admin = require_role(Role.ADMIN)


@router.get("", response_model=ApiResponse[UserListData])
def list_users(
    page: int = Query(default=1, ge=1),
    limit: Optional[int] = Query(default=None, ge=1),
    search: Optional[str] = None,
    role: Optional[Role] = None,
    is_active: Optional[bool] = Query(default=None, alias="isActive"),
    _admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    users, page_info = user_service.list_users(
        db,
        page=page_request(settings, page, limit),
        search=search,
        role=role,
        is_active=is_active,
    )
    return ApiResponse[UserListData](
        data=UserListData(
            users=[UserResponse.model_validate(u) for u in users],
            pagination=PaginationInfo.model_validate(page_info),
        )
    )


@router.get("/{user_id}", response_model=ApiResponse[UserData])
def get_user(
    user_id: str,
    _admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    user = user_service.get_user(db, user_id)
    return ApiResponse[UserData](data=UserData(user=UserResponse.model_validate(user)))


@router.post("", status_code=201, response_model=ApiResponse[UserData])
def create_user(
    payload: AdminUserCreateRequest,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    user = user_service.create_user(
        db,
        settings,
        actor=admin,
        name=payload.name,
        email=payload.email,
        password=payload.password,
        role=payload.role,
    )
    db.commit()
    return ApiResponse[UserData](
        message="User created successfully",
        data=UserData(user=UserResponse.model_validate(user)),
    )


@router.put("/{user_id}", response_model=ApiResponse[UserData])
def update_user(
    user_id: str,
    payload: AdminUserUpdateRequest,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    user = user_service.update_user(
        db,
        actor=admin,
        user_id=user_id,
        changes=payload.model_dump(exclude_unset=True),
    )
    db.commit()
    return ApiResponse[UserData](
        message="User updated successfully",
        data=UserData(user=UserResponse.model_validate(user)),
    )


@router.delete("/{user_id}", response_model=ApiResponse[None])
def delete_user(
    user_id: str,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    user_service.delete_user(db, actor=admin, user_id=user_id)
    db.commit()
    return ApiResponse[None](message="User deleted successfully")
