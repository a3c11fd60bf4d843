from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from timetracker.core.config import Settings
from timetracker.database import get_db
from timetracker.deps.auth import get_settings, require_auth
from timetracker.models.user import User
from timetracker.schemas.auth import UserData, UserResponse
from timetracker.schemas.common import ApiResponse
from timetracker.schemas.user import PasswordChangeRequest, ProfileUpdateRequest
from timetracker.services import user_service

router = APIRouter(prefix="/users", tags=["users"])


@router.get("/me", response_model=ApiResponse[UserData])
def get_profile(user: User = Depends(require_auth)):
    return ApiResponse[UserData](data=UserData(user=UserResponse.model_validate(user)))


@router.put("/me", response_model=ApiResponse[UserData])
def update_profile(
    payload: ProfileUpdateRequest,
    user: User = Depends(require_auth),
    db: Session = Depends(get_db),
):
    user = user_service.update_profile(db, user=user, name=payload.name)
    db.commit()
    return ApiResponse[UserData](
        message="Profile updated successfully",
        data=UserData(user=UserResponse.model_validate(user)),
    )


@router.put("/me/password", response_model=ApiResponse[None])
def change_password(
    payload: PasswordChangeRequest,
    user: User = Depends(require_auth),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    user_service.change_password(
        db,
        settings,
        user=user,
        current_password=payload.current_password,
        new_password=payload.new_password,
    )
    db.commit()
    return ApiResponse[None](message="Password changed successfully")
