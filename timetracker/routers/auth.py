import logging

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from timetracker.core.config import Settings
from timetracker.database import get_db
from timetracker.deps.auth import get_settings, require_auth
from timetracker.models.user import User
from timetracker.schemas.auth import (
    AuthData,
    DailyLoginInfo,
    LoginRequest,
    RefreshRequest,
    RegisterRequest,
    TokensResponse,
    UserData,
    UserResponse,
)
from timetracker.schemas.common import ApiResponse
from timetracker.services import auth_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


def client_ip(request: Request):
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else None


@router.post("/register", status_code=201, response_model=ApiResponse[AuthData])
def register(
    payload: RegisterRequest,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    user, tokens = auth_service.register(
        db,
        settings,
        name=payload.name,
        email=payload.email,
        password=payload.password,
        role=payload.role,
    )
    db.commit()

    return ApiResponse[AuthData](
        message="User registered successfully",
        data=AuthData(
            user=UserResponse.model_validate(user),
            tokens=TokensResponse.model_validate(tokens),
        ),
    )


@router.post("/login", response_model=ApiResponse[AuthData])
def login(
    payload: LoginRequest,
    request: Request,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    result = auth_service.login(
        db,
        settings,
        email=payload.email,
        password=payload.password,
        ip_address=client_ip(request),
        user_agent=request.headers.get("User-Agent"),
        location=payload.location,
    )
    db.commit()

    tracker = result.daily_login.tracker
    return ApiResponse[AuthData](
        message="Login successful",
        data=AuthData(
            user=UserResponse.model_validate(result.user),
            tokens=TokensResponse.model_validate(result.tokens),
            daily_login=DailyLoginInfo(
                is_first_login_today=result.daily_login.is_first_login,
                first_login_time=tracker.first_login_time,
                login_date=tracker.login_date,
            ),
        ),
    )


@router.post("/refresh", response_model=ApiResponse[AuthData])
def refresh(
    payload: RefreshRequest,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    user, tokens = auth_service.refresh(db, settings, refresh_token=payload.refresh_token)
    return ApiResponse[AuthData](
        message="Token refreshed successfully",
        data=AuthData(
            user=UserResponse.model_validate(user),
            tokens=TokensResponse.model_validate(tokens),
        ),
    )


@router.get("/me", response_model=ApiResponse[UserData])
def me(user: User = Depends(require_auth)):
    return ApiResponse[UserData](data=UserData(user=UserResponse.model_validate(user)))


@router.post("/logout", response_model=ApiResponse[None])
def logout(request: Request, user: User = Depends(require_auth)):
    # Tokens are stateless; the client discards them.
    logger.info("User logged out", extra={"user_id": user.id, "ip": client_ip(request)})
    return ApiResponse[None](message="Logged out successfully")
