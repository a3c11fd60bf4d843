import math

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from timetracker.core.authorization import Role, ensure_role
from timetracker.core.config import Settings
from timetracker.core.errors import AuthError, InvalidTokenError, LockedError
from timetracker.core.timeutil import as_utc, utcnow
from timetracker.database import get_db
from timetracker.models.user import User
from timetracker.services.auth_service import verify_token


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def _parse_bearer_token(request: Request) -> str:
    auth_header = request.headers.get("Authorization")
    if not auth_header:
        raise AuthError("Access denied. No token provided.")

    parts = auth_header.split(" ", 1)
    if len(parts) != 2 or parts[0].lower() != "bearer" or not parts[1].strip():
        raise AuthError("Access denied. No token provided.")

    return parts[1].strip()


def require_auth(
    request: Request,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
) -> User:
    token = _parse_bearer_token(request)
    claims = verify_token(token, settings)

    user = db.get(User, str(claims.get("sub")))
    if user is None:
        raise InvalidTokenError("Token is no longer valid. User not found.")

    if not user.is_active:
        raise AuthError("Your account has been deactivated.")

    now = utcnow()
    if user.is_locked(now):
        remaining = math.ceil((as_utc(user.lock_until) - now).total_seconds() / 60)
        raise LockedError(
            "Account is temporarily locked due to failed login attempts.",
            minutes_remaining=remaining,
        )

    request.state.user_id = user.id
    request.state.role = user.role
    return user


def require_role(minimum: Role):
    def dependency(user: User = Depends(require_auth)) -> User:
        ensure_role(user.role, minimum)
        return user

    return dependency
