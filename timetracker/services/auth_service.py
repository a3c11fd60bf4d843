import logging
import math
from dataclasses import dataclass
from datetime import timedelta
from functools import lru_cache
from typing import Optional

import jwt
from passlib.context import CryptContext
from sqlalchemy.orm import Session

from timetracker.core.authorization import Role
from timetracker.core.config import Settings
from timetracker.core.errors import (
    AuthError,
    ConflictError,
    ForbiddenError,
    InvalidTokenError,
    LockedError,
    TokenExpiredError,
)
from timetracker.core.timeutil import as_utc, utcnow
from timetracker.models.user import User
from timetracker.services import daily_login_service
from timetracker.services.daily_login_service import FirstLoginResult

logger = logging.getLogger(__name__)

JWT_ALGORITHM = "HS256"
ACCESS_TOKEN = "access"
REFRESH_TOKEN = "refresh"

INVALID_CREDENTIALS = "Invalid email or password"


@dataclass(frozen=True)
class TokenPair:
    access_token: str
    refresh_token: str


@dataclass(frozen=True)
class LoginResult:
    user: User
    tokens: TokenPair
    daily_login: FirstLoginResult


@lru_cache(maxsize=8)
def _password_context(rounds: int) -> CryptContext:
    return CryptContext(schemes=["argon2"], deprecated="auto", argon2__rounds=rounds)


def hash_password(password: str, settings: Settings) -> str:
    return _password_context(settings.password_hash_rounds).hash(password)


def verify_password(password: str, hashed: str, settings: Settings) -> bool:
    if not password or not hashed:
        return False
    return _password_context(settings.password_hash_rounds).verify(password, hashed)


def _encode(claims: dict, lifetime: timedelta, settings: Settings) -> str:
    now = utcnow()
    payload = {
        **claims,
        "iss": settings.jwt_issuer,
        "aud": settings.jwt_audience,
        "iat": now,
        "exp": now + lifetime,
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm=JWT_ALGORITHM)


def create_access_token(user: User, settings: Settings) -> str:
    claims = {
        "sub": str(user.id),
        "email": user.email,
        "role": user.role,
        "name": user.name,
        "type": ACCESS_TOKEN,
    }
    return _encode(claims, timedelta(minutes=settings.jwt_access_expiry_minutes), settings)


def create_refresh_token(user: User, settings: Settings) -> str:
    claims = {"sub": str(user.id), "type": REFRESH_TOKEN}
    return _encode(claims, timedelta(days=settings.jwt_refresh_expiry_days), settings)


def issue_tokens(user: User, settings: Settings) -> TokenPair:
    return TokenPair(
        access_token=create_access_token(user, settings),
        refresh_token=create_refresh_token(user, settings),
    )


def verify_token(token: str, settings: Settings, *, expected_type: str = ACCESS_TOKEN) -> dict:
    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=[JWT_ALGORITHM],
            issuer=settings.jwt_issuer,
            audience=settings.jwt_audience,
            options={"require": ["exp", "iat", "iss", "aud", "sub"]},
        )
    except jwt.ExpiredSignatureError as exc:
        raise TokenExpiredError("Token has expired.") from exc
    except jwt.InvalidTokenError as exc:
        raise InvalidTokenError("Invalid token.") from exc

    if payload.get("type") != expected_type:
        raise InvalidTokenError("Invalid token.")

    return payload


def normalize_email(email: str) -> str:
    return email.strip().lower()


def find_user_by_email(db: Session, email: str) -> Optional[User]:
    return db.query(User).filter(User.email == normalize_email(email)).first()


def ensure_email_available(db: Session, email: str, *, exclude_user_id: Optional[str] = None) -> None:
    q = db.query(User.id).filter(User.email == normalize_email(email))
    if exclude_user_id is not None:
        q = q.filter(User.id != exclude_user_id)
    if q.first() is not None:
        raise ConflictError("User with this email already exists")


def register(
    db: Session,
    settings: Settings,
    *,
    name: str,
    email: str,
    password: str,
    role: Role = Role.USER,
    now=None,
) -> tuple[User, TokenPair]:
    now = as_utc(now) or utcnow()
    role = Role(role)

    ensure_email_available(db, email)

    # Elevated self-registration is only open while the system has no users (first admin).
    if role is not Role.USER and db.query(User.id).first() is not None:
        raise ForbiddenError("Elevated roles can only be assigned by an administrator")

    user = User(
        name=name.strip(),
        email=normalize_email(email),
        password_hash=hash_password(password, settings),
        role=role.value,
        is_active=True,
        login_attempts=0,
        last_login=now,
        password_changed_at=now,
    )
    db.add(user)
    db.flush()

    logger.info(
        "User registered successfully",
        extra={"user_id": user.id, "email": user.email, "role": user.role},
    )
    return user, issue_tokens(user, settings)


def _register_failed_attempt(user: User, settings: Settings, now) -> int:
    lock_until = as_utc(user.lock_until)
    if lock_until is not None and lock_until <= now:
        # Previous lock has lapsed; start counting again.
        user.login_attempts = 1
        user.lock_until = None
        return user.login_attempts

    user.login_attempts = (user.login_attempts or 0) + 1
    if user.login_attempts >= settings.max_login_attempts and not user.is_locked(now):
        user.lock_until = now + timedelta(minutes=settings.lockout_minutes)
        logger.warning(
            "Account locked after failed login attempts",
            extra={"user_id": user.id, "attempts": user.login_attempts},
        )
    return user.login_attempts


def login(
    db: Session,
    settings: Settings,
    *,
    email: str,
    password: str,
    ip_address: Optional[str] = None,
    user_agent: Optional[str] = None,
    location: Optional[str] = None,
    now=None,
) -> LoginResult:
    """
    Authenticate by email and password.

    A wrong password is committed immediately (attempt counter, lock) before the
    AuthError propagates, so callers must not rely on rolling it back.
    """
    now = as_utc(now) or utcnow()

    user = find_user_by_email(db, email)
    if user is None:
        logger.warning("Failed login attempt", extra={"email": email, "reason": "unknown_email"})
        raise AuthError(INVALID_CREDENTIALS)

    if user.is_locked(now):
        remaining = math.ceil((as_utc(user.lock_until) - now).total_seconds() / 60)
        raise LockedError(
            f"Account locked. Try again in {remaining} minutes.",
            minutes_remaining=remaining,
        )

    if not user.is_active:
        raise AuthError("Account has been deactivated. Contact administrator.")

    if not verify_password(password, user.password_hash, settings):
        attempts = _register_failed_attempt(user, settings, now)
        db.commit()
        logger.warning(
            "Failed login attempt",
            extra={"email": user.email, "ip": ip_address, "attempts": attempts},
        )
        raise AuthError(
            INVALID_CREDENTIALS,
            data={"attemptsRemaining": max(0, settings.max_login_attempts - attempts)},
        )

    user.login_attempts = 0
    user.lock_until = None
    user.last_login = now
    db.flush()

    daily_login = daily_login_service.track_first_login(
        db,
        settings,
        user_id=user.id,
        login_time=now,
        ip_address=ip_address,
        user_agent=user_agent,
        location=location,
    )

    logger.info(
        "User logged in successfully",
        extra={
            "user_id": user.id,
            "ip": ip_address,
            "is_first_login_today": daily_login.is_first_login,
            "daily_tracker_id": daily_login.tracker.id,
        },
    )
    return LoginResult(user=user, tokens=issue_tokens(user, settings), daily_login=daily_login)


def refresh(db: Session, settings: Settings, *, refresh_token: str) -> tuple[User, TokenPair]:
    claims = verify_token(refresh_token, settings, expected_type=REFRESH_TOKEN)

    user = db.get(User, str(claims["sub"]))
    if user is None:
        raise InvalidTokenError("Token is no longer valid. User not found.")
    if not user.is_active:
        raise AuthError("Your account has been deactivated.")

    return user, issue_tokens(user, settings)
