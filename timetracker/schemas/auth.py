import re
from datetime import date
from typing import Annotated, Optional

from pydantic import AfterValidator, EmailStr, Field

from timetracker.core.authorization import Role
from timetracker.schemas.common import CamelModel, UtcDatetime

_PASSWORD_RULES = (
    (re.compile(r"[a-z]"), "one lowercase letter"),
    (re.compile(r"[A-Z]"), "one uppercase letter"),
    (re.compile(r"\d"), "one number"),
    (re.compile(r"[^A-Za-z0-9]"), "one special character"),
)


def validate_password_strength(value: str) -> str:
    missing = [label for pattern, label in _PASSWORD_RULES if not pattern.search(value)]
    if missing:
        raise ValueError("Password must contain at least " + ", ".join(missing))
    return value


StrongPassword = Annotated[
    str, Field(min_length=8, max_length=128), AfterValidator(validate_password_strength)
]


class RegisterRequest(CamelModel):
    name: str = Field(min_length=2, max_length=100)
    email: EmailStr
    password: StrongPassword
    role: Role = Role.USER


class LoginRequest(CamelModel):
    email: EmailStr
    password: str = Field(min_length=1)
    location: Optional[str] = Field(default=None, max_length=255)


class RefreshRequest(CamelModel):
    refresh_token: str = Field(min_length=1)


class UserResponse(CamelModel):
    id: str
    name: str
    email: str
    role: str
    is_active: bool
    last_login: Optional[UtcDatetime] = None
    created_at: Optional[UtcDatetime] = None


class TokensResponse(CamelModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"


class DailyLoginInfo(CamelModel):
    is_first_login_today: bool
    first_login_time: UtcDatetime
    login_date: date


class UserData(CamelModel):
    user: UserResponse


class AuthData(CamelModel):
    user: UserResponse
    tokens: TokensResponse
    daily_login: Optional[DailyLoginInfo] = None
