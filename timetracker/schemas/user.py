from typing import Optional

from pydantic import ConfigDict, EmailStr, Field

from timetracker.core.authorization import Role
from timetracker.schemas.auth import StrongPassword, UserResponse
from timetracker.schemas.common import CamelModel, PaginationInfo


class ProfileUpdateRequest(CamelModel):
    model_config = ConfigDict(extra="forbid")

    name: str = Field(min_length=2, max_length=100)


class PasswordChangeRequest(CamelModel):
    current_password: str = Field(min_length=1)
    new_password: StrongPassword


class AdminUserCreateRequest(CamelModel):
    name: str = Field(min_length=2, max_length=100)
    email: EmailStr
    password: StrongPassword
    role: Role = Role.USER


class AdminUserUpdateRequest(CamelModel):
    model_config = ConfigDict(extra="forbid")

    name: Optional[str] = Field(default=None, min_length=2, max_length=100)
    email: Optional[EmailStr] = None
    role: Optional[Role] = None
    is_active: Optional[bool] = None


class UserListData(CamelModel):
    users: list[UserResponse]
    pagination: PaginationInfo
