from typing import Optional

from pydantic import ConfigDict, Field

from timetracker.schemas.common import CamelModel, PaginationInfo, UserSummary, UtcDatetime
from timetracker.schemas.customer import CustomerResponse


class OrganizationCreateRequest(CamelModel):
    name: str = Field(min_length=2, max_length=200)
    work_location: Optional[str] = Field(default=None, max_length=255)
    address: Optional[str] = Field(default=None, max_length=500)


class OrganizationUpdateRequest(CamelModel):
    model_config = ConfigDict(extra="forbid")

    name: Optional[str] = Field(default=None, min_length=2, max_length=200)
    work_location: Optional[str] = Field(default=None, max_length=255)
    address: Optional[str] = Field(default=None, max_length=500)


class MembershipRequest(CamelModel):
    user_id: str = Field(min_length=1)


class OrganizationResponse(CamelModel):
    id: str
    name: str
    work_location: Optional[str] = None
    address: Optional[str] = None
    created_at: Optional[UtcDatetime] = None
    updated_at: Optional[UtcDatetime] = None


class OrganizationData(CamelModel):
    organization: OrganizationResponse


class OrganizationDetailData(CamelModel):
    organization: OrganizationResponse
    users: list[UserSummary]
    customers: list[CustomerResponse]


class OrganizationListData(CamelModel):
    organizations: list[OrganizationResponse]
    pagination: PaginationInfo
