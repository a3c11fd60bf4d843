from typing import Optional

from pydantic import ConfigDict, EmailStr, Field

from timetracker.schemas.common import CamelModel, PaginationInfo, UtcDatetime


class CustomerCreateRequest(CamelModel):
    organization_id: str = Field(min_length=1)
    name: str = Field(min_length=2, max_length=200)
    description: Optional[str] = Field(default=None, max_length=1000)
    contact_email: Optional[EmailStr] = None
    contact_phone: Optional[str] = Field(default=None, max_length=50)
    address: Optional[str] = Field(default=None, max_length=500)


class CustomerUpdateRequest(CamelModel):
    model_config = ConfigDict(extra="forbid")

    name: Optional[str] = Field(default=None, min_length=2, max_length=200)
    description: Optional[str] = Field(default=None, max_length=1000)
    contact_email: Optional[EmailStr] = None
    contact_phone: Optional[str] = Field(default=None, max_length=50)
    address: Optional[str] = Field(default=None, max_length=500)
    is_active: Optional[bool] = None


class CustomerResponse(CamelModel):
    id: str
    organization_id: str
    name: str
    description: Optional[str] = None
    contact_email: Optional[str] = None
    contact_phone: Optional[str] = None
    address: Optional[str] = None
    is_active: bool
    created_at: Optional[UtcDatetime] = None


class CustomerData(CamelModel):
    customer: CustomerResponse


class CustomerListData(CamelModel):
    customers: list[CustomerResponse]
    pagination: PaginationInfo
