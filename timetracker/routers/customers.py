from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from timetracker.core.authorization import Role
from timetracker.core.config import Settings
from timetracker.core.pagination import page_request
from timetracker.database import get_db
from timetracker.deps.auth import get_settings, require_auth, require_role
from timetracker.models.user import User
from timetracker.schemas.common import ApiResponse, PaginationInfo
from timetracker.schemas.customer import (
    CustomerCreateRequest,
    CustomerData,
    CustomerListData,
    CustomerResponse,
    CustomerUpdateRequest,
)
from timetracker.services import catalog_service

router = APIRouter(prefix="/customers", tags=["customers"])

require_admin = require_role(Role.ADMIN)


@router.get("", response_model=ApiResponse[CustomerListData])
def list_customers(
    page: int = Query(default=1, ge=1),
    limit: Optional[int] = Query(default=None, ge=1),
    search: Optional[str] = None,
    organization_id: Optional[str] = Query(default=None, alias="organizationId"),
    is_active: Optional[bool] = Query(default=None, alias="isActive"),
    user: User = Depends(require_auth),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    customers, page_info = catalog_service.list_customers(
        db,
        requester=user,
        page=page_request(settings, page, limit),
        search=search,
        organization_id=organization_id,
        is_active=is_active,
    )
    return ApiResponse[CustomerListData](
        data=CustomerListData(
            customers=[CustomerResponse.model_validate(c) for c in customers],
            pagination=PaginationInfo.model_validate(page_info),
        )
    )


@router.get("/{customer_id}", response_model=ApiResponse[CustomerData])
def get_customer(
    customer_id: str,
    _user: User = Depends(require_auth),
    db: Session = Depends(get_db),
):
    customer = catalog_service.get_customer(db, customer_id)
    return ApiResponse[CustomerData](data=CustomerData(customer=CustomerResponse.model_validate(customer)))


@router.post("", status_code=201, response_model=ApiResponse[CustomerData])
def create_customer(
    payload: CustomerCreateRequest,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    customer = catalog_service.create_customer(
        db,
        actor=admin,
        organization_id=payload.organization_id,
        name=payload.name,
        description=payload.description,
        contact_email=payload.contact_email,
        contact_phone=payload.contact_phone,
        address=payload.address,
    )
    db.commit()
    return ApiResponse[CustomerData](
        message="Customer created successfully",
        data=CustomerData(customer=CustomerResponse.model_validate(customer)),
    )


@router.put("/{customer_id}", response_model=ApiResponse[CustomerData])
def update_customer(
    customer_id: str,
    payload: CustomerUpdateRequest,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    customer = catalog_service.update_customer(
        db,
        actor=admin,
        customer_id=customer_id,
        changes=payload.model_dump(exclude_unset=True),
    )
    db.commit()
    return ApiResponse[CustomerData](
        message="Customer updated successfully",
        data=CustomerData(customer=CustomerResponse.model_validate(customer)),
    )


@router.delete("/{customer_id}", response_model=ApiResponse[None])
def delete_customer(
    customer_id: str,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    catalog_service.delete_customer(db, actor=admin, customer_id=customer_id)
    db.commit()
    return ApiResponse[None](message="Customer deleted successfully")
