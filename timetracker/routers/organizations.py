from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from timetracker.core.authorization import Role
from timetracker.core.config import Settings
from timetracker.core.pagination import page_request
from timetracker.database import get_db
from timetracker.deps.auth import get_settings, require_auth, require_role
from timetracker.models.user import User
from timetracker.schemas.common import ApiResponse, PaginationInfo, UserSummary
from timetracker.schemas.customer import CustomerResponse
from timetracker.schemas.organization import (
    MembershipRequest,
    OrganizationCreateRequest,
    OrganizationData,
    OrganizationDetailData,
    OrganizationListData,
    OrganizationResponse,
    OrganizationUpdateRequest,
)
from timetracker.services import organization_service

router = APIRouter(prefix="/organizations", tags=["organizations"])

require_admin = require_role(Role.ADMIN)


def _organization_response(organization) -> OrganizationData:
    return OrganizationData(organization=OrganizationResponse.model_validate(organization))


@router.get("", response_model=ApiResponse[OrganizationListData])
def list_organizations(
    page: int = Query(default=1, ge=1),
    limit: Optional[int] = Query(default=None, ge=1),
    search: Optional[str] = None,
    user: User = Depends(require_auth),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    organizations, page_info = organization_service.list_organizations(
        db,
        requester=user,
        page=page_request(settings, page, limit),
        search=search,
    )
    return ApiResponse[OrganizationListData](
        data=OrganizationListData(
            organizations=[OrganizationResponse.model_validate(o) for o in organizations],
            pagination=PaginationInfo.model_validate(page_info),
        )
    )


@router.get("/{organization_id}", response_model=ApiResponse[OrganizationDetailData])
def get_organization(
    organization_id: str,
    user: User = Depends(require_auth),
    db: Session = Depends(get_db),
):
    organization = organization_service.get_visible_organization(
        db, requester=user, organization_id=organization_id
    )
    return ApiResponse[OrganizationDetailData](
        data=OrganizationDetailData(
            organization=OrganizationResponse.model_validate(organization),
            users=[
                UserSummary.model_validate(u)
                for u in organization_service.list_members(db, organization.id)
            ],
            customers=[
                CustomerResponse.model_validate(c)
                for c in organization_service.list_organization_customers(db, organization.id)
            ],
        )
    )


@router.post("", status_code=201, response_model=ApiResponse[OrganizationData])
def create_organization(
    payload: OrganizationCreateRequest,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    organization = organization_service.create_organization(
        db,
        actor=admin,
        name=payload.name,
        work_location=payload.work_location,
        address=payload.address,
    )
    db.commit()
    return ApiResponse[OrganizationData](
        message="Organization created successfully",
        data=_organization_response(organization),
    )


@router.put("/{organization_id}", response_model=ApiResponse[OrganizationData])
def update_organization(
    organization_id: str,
    payload: OrganizationUpdateRequest,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    organization = organization_service.update_organization(
        db,
        actor=admin,
        organization_id=organization_id,
        changes=payload.model_dump(exclude_unset=True),
    )
    db.commit()
    return ApiResponse[OrganizationData](
        message="Organization updated successfully",
        data=_organization_response(organization),
    )


@router.delete("/{organization_id}", response_model=ApiResponse[None])
def delete_organization(
    organization_id: str,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    organization_service.delete_organization(db, actor=admin, organization_id=organization_id)
    db.commit()
    return ApiResponse[None](message="Organization deleted successfully")


@router.post("/{organization_id}/users", status_code=201, response_model=ApiResponse[None])
def add_member(
    organization_id: str,
    payload: MembershipRequest,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    organization_service.add_member(db, actor=admin, organization_id=organization_id, user_id=payload.user_id)
    db.commit()
    return ApiResponse[None](message="User added to organization")


@router.delete("/{organization_id}/users/{user_id}", response_model=ApiResponse[None])
def remove_member(
    organization_id: str,
    user_id: str,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    organization_service.remove_member(db, actor=admin, organization_id=organization_id, user_id=user_id)
    db.commit()
    return ApiResponse[None](message="User removed from organization")
