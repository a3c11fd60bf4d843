import logging
from typing import Any, Mapping, Optional

from sqlalchemy.orm import Session

from timetracker.core.authorization import Role, ensure_role, has_role
from timetracker.core.errors import ConflictError, ForbiddenError, NotFoundError, ValidationError
from timetracker.core.pagination import LIKE_ESCAPE, PageRequest, contains_pattern, paginate
from timetracker.models.customer import Customer
from timetracker.models.organization import Organization, UserOrganization
from timetracker.models.time_entry import TimeEntry
from timetracker.models.user import User

logger = logging.getLogger(__name__)

_EDITABLE_FIELDS = {"name", "work_location", "address"}


def get_organization(db: Session, organization_id: str) -> Organization:
    organization = db.get(Organization, str(organization_id))
    if organization is None:
        raise NotFoundError("Organization not found")
    return organization


def is_member(db: Session, *, user_id: str, organization_id: str) -> bool:
    return (
        db.query(UserOrganization.id)
        .filter(
            UserOrganization.user_id == str(user_id),
            UserOrganization.organization_id == str(organization_id),
        )
        .first()
        is not None
    )


def get_visible_organization(db: Session, *, requester: User, organization_id: str) -> Organization:
    organization = get_organization(db, organization_id)
    if not has_role(requester.role, Role.ADMIN) and not is_member(
        db, user_id=requester.id, organization_id=organization.id
    ):
        raise ForbiddenError("You don't have access to this organization")
    return organization


def list_organizations(
    db: Session,
    *,
    requester: User,
    page: PageRequest,
    search: Optional[str] = None,
):
    """Admins see every organization; everyone else sees their memberships."""
    q = db.query(Organization)
    if not has_role(requester.role, Role.ADMIN):
        q = q.join(UserOrganization, UserOrganization.organization_id == Organization.id).filter(
            UserOrganization.user_id == requester.id
        )
    if search:
        q = q.filter(Organization.name.ilike(contains_pattern(search), escape=LIKE_ESCAPE))

    return paginate(q.order_by(Organization.name.asc(), Organization.id.asc()), page)


def list_members(db: Session, organization_id: str) -> list[User]:
    return (
        db.query(User)
        .join(UserOrganization, UserOrganization.user_id == User.id)
        .filter(UserOrganization.organization_id == str(organization_id))
        .order_by(User.name.asc(), User.id.asc())
        .all()
    )


def list_organization_customers(db: Session, organization_id: str) -> list[Customer]:
    return (
        db.query(Customer)
        .filter(Customer.organization_id == str(organization_id))
        .order_by(Customer.name.asc(), Customer.id.asc())
        .all()
    )


def create_organization(
    db: Session,
    *,
    actor: User,
    name: str,
    work_location: Optional[str] = None,
    address: Optional[str] = None,
) -> Organization:
    ensure_role(actor.role, Role.ADMIN)

    organization = Organization(name=name.strip(), work_location=work_location, address=address)
    db.add(organization)
    db.flush()

    logger.info(
        "Organization created",
        extra={"created_by": actor.id, "organization_id": organization.id},
    )
    return organization


def update_organization(
    db: Session,
    *,
    actor: User,
    organization_id: str,
    changes: Mapping[str, Any],
) -> Organization:
    ensure_role(actor.role, Role.ADMIN)
    organization = get_organization(db, organization_id)

    updates = {k: v for k, v in changes.items() if k in _EDITABLE_FIELDS}
    if not updates:
        raise ValidationError("No valid fields provided for update")
    if "name" in updates and not updates["name"]:
        raise ValidationError.for_field("name", "name cannot be empty")

    for field, value in updates.items():
        setattr(organization, field, value)
    db.flush()

    logger.info(
        "Organization updated",
        extra={"updated_by": actor.id, "organization_id": organization.id, "updated_fields": sorted(updates)},
    )
    return organization


def delete_organization(db: Session, *, actor: User, organization_id: str) -> None:
    ensure_role(actor.role, Role.ADMIN)
    organization = get_organization(db, organization_id)

    in_use = db.query(TimeEntry.id).filter(TimeEntry.organization_id == organization.id).first()
    if in_use is not None:
        raise ConflictError("Organization has recorded time entries and cannot be deleted")
    has_customers = db.query(Customer.id).filter(Customer.organization_id == organization.id).first()
    if has_customers is not None:
        raise ConflictError("Organization still has customers; remove them first")

    db.query(UserOrganization).filter(UserOrganization.organization_id == organization.id).delete(
        synchronize_session=False
    )
    db.delete(organization)
    db.flush()

    logger.info("Organization deleted", extra={"deleted_by": actor.id, "organization_id": organization_id})


def add_member(db: Session, *, actor: User, organization_id: str, user_id: str) -> UserOrganization:
    ensure_role(actor.role, Role.ADMIN)
    organization = get_organization(db, organization_id)

    user = db.get(User, str(user_id))
    if user is None:
        raise NotFoundError("User not found")
    if is_member(db, user_id=user.id, organization_id=organization.id):
        raise ConflictError("User is already a member of this organization")

    membership = UserOrganization(user_id=user.id, organization_id=organization.id)
    db.add(membership)
    db.flush()

    logger.info(
        "User added to organization",
        extra={"added_by": actor.id, "user_id": user.id, "organization_id": organization.id},
    )
    return membership


def remove_member(db: Session, *, actor: User, organization_id: str, user_id: str) -> None:
    ensure_role(actor.role, Role.ADMIN)
    organization = get_organization(db, organization_id)

    removed = (
        db.query(UserOrganization)
        .filter(
            UserOrganization.organization_id == organization.id,
            UserOrganization.user_id == str(user_id),
        )
        .delete(synchronize_session=False)
    )
    if removed == 0:
        raise NotFoundError("User is not a member of this organization")
    db.flush()

    logger.info(
        "User removed from organization",
        extra={"removed_by": actor.id, "user_id": user_id, "organization_id": organization.id},
    )
