"""Customers, processes and activities: the things time is booked against."""

import logging
from typing import Any, Mapping, Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session

from timetracker.core.authorization import Role, ensure_role, has_role
from timetracker.core.errors import ConflictError, NotFoundError, ValidationError
from timetracker.core.pagination import LIKE_ESCAPE, PageRequest, contains_pattern, paginate
from timetracker.models.customer import Customer
from timetracker.models.organization import UserOrganization
from timetracker.models.process import Activity, Process
from timetracker.models.time_entry import TimeEntry
from timetracker.models.user import User
from timetracker.services.organization_service import get_organization

logger = logging.getLogger(__name__)

_CUSTOMER_FIELDS = {"name", "description", "contact_email", "contact_phone", "address", "is_active"}
_PROCESS_FIELDS = {"name", "description", "category", "is_active"}
_ACTIVITY_FIELDS = {"name", "description", "is_active"}


def _apply_changes(row, changes: Mapping[str, Any], allowed: set[str]) -> list[str]:
    updates = {k: v for k, v in changes.items() if k in allowed}
    if not updates:
        raise ValidationError("No valid fields provided for update")
    if "name" in updates and not updates["name"]:
        raise ValidationError.for_field("name", "name cannot be empty")
    if "is_active" in updates and updates["is_active"] is None:
        raise ValidationError.for_field("isActive", "isActive cannot be empty")

    for field, value in updates.items():
        setattr(row, field, value)
    return sorted(updates)


# Customers


def get_customer(db: Session, customer_id: str) -> Customer:
    customer = db.get(Customer, str(customer_id))
    if customer is None:
        raise NotFoundError("Customer not found")
    return customer


def list_customers(
    db: Session,
    *,
    requester: User,
    page: PageRequest,
    search: Optional[str] = None,
    organization_id: Optional[str] = None,
    is_active: Optional[bool] = None,
):
    q = db.query(Customer)
    if not has_role(requester.role, Role.MANAGER):
        member_orgs = db.query(UserOrganization.organization_id).filter(
            UserOrganization.user_id == requester.id
        )
        q = q.filter(Customer.organization_id.in_(member_orgs))
    if organization_id is not None:
        q = q.filter(Customer.organization_id == str(organization_id))
    if is_active is not None:
        q = q.filter(Customer.is_active.is_(bool(is_active)))
    if search:
        pattern = contains_pattern(search)
        q = q.filter(
            or_(
                Customer.name.ilike(pattern, escape=LIKE_ESCAPE),
                Customer.description.ilike(pattern, escape=LIKE_ESCAPE),
            )
        )

    return paginate(q.order_by(Customer.name.asc(), Customer.id.asc()), page)


def create_customer(
    db: Session,
    *,
    actor: User,
    organization_id: str,
    name: str,
    description: Optional[str] = None,
    contact_email: Optional[str] = None,
    contact_phone: Optional[str] = None,
    address: Optional[str] = None,
) -> Customer:
    ensure_role(actor.role, Role.ADMIN)
    organization = get_organization(db, organization_id)

    customer = Customer(
        organization_id=organization.id,
        name=name.strip(),
        description=description,
        contact_email=contact_email.lower() if contact_email else None,
        contact_phone=contact_phone,
        address=address,
        is_active=True,
    )
    db.add(customer)
    db.flush()

    logger.info(
        "Customer created",
        extra={"created_by": actor.id, "customer_id": customer.id, "organization_id": organization.id},
    )
    return customer


def update_customer(db: Session, *, actor: User, customer_id: str, changes: Mapping[str, Any]) -> Customer:
    ensure_role(actor.role, Role.ADMIN)
    customer = get_customer(db, customer_id)
    fields = _apply_changes(customer, changes, _CUSTOMER_FIELDS)
    db.flush()

    logger.info(
        "Customer updated",
        extra={"updated_by": actor.id, "customer_id": customer.id, "updated_fields": fields},
    )
    return customer


def delete_customer(db: Session, *, actor: User, customer_id: str) -> None:
    ensure_role(actor.role, Role.ADMIN)
    customer = get_customer(db, customer_id)

    if db.query(TimeEntry.id).filter(TimeEntry.customer_id == customer.id).first() is not None:
        raise ConflictError("Customer has recorded time entries; deactivate it instead")

    db.delete(customer)
    db.flush()
    logger.info("Customer deleted", extra={"deleted_by": actor.id, "customer_id": customer_id})


# Processes and activities


def get_process(db: Session, process_id: str) -> Process:
    process = db.get(Process, str(process_id))
    if process is None:
        raise NotFoundError("Process not found")
    return process


def get_activity(db: Session, activity_id: str) -> Activity:
    activity = db.get(Activity, str(activity_id))
    if activity is None:
        raise NotFoundError("Activity not found")
    return activity


def list_activities(
    db: Session,
    process_ids: list[str],
    *,
    include_inactive: bool = False,
) -> dict[str, list[Activity]]:
    """Activities grouped by process id, in name order."""
    grouped: dict[str, list[Activity]] = {pid: [] for pid in process_ids}
    if not process_ids:
        return grouped

    q = db.query(Activity).filter(Activity.process_id.in_(process_ids))
    if not include_inactive:
        q = q.filter(Activity.is_active.is_(True))
    for activity in q.order_by(Activity.name.asc(), Activity.id.asc()):
        grouped[activity.process_id].append(activity)
    return grouped


def list_processes(
    db: Session,
    *,
    include_inactive: bool = False,
    category: Optional[str] = None,
) -> list[Process]:
    q = db.query(Process)
    if not include_inactive:
        q = q.filter(Process.is_active.is_(True))
    if category:
        q = q.filter(Process.category == category)
    return q.order_by(Process.name.asc(), Process.id.asc()).all()


def create_process(
    db: Session,
    *,
    actor: User,
    name: str,
    description: Optional[str] = None,
    category: Optional[str] = None,
) -> Process:
    ensure_role(actor.role, Role.ADMIN)

    process = Process(name=name.strip(), description=description, category=category, is_active=True)
    db.add(process)
    db.flush()

    logger.info("Process created", extra={"created_by": actor.id, "process_id": process.id})
    return process


def update_process(db: Session, *, actor: User, process_id: str, changes: Mapping[str, Any]) -> Process:
    ensure_role(actor.role, Role.ADMIN)
    process = get_process(db, process_id)
    fields = _apply_changes(process, changes, _PROCESS_FIELDS)
    db.flush()

    logger.info(
        "Process updated",
        extra={"updated_by": actor.id, "process_id": process.id, "updated_fields": fields},
    )
    return process


def delete_process(db: Session, *, actor: User, process_id: str) -> None:
    ensure_role(actor.role, Role.ADMIN)
    process = get_process(db, process_id)

    if db.query(TimeEntry.id).filter(TimeEntry.process_id == process.id).first() is not None:
        raise ConflictError("Process has recorded time entries; deactivate it instead")

    db.query(Activity).filter(Activity.process_id == process.id).delete(synchronize_session=False)
    db.delete(process)
    db.flush()
    logger.info("Process deleted", extra={"deleted_by": actor.id, "process_id": process_id})


def create_activity(
    db: Session,
    *,
    actor: User,
    process_id: str,
    name: str,
    description: Optional[str] = None,
) -> Activity:
    ensure_role(actor.role, Role.ADMIN)
    process = get_process(db, process_id)

    activity = Activity(process_id=process.id, name=name.strip(), description=description, is_active=True)
    db.add(activity)
    db.flush()

    logger.info(
        "Activity created",
        extra={"created_by": actor.id, "activity_id": activity.id, "process_id": process.id},
    )
    return activity


def update_activity(db: Session, *, actor: User, activity_id: str, changes: Mapping[str, Any]) -> Activity:
    ensure_role(actor.role, Role.ADMIN)
    activity = get_activity(db, activity_id)
    fields = _apply_changes(activity, changes, _ACTIVITY_FIELDS)
    db.flush()

    logger.info(
        "Activity updated",
        extra={"updated_by": actor.id, "activity_id": activity.id, "updated_fields": fields},
    )
    return activity


def delete_activity(db: Session, *, actor: User, activity_id: str) -> None:
    ensure_role(actor.role, Role.ADMIN)
    activity = get_activity(db, activity_id)

    if db.query(TimeEntry.id).filter(TimeEntry.activity_id == activity.id).first() is not None:
        raise ConflictError("Activity has recorded time entries; deactivate it instead")

    db.delete(activity)
    db.flush()
    logger.info("Activity deleted", extra={"deleted_by": actor.id, "activity_id": activity_id})
