import logging
import re
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Mapping, Optional

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from pydantic.alias_generators import to_camel
from sqlalchemy.orm import Session

from timetracker.core.authorization import Role, ensure_role, has_role
from timetracker.core.errors import ConflictError, ForbiddenError, NotFoundError, ValidationError
from timetracker.core.pagination import LIKE_ESCAPE, Page, PageRequest, contains_pattern
from timetracker.core.timeutil import as_utc, day_bounds, isoformat_utc, minutes_between, utcnow
from timetracker.models.customer import Customer
from timetracker.models.organization import Organization, UserOrganization
from timetracker.models.process import Activity, Process
from timetracker.models.time_entry import TimeEntry
from timetracker.models.user import User

logger = logging.getLogger(__name__)

COMPLETION_OPEN = "open"
COMPLETION_COMPLETED = "completed"
COMPLETION_ALL = "all"

SORTABLE_FIELDS = {
    "start_time": TimeEntry.start_time,
    "end_time": TimeEntry.end_time,
    "duration_minutes": TimeEntry.duration_minutes,
    "task_name": TimeEntry.task_name,
    "created_at": TimeEntry.created_at,
}

_PATCHABLE_FIELDS = {"task_name", "description", "notes", "start_time", "end_time"}
_REQUIRED_FIELDS = {"task_name", "start_time", "end_time"}


@dataclass(frozen=True)
class TimeEntryTarget:
    organization_id: str
    customer_id: str
    process_id: str
    activity_id: str


@dataclass(frozen=True)
class ResolvedTarget:
    organization: Organization
    customer: Customer
    process: Process
    activity: Activity


@dataclass(frozen=True)
class TimeEntryWithTarget:
    """A time entry joined with the names of everything it points at."""

    id: str
    user_id: str
    organization_id: str
    organization_name: str
    customer_id: str
    customer_name: str
    process_id: str
    process_name: str
    activity_id: str
    activity_name: str
    task_name: str
    description: Optional[str]
    notes: Optional[str]
    start_time: datetime
    end_time: Optional[datetime]
    duration_minutes: Optional[int]
    is_manual: bool
    breaks: list[dict[str, Any]]
    created_at: datetime
    updated_at: datetime

    @property
    def is_open(self) -> bool:
        return self.end_time is None

    @property
    def status(self) -> str:
        return COMPLETION_OPEN if self.is_open else COMPLETION_COMPLETED

    @property
    def project_name(self) -> str:
        return self.customer_name


@dataclass(frozen=True)
class TimeEntryFilters:
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    organization_id: Optional[str] = None
    customer_id: Optional[str] = None
    process_id: Optional[str] = None
    activity_id: Optional[str] = None
    search: Optional[str] = None
    completion: str = COMPLETION_ALL
    sort_by: str = "start_time"
    sort_order: str = "desc"
    timezone: str = "UTC"


def _snake(name: str) -> str:
    return re.sub(r"(?<!^)(?=[A-Z])", "_", name).lower()


def _joined_query(db: Session):
    return (
        db.query(
            TimeEntry,
            Organization.name.label("organization_name"),
            Customer.name.label("customer_name"),
            Process.name.label("process_name"),
            Activity.name.label("activity_name"),
        )
        .join(Organization, Organization.id == TimeEntry.organization_id)
        .join(Customer, Customer.id == TimeEntry.customer_id)
        .join(Process, Process.id == TimeEntry.process_id)
        .join(Activity, Activity.id == TimeEntry.activity_id)
    )


def _to_view(row) -> TimeEntryWithTarget:
    entry = row[0]
    return TimeEntryWithTarget(
        id=entry.id,
        user_id=entry.user_id,
        organization_id=entry.organization_id,
        organization_name=row.organization_name,
        customer_id=entry.customer_id,
        customer_name=row.customer_name,
        process_id=entry.process_id,
        process_name=row.process_name,
        activity_id=entry.activity_id,
        activity_name=row.activity_name,
        task_name=entry.task_name,
        description=entry.description,
        notes=entry.notes,
        start_time=as_utc(entry.start_time),
        end_time=as_utc(entry.end_time),
        duration_minutes=entry.duration_minutes,
        is_manual=bool(entry.is_manual),
        breaks=list(entry.breaks or []),
        created_at=as_utc(entry.created_at),
        updated_at=as_utc(entry.updated_at),
    )


def load_entry_view(db: Session, entry_id: str) -> TimeEntryWithTarget:
    row = _joined_query(db).filter(TimeEntry.id == str(entry_id)).first()
    if row is None:
        raise NotFoundError("Time entry not found")
    return _to_view(row)


def _get_open_entry(db: Session, user_id: str, *, for_update: bool = False) -> Optional[TimeEntry]:
    q = db.query(TimeEntry).filter(
        TimeEntry.user_id == str(user_id),
        TimeEntry.end_time.is_(None),
    )
    if for_update:
        q = q.with_for_update()
    return q.first()


def _get_owned_entry(db: Session, entry_id: str, user_id: str) -> TimeEntry:
    entry = (
        db.query(TimeEntry)
        .filter(TimeEntry.id == str(entry_id), TimeEntry.user_id == str(user_id))
        .first()
    )
    if entry is None:
        raise NotFoundError("Time entry not found")
    return entry


def _active_timer_conflict(view: TimeEntryWithTarget) -> ConflictError:
    return ConflictError(
        f"You already have an active timer running for project: {view.project_name}",
        data={
            "activeTimer": {
                "id": view.id,
                "taskName": view.task_name,
                "projectName": view.project_name,
                "startTime": isoformat_utc(view.start_time),
            }
        },
    )


def _validate_range(start_time: datetime, end_time: datetime) -> None:
    if as_utc(end_time) <= as_utc(start_time):
        raise ValidationError.for_field("endTime", "End time must be after start time")


def resolve_target(db: Session, user: User, target: TimeEntryTarget) -> ResolvedTarget:
    organization = db.get(Organization, str(target.organization_id))
    if organization is None:
        raise NotFoundError("Organization not found")

    customer = (
        db.query(Customer)
        .filter(
            Customer.id == str(target.customer_id),
            Customer.organization_id == organization.id,
        )
        .first()
    )
    if customer is None:
        raise NotFoundError("Customer not found or doesn't belong to the organization")

    process = db.get(Process, str(target.process_id))
    if process is None:
        raise NotFoundError("Process not found")

    activity = (
        db.query(Activity)
        .filter(Activity.id == str(target.activity_id), Activity.process_id == process.id)
        .first()
    )
    if activity is None:
        raise NotFoundError("Activity not found or doesn't belong to the process")

    if not has_role(user.role, Role.MANAGER):
        membership = (
            db.query(UserOrganization.id)
            .filter(
                UserOrganization.user_id == user.id,
                UserOrganization.organization_id == organization.id,
            )
            .first()
        )
        if membership is None:
            raise ForbiddenError("You don't have access to this organization")

    return ResolvedTarget(organization=organization, customer=customer, process=process, activity=activity)


def get_active_timer(db: Session, *, user_id: str) -> Optional[TimeEntryWithTarget]:
    row = (
        _joined_query(db)
        .filter(TimeEntry.user_id == str(user_id), TimeEntry.end_time.is_(None))
        .first()
    )
    return None if row is None else _to_view(row)


def start_timer(
    db: Session,
    *,
    user: User,
    target: TimeEntryTarget,
    task_name: str,
    description: Optional[str] = None,
    now: Optional[datetime] = None,
) -> TimeEntryWithTarget:
    """
    Open a new entry for the user.

    The partial unique index on open entries backs the up-front check, so a
    concurrent start that slips past the query still fails with the same
    ConflictError. The session is rolled back in that case.
    """
    now = as_utc(now) or utcnow()

    active = get_active_timer(db, user_id=user.id)
    if active is not None:
        raise _active_timer_conflict(active)

    resolve_target(db, user, target)

    entry = TimeEntry(
        user_id=user.id,
        organization_id=str(target.organization_id),
        customer_id=str(target.customer_id),
        process_id=str(target.process_id),
        activity_id=str(target.activity_id),
        task_name=task_name.strip(),
        description=description,
        start_time=now,
        end_time=None,
        duration_minutes=None,
        is_manual=False,
        breaks=[],
    )
    db.add(entry)
    try:
        db.flush()
    except IntegrityError:
        db.rollback()
        active = get_active_timer(db, user_id=user.id)
        if active is None:
            raise
        raise _active_timer_conflict(active)

    view = load_entry_view(db, entry.id)
    logger.info(
        "Timer started",
        extra={
            "user_id": user.id,
            "time_entry_id": view.id,
            "project_name": view.project_name,
            "activity_name": view.activity_name,
        },
    )
    return view


def stop_timer(
    db: Session,
    *,
    user_id: str,
    description: Optional[str] = None,
    now: Optional[datetime] = None,
) -> TimeEntryWithTarget:
    now = as_utc(now) or utcnow()

    entry = _get_open_entry(db, user_id, for_update=True)
    if entry is None:
        raise ConflictError("No active timer found")

    _validate_range(entry.start_time, now)

    entry.end_time = now
    entry.duration_minutes = minutes_between(entry.start_time, now)
    if description:
        entry.description = description
    entry.breaks = _close_open_break(entry.breaks, now)
    db.flush()

    logger.info(
        "Timer stopped",
        extra={"user_id": user_id, "time_entry_id": entry.id, "duration_minutes": entry.duration_minutes},
    )
    return load_entry_view(db, entry.id)


def create_manual_entry(
    db: Session,
    *,
    user: User,
    target: TimeEntryTarget,
    task_name: str,
    start_time: datetime,
    end_time: datetime,
    description: Optional[str] = None,
    notes: Optional[str] = None,
) -> TimeEntryWithTarget:
    _validate_range(start_time, end_time)
    resolve_target(db, user, target)

    entry = TimeEntry(
        user_id=user.id,
        organization_id=str(target.organization_id),
        customer_id=str(target.customer_id),
        process_id=str(target.process_id),
        activity_id=str(target.activity_id),
        task_name=task_name.strip(),
        description=description,
        notes=notes,
        start_time=as_utc(start_time),
        end_time=as_utc(end_time),
        duration_minutes=minutes_between(start_time, end_time),
        is_manual=True,
        breaks=[],
    )
    db.add(entry)
    db.flush()

    logger.info(
        "Manual time entry created",
        extra={"user_id": user.id, "time_entry_id": entry.id, "duration_minutes": entry.duration_minutes},
    )
    return load_entry_view(db, entry.id)


def _ensure_completed(entry: TimeEntry) -> None:
    if entry.end_time is None:
        raise ConflictError("Only completed time entries can be edited")


def update_entry(
    db: Session,
    *,
    entry_id: str,
    user_id: str,
    changes: Mapping[str, Any],
) -> TimeEntryWithTarget:
    entry = _get_owned_entry(db, entry_id, user_id)
    _ensure_completed(entry)

    unknown = set(changes) - _PATCHABLE_FIELDS
    if unknown:
        raise ValidationError(
            "Validation failed",
            errors=[{"field": to_camel(name), "message": "Field cannot be updated"} for name in sorted(unknown)],
        )
    if not changes:
        raise ValidationError("No valid fields provided for update")

    for name in _REQUIRED_FIELDS & set(changes):
        if changes[name] is None:
            raise ValidationError.for_field(to_camel(name), f"{to_camel(name)} cannot be empty")

    start_time = as_utc(changes.get("start_time", entry.start_time))
    end_time = as_utc(changes.get("end_time", entry.end_time))
    _validate_range(start_time, end_time)

    for name, value in changes.items():
        if name == "task_name":
            value = value.strip()
        setattr(entry, name, value)
    entry.start_time = start_time
    entry.end_time = end_time
    entry.duration_minutes = minutes_between(start_time, end_time)
    db.flush()

    logger.info(
        "Time entry updated",
        extra={"user_id": user_id, "time_entry_id": entry.id, "updated_fields": sorted(changes)},
    )
    return load_entry_view(db, entry.id)


def delete_entry(db: Session, *, entry_id: str, user_id: str) -> None:
    entry = _get_owned_entry(db, entry_id, user_id)
    if entry.end_time is None:
        raise ConflictError("Only completed time entries can be deleted")

    db.delete(entry)
    db.flush()

    logger.info("Time entry deleted", extra={"user_id": user_id, "time_entry_id": entry_id})


def get_entry(db: Session, *, entry_id: str, user_id: str) -> TimeEntryWithTarget:
    entry = _get_owned_entry(db, entry_id, user_id)
    return load_entry_view(db, entry.id)


def list_entries(
    db: Session,
    *,
    requester: User,
    user_id: str,
    filters: TimeEntryFilters,
    page: PageRequest,
) -> tuple[list[TimeEntryWithTarget], Page]:
    if str(user_id) != str(requester.id):
        ensure_role(requester.role, Role.MANAGER)
        if db.get(User, str(user_id)) is None:
            raise NotFoundError("User not found")

    sort_column = SORTABLE_FIELDS.get(_snake(filters.sort_by))
    if sort_column is None:
        raise ValidationError.for_field(
            "sortBy",
            f"sortBy must be one of: {', '.join(sorted(SORTABLE_FIELDS))}",
        )

    q = _joined_query(db).filter(TimeEntry.user_id == str(user_id))

    if filters.start_date is not None:
        lower, _ = day_bounds(filters.start_date, filters.timezone)
        q = q.filter(TimeEntry.start_time >= lower)
    if filters.end_date is not None:
        _, upper = day_bounds(filters.end_date, filters.timezone)
        q = q.filter(TimeEntry.start_time < upper)

    if filters.organization_id is not None:
        q = q.filter(TimeEntry.organization_id == str(filters.organization_id))
    if filters.customer_id is not None:
        q = q.filter(TimeEntry.customer_id == str(filters.customer_id))
    if filters.process_id is not None:
        q = q.filter(TimeEntry.process_id == str(filters.process_id))
    if filters.activity_id is not None:
        q = q.filter(TimeEntry.activity_id == str(filters.activity_id))

    if filters.search:
        pattern = contains_pattern(filters.search)
        q = q.filter(
            or_(
                TimeEntry.task_name.ilike(pattern, escape=LIKE_ESCAPE),
                TimeEntry.description.ilike(pattern, escape=LIKE_ESCAPE),
            )
        )

    if filters.completion == COMPLETION_OPEN:
        q = q.filter(TimeEntry.end_time.is_(None))
    elif filters.completion == COMPLETION_COMPLETED:
        q = q.filter(TimeEntry.end_time.is_not(None))

    total = q.order_by(None).count()

    ordering = sort_column.asc() if filters.sort_order == "asc" else sort_column.desc()
    rows = (
        q.order_by(ordering, TimeEntry.id.asc())
        .offset(page.offset)
        .limit(page.limit)
        .all()
    )

    return [_to_view(r) for r in rows], Page(current_page=page.page, limit=page.limit, total_items=total)


def _close_open_break(breaks, now: datetime) -> list[dict[str, Any]]:
    closed = []
    for item in breaks or []:
        item = dict(item)
        if item.get("endTime") is None:
            item["endTime"] = isoformat_utc(now)
        closed.append(item)
    return closed


def start_break(
    db: Session,
    *,
    user_id: str,
    reason: str = "Break",
    now: Optional[datetime] = None,
) -> TimeEntryWithTarget:
    """Breaks are recorded on the open entry only; they never change its duration."""
    now = as_utc(now) or utcnow()

    entry = _get_open_entry(db, user_id, for_update=True)
    if entry is None:
        raise ConflictError("No active timer found")

    breaks = list(entry.breaks or [])
    if any(item.get("endTime") is None for item in breaks):
        raise ConflictError("A break is already in progress")

    breaks.append({"startTime": isoformat_utc(now), "endTime": None, "reason": reason or "Break"})
    entry.breaks = breaks
    db.flush()

    logger.info("Break started", extra={"user_id": user_id, "time_entry_id": entry.id})
    return load_entry_view(db, entry.id)


def end_break(db: Session, *, user_id: str, now: Optional[datetime] = None) -> TimeEntryWithTarget:
    now = as_utc(now) or utcnow()

    entry = _get_open_entry(db, user_id, for_update=True)
    if entry is None:
        raise ConflictError("No active timer found")

    breaks = [dict(item) for item in entry.breaks or []]
    if not breaks or breaks[-1].get("endTime") is not None:
        raise ConflictError("No break in progress")

    breaks[-1]["endTime"] = isoformat_utc(now)
    entry.breaks = breaks
    db.flush()

    logger.info("Break ended", extra={"user_id": user_id, "time_entry_id": entry.id})
    return load_entry_view(db, entry.id)
