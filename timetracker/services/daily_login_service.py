import logging
from dataclasses import dataclass
from datetime import date
from typing import Optional
from uuid import uuid4

from sqlalchemy import and_, func
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from timetracker.core.authorization import Role, ensure_role
from timetracker.core.config import Settings
from timetracker.core.errors import ConflictError, NotFoundError, ValidationError
from timetracker.core.pagination import Page, PageRequest, paginate
from timetracker.core.timeutil import as_utc, format_hours, isoformat_utc, local_date, utcnow
from timetracker.models.daily_login_tracker import DailyLoginTracker
from timetracker.models.user import User

logger = logging.getLogger(__name__)

_INSERT_BY_DIALECT = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


@dataclass(frozen=True)
class FirstLoginResult:
    tracker: DailyLoginTracker
    is_first_login: bool


@dataclass(frozen=True)
class DayHistory:
    trackers: list[DailyLoginTracker]
    page: Page
    total_days: int
    completed_days: int
    total_working_hours: float
    average_hours_per_day: float


@dataclass(frozen=True)
class TeamMemberStatus:
    user: User
    tracker: Optional[DailyLoginTracker]

    @property
    def has_started_day(self) -> bool:
        return self.tracker is not None

    @property
    def has_ended_day(self) -> bool:
        return self.tracker is not None and self.tracker.day_end_time is not None


@dataclass(frozen=True)
class TeamOverview:
    login_date: date
    members: list[TeamMemberStatus]

    @property
    def users_started(self) -> int:
        return sum(1 for m in self.members if m.has_started_day)

    @property
    def users_ended(self) -> int:
        return sum(1 for m in self.members if m.has_ended_day)


def today_for(settings: Settings, now=None) -> date:
    return local_date(as_utc(now) or utcnow(), settings.login_date_timezone)


def get_tracker_for_date(db: Session, *, user_id: str, login_date: date) -> Optional[DailyLoginTracker]:
    return (
        db.query(DailyLoginTracker)
        .filter(
            DailyLoginTracker.user_id == str(user_id),
            DailyLoginTracker.login_date == login_date,
        )
        .first()
    )


def _insert_if_absent(db: Session, values: dict) -> bool:
    """INSERT ... ON CONFLICT (user_id, login_date) DO NOTHING; True when a row was written."""
    insert = _INSERT_BY_DIALECT.get(db.get_bind().dialect.name)
    if insert is not None:
        stmt = (
            insert(DailyLoginTracker.__table__)
            .values(**values)
            .on_conflict_do_nothing(index_elements=["user_id", "login_date"])
        )
        return db.execute(stmt).rowcount == 1

    try:
        with db.begin_nested():
            db.add(DailyLoginTracker(**values))
        return True
    except IntegrityError:
        return False


def track_first_login(
    db: Session,
    settings: Settings,
    *,
    user_id: str,
    login_time,
    ip_address: Optional[str] = None,
    user_agent: Optional[str] = None,
    location: Optional[str] = None,
) -> FirstLoginResult:
    """
    Record the first successful login of the calendar day.

    Later logins on the same date leave the existing row untouched.
    """
    login_time = as_utc(login_time)
    login_date = local_date(login_time, settings.login_date_timezone)
    now = utcnow()

    created = _insert_if_absent(
        db,
        {
            "id": str(uuid4()),
            "user_id": str(user_id),
            "login_date": login_date,
            "first_login_time": login_time,
            "ip_address": ip_address,
            "user_agent": user_agent,
            "location": location,
            "created_at": now,
            "updated_at": now,
        },
    )

    tracker = get_tracker_for_date(db, user_id=user_id, login_date=login_date)
    if tracker is None:
        raise ConflictError("Daily login tracker could not be recorded")

    if created:
        logger.info(
            "First login of the day recorded",
            extra={"user_id": user_id, "login_date": login_date.isoformat(), "tracker_id": tracker.id},
        )

    return FirstLoginResult(tracker=tracker, is_first_login=created)


def end_day(
    db: Session,
    settings: Settings,
    *,
    user_id: str,
    notes: Optional[str] = None,
    location: Optional[str] = None,
    now=None,
) -> DailyLoginTracker:
    now = as_utc(now) or utcnow()
    login_date = local_date(now, settings.login_date_timezone)

    tracker = (
        db.query(DailyLoginTracker)
        .filter(
            DailyLoginTracker.user_id == str(user_id),
            DailyLoginTracker.login_date == login_date,
        )
        .with_for_update()
        .first()
    )

    if tracker is None:
        raise ConflictError("No login recorded for today. Cannot end day without starting it.")

    if tracker.day_end_time is not None:
        raise ConflictError(
            "Day has already been ended.",
            data={
                "endTime": isoformat_utc(tracker.day_end_time),
                "totalHours": format_hours(tracker.total_working_hours),
            },
        )

    tracker.day_end_time = now
    if notes:
        tracker.notes = notes
    if location:
        tracker.location = location
    tracker.recompute_working_hours()
    db.flush()

    logger.info(
        "User ended day",
        extra={
            "user_id": user_id,
            "tracker_id": tracker.id,
            "start_time": tracker.first_login_time,
            "end_time": tracker.day_end_time,
            "total_hours": tracker.total_working_hours,
        },
    )
    return tracker


def update_tracker(
    db: Session,
    *,
    tracker_id: str,
    user_id: str,
    changes: dict,
) -> DailyLoginTracker:
    tracker = (
        db.query(DailyLoginTracker)
        .filter(DailyLoginTracker.id == str(tracker_id), DailyLoginTracker.user_id == str(user_id))
        .first()
    )
    if tracker is None:
        raise NotFoundError("Tracker not found or you don't have permission to update it")

    updates = {k: v for k, v in changes.items() if k in ("notes", "location")}
    if not updates:
        raise ValidationError("No valid fields to update")

    for field, value in updates.items():
        setattr(tracker, field, value)
    db.flush()

    logger.info(
        "Daily tracker updated",
        extra={"user_id": user_id, "tracker_id": tracker.id, "updated_fields": sorted(updates)},
    )
    return tracker


def get_user_day_history(
    db: Session,
    *,
    user_id: str,
    page: PageRequest,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
) -> DayHistory:
    q = db.query(DailyLoginTracker).filter(DailyLoginTracker.user_id == str(user_id))
    if start_date is not None:
        q = q.filter(DailyLoginTracker.login_date >= start_date)
    if end_date is not None:
        q = q.filter(DailyLoginTracker.login_date <= end_date)

    trackers, page_info = paginate(q.order_by(DailyLoginTracker.login_date.desc()), page)

    completed_days, total_hours = q.with_entities(
        func.count(DailyLoginTracker.day_end_time),
        func.coalesce(func.sum(DailyLoginTracker.total_working_hours), 0),
    ).one()
    total_hours = round(float(total_hours or 0), 2)
    completed_days = int(completed_days or 0)

    return DayHistory(
        trackers=trackers,
        page=page_info,
        total_days=page_info.total_items,
        completed_days=completed_days,
        total_working_hours=total_hours,
        average_hours_per_day=round(total_hours / completed_days, 2) if completed_days else 0.0,
    )


def get_team_overview(db: Session, *, login_date: date, requester_role) -> TeamOverview:
    ensure_role(requester_role, Role.MANAGER)

    rows = (
        db.query(User, DailyLoginTracker)
        .outerjoin(
            DailyLoginTracker,
            and_(
                DailyLoginTracker.user_id == User.id,
                DailyLoginTracker.login_date == login_date,
            ),
        )
        .filter(User.is_active.is_(True))
        .order_by(User.name.asc(), User.id.asc())
        .all()
    )

    return TeamOverview(
        login_date=login_date,
        members=[TeamMemberStatus(user=user, tracker=tracker) for user, tracker in rows],
    )
