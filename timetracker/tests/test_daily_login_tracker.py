from dataclasses import replace
from datetime import date, datetime, timedelta, timezone

import pytest

from timetracker.core.authorization import Role
from timetracker.core.errors import ConflictError, ForbiddenError, NotFoundError, ValidationError
from timetracker.core.pagination import PageRequest
from timetracker.core.timeutil import as_utc
from timetracker.models.daily_login_tracker import DailyLoginTracker
from timetracker.services import daily_login_service

MORNING = datetime(2026, 3, 2, 8, 30, tzinfo=timezone.utc)


def _trackers(db, user_id):
    return db.query(DailyLoginTracker).filter(DailyLoginTracker.user_id == user_id).all()


def test_first_login_creates_one_row_per_day(db, settings, user_factory):
    user = user_factory()

    first = daily_login_service.track_first_login(
        db, settings, user_id=user.id, login_time=MORNING, ip_address="10.0.0.1", user_agent="pytest"
    )
    db.commit()
    second = daily_login_service.track_first_login(
        db, settings, user_id=user.id, login_time=MORNING + timedelta(hours=3), ip_address="10.0.0.2"
    )
    db.commit()

    assert first.is_first_login is True
    assert second.is_first_login is False
    assert second.tracker.id == first.tracker.id
    assert first.tracker.login_date == date(2026, 3, 2)

    rows = _trackers(db, user.id)
    assert len(rows) == 1
    assert rows[0].ip_address == "10.0.0.1"


def test_login_on_next_day_starts_new_tracker(db, settings, user_factory):
    user = user_factory()

    daily_login_service.track_first_login(db, settings, user_id=user.id, login_time=MORNING)
    result = daily_login_service.track_first_login(
        db, settings, user_id=user.id, login_time=MORNING + timedelta(days=1)
    )
    db.commit()

    assert result.is_first_login is True
    assert len(_trackers(db, user.id)) == 2


def test_login_date_follows_configured_zone(db, settings, user_factory):
    user = user_factory()
    tokyo = replace(settings, login_date_timezone="Asia/Tokyo")

    # 20:00 UTC on the 2nd is already the 3rd in Tokyo.
    result = daily_login_service.track_first_login(
        db, tokyo, user_id=user.id, login_time=datetime(2026, 3, 2, 20, 0, tzinfo=timezone.utc)
    )
    db.commit()

    assert result.tracker.login_date == date(2026, 3, 3)


def test_end_day_records_hours_once(db, settings, user_factory):
    user = user_factory()
    daily_login_service.track_first_login(db, settings, user_id=user.id, login_time=MORNING)
    db.commit()

    tracker = daily_login_service.end_day(
        db, settings, user_id=user.id, notes="Done", now=MORNING + timedelta(hours=8, minutes=15)
    )
    db.commit()

    assert tracker.total_working_hours == 8.25
    assert tracker.notes == "Done"

    with pytest.raises(ConflictError) as exc_info:
        daily_login_service.end_day(db, settings, user_id=user.id, now=MORNING + timedelta(hours=9))

    assert exc_info.value.message == "Day has already been ended."
    assert exc_info.value.data["totalHours"] == "8h 15m"


def test_end_day_without_login(db, settings, user_factory):
    user = user_factory()

    with pytest.raises(ConflictError, match="No login recorded for today"):
        daily_login_service.end_day(db, settings, user_id=user.id, now=MORNING)


def test_update_tracker_only_touches_notes_and_location(db, settings, user_factory):
    user = user_factory()
    other = user_factory()
    result = daily_login_service.track_first_login(db, settings, user_id=user.id, login_time=MORNING)
    db.commit()

    tracker = daily_login_service.update_tracker(
        db,
        tracker_id=result.tracker.id,
        user_id=user.id,
        changes={"location": "Office", "first_login_time": MORNING - timedelta(hours=5)},
    )
    db.commit()
    assert tracker.location == "Office"
    assert as_utc(tracker.first_login_time) == MORNING

    with pytest.raises(ValidationError):
        daily_login_service.update_tracker(db, tracker_id=tracker.id, user_id=user.id, changes={})
    with pytest.raises(NotFoundError):
        daily_login_service.update_tracker(
            db, tracker_id=tracker.id, user_id=other.id, changes={"notes": "mine now"}
        )


def test_history_summary_spans_all_pages(db, settings, user_factory):
    user = user_factory()
    for day, hours in enumerate([8, 6, 7]):
        start = MORNING + timedelta(days=day)
        daily_login_service.track_first_login(db, settings, user_id=user.id, login_time=start)
        daily_login_service.end_day(db, settings, user_id=user.id, now=start + timedelta(hours=hours))
    daily_login_service.track_first_login(db, settings, user_id=user.id, login_time=MORNING + timedelta(days=3))
    db.commit()

    history = daily_login_service.get_user_day_history(db, user_id=user.id, page=PageRequest(page=1, limit=2))

    assert [t.login_date for t in history.trackers] == [date(2026, 3, 5), date(2026, 3, 4)]
    assert history.total_days == 4
    assert history.completed_days == 3
    assert history.total_working_hours == 21.0
    assert history.average_hours_per_day == 7.0
    assert history.page.total_pages == 2

    ranged = daily_login_service.get_user_day_history(
        db,
        user_id=user.id,
        page=PageRequest(page=1, limit=10),
        start_date=date(2026, 3, 3),
        end_date=date(2026, 3, 4),
    )
    assert ranged.total_days == 2
    assert ranged.total_working_hours == 13.0


def test_team_overview_counts_started_and_ended(db, settings, user_factory):
    manager = user_factory(role=Role.MANAGER, name="Alice")
    worker = user_factory(name="Bob")
    user_factory(name="Carol")
    user_factory(name="Dave", is_active=False)

    daily_login_service.track_first_login(db, settings, user_id=manager.id, login_time=MORNING)
    daily_login_service.track_first_login(db, settings, user_id=worker.id, login_time=MORNING)
    daily_login_service.end_day(db, settings, user_id=worker.id, now=MORNING + timedelta(hours=4))
    db.commit()

    overview = daily_login_service.get_team_overview(
        db, login_date=date(2026, 3, 2), requester_role=manager.role
    )

    assert [m.user.name for m in overview.members] == ["Alice", "Bob", "Carol"]
    assert overview.users_started == 2
    assert overview.users_ended == 1
    assert [m.has_started_day for m in overview.members] == [True, True, False]


def test_team_overview_requires_manager(db, user_factory):
    user = user_factory()

    with pytest.raises(ForbiddenError):
        daily_login_service.get_team_overview(db, login_date=date(2026, 3, 2), requester_role=user.role)
