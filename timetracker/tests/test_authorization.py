from datetime import datetime, timedelta, timezone

import pytest

from timetracker.core.authorization import Role, ensure_role, has_role, role_level
from timetracker.core.errors import ConflictError, ForbiddenError, ValidationError
from timetracker.core.pagination import PageRequest
from timetracker.models.daily_login_tracker import DailyLoginTracker
from timetracker.models.time_entry import TimeEntry
from timetracker.models.user import User
from timetracker.services import auth_service, daily_login_service, time_engine, user_service


@pytest.mark.parametrize(
    "role,minimum,allowed",
    [
        (Role.ADMIN, Role.MANAGER, True),
        (Role.MANAGER, Role.MANAGER, True),
        (Role.USER, Role.MANAGER, False),
        ("admin", Role.ADMIN, True),
        ("superuser", Role.USER, False),
    ],
)
def test_role_hierarchy(role, minimum, allowed):
    assert has_role(role, minimum) is allowed


def test_unknown_role_ranks_lowest():
    assert role_level("ghost") == 0
    assert role_level(Role.USER) == 1
    with pytest.raises(ForbiddenError):
        ensure_role("ghost", Role.USER)


def test_admin_creates_and_lists_users(db, settings, user_factory):
    admin = user_factory(role=Role.ADMIN, name="Admin")
    user_service.create_user(
        db,
        settings,
        actor=admin,
        name="Mia Manager",
        email="Mia@Example.com",
        password="Str0ng!Pass",
        role=Role.MANAGER,
    )
    user_factory(name="Otto", is_active=False)
    db.commit()

    users, page = user_service.list_users(db, page=PageRequest(1, 10), search="mia")
    assert [u.email for u in users] == ["mia@example.com"]
    assert users[0].role == "manager"

    users, page = user_service.list_users(db, page=PageRequest(1, 10), is_active=False)
    assert [u.name for u in users] == ["Otto"]
    assert page.total_items == 1


def test_user_search_treats_wildcards_literally(db, user_factory):
    user_factory(name="Ann")
    user_factory(name="100% Remote")
    db.commit()

    users, _ = user_service.list_users(db, page=PageRequest(1, 10), search="%")
    assert [u.name for u in users] == ["100% Remote"]

    users, _ = user_service.list_users(db, page=PageRequest(1, 10), search="A_n")
    assert users == []


def test_admin_cannot_deactivate_or_delete_self(db, user_factory):
    admin = user_factory(role=Role.ADMIN)

    with pytest.raises(ConflictError, match="deactivate your own account"):
        user_service.update_user(db, actor=admin, user_id=admin.id, changes={"is_active": False})
    with pytest.raises(ConflictError, match="delete your own account"):
        user_service.delete_user(db, actor=admin, user_id=admin.id)


def test_last_admin_cannot_be_deleted(db, user_factory):
    admin = user_factory(role=Role.ADMIN)
    manager = user_factory(role=Role.MANAGER)

    with pytest.raises(ConflictError, match="last admin"):
        user_service.delete_user(db, actor=manager, user_id=admin.id)


def test_delete_user_removes_their_records(db, settings, user_factory, target_factory):
    admin = user_factory(role=Role.ADMIN)
    user = user_factory()
    target = target_factory(member=user)
    start = datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)
    time_engine.create_manual_entry(
        db, user=user, target=target, task_name="Work", start_time=start, end_time=start + timedelta(hours=1)
    )
    daily_login_service.track_first_login(db, settings, user_id=user.id, login_time=start)
    db.commit()

    user_service.delete_user(db, actor=admin, user_id=user.id)
    db.commit()

    assert db.get(User, user.id) is None
    assert db.query(TimeEntry).filter(TimeEntry.user_id == user.id).count() == 0
    assert db.query(DailyLoginTracker).filter(DailyLoginTracker.user_id == user.id).count() == 0


def test_change_password_checks_current(db, settings, user_factory):
    user = user_factory(password="Old#Passw0rd")

    with pytest.raises(ValidationError) as exc_info:
        user_service.change_password(
            db, settings, user=user, current_password="nope", new_password="New#Passw0rd"
        )
    assert exc_info.value.errors[0]["field"] == "currentPassword"

    user_service.change_password(
        db, settings, user=user, current_password="Old#Passw0rd", new_password="New#Passw0rd"
    )
    db.commit()
    assert auth_service.verify_password("New#Passw0rd", user.password_hash, settings)
    assert user.password_changed_at is not None
