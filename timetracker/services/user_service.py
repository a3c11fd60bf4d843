import logging
from typing import Any, Mapping, Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session

from timetracker.core.authorization import Role
from timetracker.core.config import Settings
from timetracker.core.errors import ConflictError, NotFoundError, ValidationError
from timetracker.core.pagination import LIKE_ESCAPE, PageRequest, contains_pattern, paginate
from timetracker.core.timeutil import utcnow
from timetracker.models.daily_login_tracker import DailyLoginTracker
from timetracker.models.organization import UserOrganization
from timetracker.models.time_entry import TimeEntry
from timetracker.models.user import User
from timetracker.services.auth_service import (
    ensure_email_available,
    hash_password,
    normalize_email,
    verify_password,
)

logger = logging.getLogger(__name__)

_ADMIN_EDITABLE_FIELDS = {"name", "email", "role", "is_active"}


def get_user(db: Session, user_id: str) -> User:
    user = db.get(User, str(user_id))
    if user is None:
        raise NotFoundError("User not found")
    return user


def list_users(
    db: Session,
    *,
    page: PageRequest,
    search: Optional[str] = None,
    role: Optional[Role] = None,
    is_active: Optional[bool] = None,
):
    q = db.query(User)
    if search:
        pattern = contains_pattern(search)
        q = q.filter(
            or_(User.name.ilike(pattern, escape=LIKE_ESCAPE), User.email.ilike(pattern, escape=LIKE_ESCAPE))
        )
    if role is not None:
        q = q.filter(User.role == Role(role).value)
    if is_active is not None:
        q = q.filter(User.is_active.is_(bool(is_active)))

    return paginate(q.order_by(User.created_at.desc(), User.id.asc()), page)


def create_user(
    db: Session,
    settings: Settings,
    *,
    actor: User,
    name: str,
    email: str,
    password: str,
    role: Role = Role.USER,
) -> User:
    ensure_email_available(db, email)

    now = utcnow()
    user = User(
        name=name.strip(),
        email=normalize_email(email),
        password_hash=hash_password(password, settings),
        role=Role(role).value,
        is_active=True,
        login_attempts=0,
        password_changed_at=now,
    )
    db.add(user)
    db.flush()

    logger.info(
        "User created by admin",
        extra={"created_by": actor.id, "created_user": user.id, "role": user.role},
    )
    return user


def update_user(db: Session, *, actor: User, user_id: str, changes: Mapping[str, Any]) -> User:
    user = get_user(db, user_id)

    updates = {k: v for k, v in changes.items() if k in _ADMIN_EDITABLE_FIELDS and v is not None}
    if not updates:
        raise ValidationError("No valid fields provided for update")

    if user.id == actor.id and updates.get("is_active") is False:
        raise ConflictError("You cannot deactivate your own account")

    if "email" in updates:
        ensure_email_available(db, updates["email"], exclude_user_id=user.id)
        updates["email"] = normalize_email(updates["email"])
    if "role" in updates:
        updates["role"] = Role(updates["role"]).value
    if "name" in updates:
        updates["name"] = updates["name"].strip()

    for field, value in updates.items():
        setattr(user, field, value)
    db.flush()

    logger.info(
        "User updated by admin",
        extra={"updated_by": actor.id, "target_user": user.id, "updated_fields": sorted(updates)},
    )
    return user


def delete_user(db: Session, *, actor: User, user_id: str) -> None:
    user = get_user(db, user_id)

    if user.id == actor.id:
        raise ConflictError("You cannot delete your own account")

    if user.role == Role.ADMIN.value:
        other_admins = (
            db.query(User.id)
            .filter(User.role == Role.ADMIN.value, User.id != user.id)
            .count()
        )
        if other_admins == 0:
            raise ConflictError("Cannot delete the last admin user")

    db.query(TimeEntry).filter(TimeEntry.user_id == user.id).delete(synchronize_session=False)
    db.query(DailyLoginTracker).filter(DailyLoginTracker.user_id == user.id).delete(synchronize_session=False)
    db.query(UserOrganization).filter(UserOrganization.user_id == user.id).delete(synchronize_session=False)
    db.delete(user)
    db.flush()

    logger.info(
        "User deleted by admin",
        extra={"deleted_by": actor.id, "deleted_user": user_id, "deleted_user_email": user.email},
    )


def update_profile(db: Session, *, user: User, name: str) -> User:
    user.name = name.strip()
    db.flush()
    logger.info("Profile updated", extra={"user_id": user.id, "updated_fields": ["name"]})
    return user


def change_password(
    db: Session,
    settings: Settings,
    *,
    user: User,
    current_password: str,
    new_password: str,
) -> User:
    if not verify_password(current_password, user.password_hash, settings):
        raise ValidationError.for_field("currentPassword", "Current password is incorrect")
    if current_password == new_password:
        raise ValidationError.for_field("newPassword", "New password must differ from the current password")

    user.password_hash = hash_password(new_password, settings)
    user.password_changed_at = utcnow()
    db.flush()

    logger.info("Password changed", extra={"user_id": user.id})
    return user
