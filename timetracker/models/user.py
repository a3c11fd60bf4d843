from uuid import uuid4

from sqlalchemy import Boolean, Column, DateTime, Integer, String

from timetracker.core.authorization import Role
from timetracker.core.timeutil import as_utc, utcnow
from timetracker.database import Base


class User(Base):
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid4()))
    name = Column(String(100), nullable=False)
    email = Column(String(255), nullable=False, unique=True, index=True)
    password_hash = Column(String(255), nullable=False)
    role = Column(String(20), nullable=False, default=Role.USER.value, index=True)
    is_active = Column(Boolean, nullable=False, default=True)

    last_login = Column(DateTime(timezone=True), nullable=True)
    login_attempts = Column(Integer, nullable=False, default=0)
    lock_until = Column(DateTime(timezone=True), nullable=True)
    password_changed_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    def is_locked(self, now) -> bool:
        lock_until = as_utc(self.lock_until)
        return lock_until is not None and lock_until > as_utc(now)
