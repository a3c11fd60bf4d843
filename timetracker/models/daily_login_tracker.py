from uuid import uuid4

from sqlalchemy import Column, Date, DateTime, Float, ForeignKey, String, Text, UniqueConstraint

from timetracker.core.timeutil import utcnow, working_hours
from timetracker.database import Base


class DailyLoginTracker(Base):
    __tablename__ = "daily_login_trackers"
    __table_args__ = (
        UniqueConstraint("user_id", "login_date", name="uq_daily_login_trackers_user_date"),
    )

    id = Column(String(36), primary_key=True, default=lambda: str(uuid4()))
    user_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    login_date = Column(Date, nullable=False, index=True)

    first_login_time = Column(DateTime(timezone=True), nullable=False, index=True)
    day_end_time = Column(DateTime(timezone=True), nullable=True)

    ip_address = Column(String(45), nullable=True)
    user_agent = Column(Text, nullable=True)
    location = Column(String(255), nullable=True)
    notes = Column(Text, nullable=True)

    total_working_hours = Column(Float, nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    def recompute_working_hours(self) -> None:
        if self.first_login_time is not None and self.day_end_time is not None:
            self.total_working_hours = working_hours(self.first_login_time, self.day_end_time)
        else:
            self.total_working_hours = None
