from uuid import uuid4

from sqlalchemy import JSON, Boolean, Column, DateTime, ForeignKey, Index, Integer, String, Text, text

from timetracker.core.timeutil import utcnow
from timetracker.database import Base


class TimeEntry(Base):
    __tablename__ = "time_entries"
    __table_args__ = (
        # At most one open entry (running timer) per user.
        Index(
            "uq_time_entries_open",
            "user_id",
            unique=True,
            postgresql_where=text("end_time IS NULL"),
            sqlite_where=text("end_time IS NULL"),
        ),
        Index("ix_time_entries_user_start", "user_id", "start_time"),
    )

    id = Column(String(36), primary_key=True, default=lambda: str(uuid4()))

    user_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    organization_id = Column(String(36), ForeignKey("organizations.id"), nullable=False, index=True)
    customer_id = Column(String(36), ForeignKey("customers.id"), nullable=False, index=True)
    process_id = Column(String(36), ForeignKey("processes.id"), nullable=False, index=True)
    activity_id = Column(String(36), ForeignKey("activities.id"), nullable=False, index=True)

    task_name = Column(String(300), nullable=False)
    description = Column(Text, nullable=True)
    notes = Column(Text, nullable=True)

    start_time = Column(DateTime(timezone=True), nullable=False)
    end_time = Column(DateTime(timezone=True), nullable=True)
    duration_minutes = Column(Integer, nullable=True)

    is_manual = Column(Boolean, nullable=False, default=False)
    # [{"startTime": iso, "endTime": iso | None, "reason": str}]
    breaks = Column(JSON, nullable=False, default=list)

    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    @property
    def is_open(self) -> bool:
        return self.end_time is None
