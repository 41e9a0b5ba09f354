import uuid
from decimal import Decimal

from sqlalchemy import (
    Column, String, Text, DateTime, Date, Numeric, Integer, ForeignKey, Index, CheckConstraint, Uuid, text,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from weekgrid.database import Base
from weekgrid.services.calendar import WEEKDAYS

TIMESHEET_STATUSES = ("draft", "submitted", "approved", "rejected")

# Rejected headers are kept as history, so only "live" headers are unique per week
LIVE_HEADER_WHERE = "status <> 'rejected'"


class WeeklyTimesheet(Base):
    """Header: one live row per (user_id, week_start_date)."""

    __tablename__ = "weekly_timesheets"
    __table_args__ = (
        Index(
            "uq_weekly_timesheets_live_week",
            "user_id",
            "week_start_date",
            unique=True,
            postgresql_where=text(LIVE_HEADER_WHERE),
            sqlite_where=text(LIVE_HEADER_WHERE),
        ),
        CheckConstraint(
            "status IN ('draft', 'submitted', 'approved', 'rejected')",
            name="ck_weekly_timesheets_status",
        ),
    )

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    org_id = Column(Uuid(as_uuid=True), nullable=True, index=True)
    user_id = Column(Uuid(as_uuid=True), nullable=False, index=True)
    week_start_date = Column(Date, nullable=False)
    status = Column(String(20), nullable=False, server_default="draft", default="draft")
    submitted_at = Column(DateTime(timezone=True), nullable=True)
    reviewed_by = Column(Uuid(as_uuid=True), nullable=True)
    reviewed_at = Column(DateTime(timezone=True), nullable=True)
    review_comment = Column(Text, server_default="", nullable=True)
    recycled_from_id = Column(Uuid(as_uuid=True), ForeignKey("weekly_timesheets.id"), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    entries = relationship(
        "TimesheetEntry",
        back_populates="timesheet",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="TimesheetEntry.row_order",
    )

    @property
    def total_hours(self) -> Decimal:
        return sum((e.total_hours for e in self.entries), Decimal("0"))


class TimesheetEntry(Base):
    """One grid row: project/task/description plus seven day-slots."""

    __tablename__ = "timesheet_entries"
    __table_args__ = tuple(
        CheckConstraint(
            f"{day}_hours IS NULL OR ({day}_hours >= 0 AND {day}_hours <= 24)",
            name=f"ck_timesheet_entries_{day}_hours",
        )
        for day in WEEKDAYS
    )

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    timesheet_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("weekly_timesheets.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    row_order = Column(Integer, nullable=False, default=0)
    project_id = Column(Uuid(as_uuid=True), nullable=False)
    task_id = Column(Uuid(as_uuid=True), nullable=True)
    description = Column(Text, server_default="", default="", nullable=False)

    monday_hours = Column(Numeric(4, 2), nullable=True)
    monday_start_time = Column(String(5), nullable=False, server_default="09:00", default="09:00")
    monday_end_time = Column(String(5), nullable=False, server_default="09:00", default="09:00")
    tuesday_hours = Column(Numeric(4, 2), nullable=True)
    tuesday_start_time = Column(String(5), nullable=False, server_default="09:00", default="09:00")
    tuesday_end_time = Column(String(5), nullable=False, server_default="09:00", default="09:00")
    wednesday_hours = Column(Numeric(4, 2), nullable=True)
    wednesday_start_time = Column(String(5), nullable=False, server_default="09:00", default="09:00")
    wednesday_end_time = Column(String(5), nullable=False, server_default="09:00", default="09:00")
    thursday_hours = Column(Numeric(4, 2), nullable=True)
    thursday_start_time = Column(String(5), nullable=False, server_default="09:00", default="09:00")
    thursday_end_time = Column(String(5), nullable=False, server_default="09:00", default="09:00")
    friday_hours = Column(Numeric(4, 2), nullable=True)
    friday_start_time = Column(String(5), nullable=False, server_default="09:00", default="09:00")
    friday_end_time = Column(String(5), nullable=False, server_default="09:00", default="09:00")
    saturday_hours = Column(Numeric(4, 2), nullable=True)
    saturday_start_time = Column(String(5), nullable=False, server_default="09:00", default="09:00")
    saturday_end_time = Column(String(5), nullable=False, server_default="09:00", default="09:00")
    sunday_hours = Column(Numeric(4, 2), nullable=True)
    sunday_start_time = Column(String(5), nullable=False, server_default="09:00", default="09:00")
    sunday_end_time = Column(String(5), nullable=False, server_default="09:00", default="09:00")

    created_at = Column(DateTime(timezone=True), server_default=func.now())

    timesheet = relationship("WeeklyTimesheet", back_populates="entries")

    def slot(self, day: str) -> tuple:
        """(hours, start, end) for one weekday."""
        return (
            getattr(self, f"{day}_hours"),
            getattr(self, f"{day}_start_time"),
            getattr(self, f"{day}_end_time"),
        )

    def set_slot(self, day: str, hours, start: str, end: str) -> None:
        setattr(self, f"{day}_hours", hours)
        setattr(self, f"{day}_start_time", start)
        setattr(self, f"{day}_end_time", end)

    @property
    def total_hours(self) -> Decimal:
        return sum((Decimal(str(self.slot(d)[0])) for d in WEEKDAYS if self.slot(d)[0] is not None), Decimal("0"))
