from pydantic import BaseModel, ConfigDict, Field
from typing import Literal, Optional
from datetime import date, datetime
from uuid import UUID

Weekday = Literal["monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday"]
TimesheetStatus = Literal["draft", "submitted", "approved", "rejected"]


# ── Grid ──


class DaySlot(BaseModel):
    hours: Optional[float] = Field(default=None, ge=0, le=24)
    start_time: Optional[str] = None  # "HH:MM"
    end_time: Optional[str] = None


class GridRow(BaseModel):
    """One line of the weekly grid. Rows without a project are ignored on save."""

    project_id: Optional[UUID] = None
    task_id: Optional[UUID] = None
    description: str = ""
    days: dict[Weekday, DaySlot] = Field(default_factory=dict)


class SaveGridRequest(BaseModel):
    week_start: Optional[date] = None
    timesheet_id: Optional[UUID] = None
    rows: list[GridRow] = []
    status: Literal["draft", "submitted"] = "draft"


class DraftRequest(BaseModel):
    week_start: date


class TimerStopRequest(BaseModel):
    start: datetime
    end: datetime
    project_id: Optional[UUID] = None
    task_id: Optional[UUID] = None
    description: str = ""


class ReviewRequest(BaseModel):
    comment: str = ""


# ── Responses ──


class TimesheetEntryResponse(GridRow):
    id: UUID
    timesheet_id: UUID
    row_order: int
    total_hours: float


class WeeklyTimesheetResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    org_id: Optional[UUID] = None
    user_id: UUID
    week_start_date: date
    status: TimesheetStatus
    submitted_at: Optional[datetime] = None
    reviewed_by: Optional[UUID] = None
    reviewed_at: Optional[datetime] = None
    review_comment: Optional[str] = ""
    recycled_from_id: Optional[UUID] = None
    total_hours: float = 0
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class WeeklyTimesheetDetail(WeeklyTimesheetResponse):
    entries: list[TimesheetEntryResponse] = []


class OpenWeekResponse(BaseModel):
    week_start: date
    draft_id: Optional[UUID] = None


class EditableWeekResponse(BaseModel):
    week_start: date
    status: TimesheetStatus
    timesheet_id: UUID


class CopyPreviousResponse(BaseModel):
    source_week: date
    rows: list[GridRow] = []
    message: str = ""


class AuditEntryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    user_id: UUID
    action: str
    details: Optional[dict] = None
    created_at: Optional[datetime] = None
