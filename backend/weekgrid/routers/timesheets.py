"""Weekly timesheets router."""

import uuid
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from datetime import date
from typing import Optional

from weekgrid.database import get_db
from weekgrid.dependencies import get_actor
from weekgrid.models.timesheet import TimesheetEntry, WeeklyTimesheet
from weekgrid.schemas.timesheet import (
    AuditEntryResponse,
    CopyPreviousResponse,
    DraftRequest,
    EditableWeekResponse,
    OpenWeekResponse,
    ReviewRequest,
    SaveGridRequest,
    TimerStopRequest,
    TimesheetEntryResponse,
    WeeklyTimesheetDetail,
    WeeklyTimesheetResponse,
)
from weekgrid.services import timesheet_lifecycle as lifecycle
from weekgrid.services.calendar import monday_of, previous_week
from weekgrid.services.timesheet_lifecycle import Actor
from weekgrid.services.week_locator import next_open_week

router = APIRouter(prefix="/api/v1/timesheets", tags=["Timesheets"])


def _entry_out(entry: TimesheetEntry) -> TimesheetEntryResponse:
    row = lifecycle.entry_to_row(entry)
    return TimesheetEntryResponse(
        id=entry.id,
        timesheet_id=entry.timesheet_id,
        row_order=entry.row_order,
        total_hours=float(entry.total_hours),
        **row.model_dump(),
    )


def _detail_out(header: WeeklyTimesheet, entries: list[TimesheetEntry]) -> WeeklyTimesheetDetail:
    summary = WeeklyTimesheetResponse.model_validate(header)
    return WeeklyTimesheetDetail(
        **summary.model_dump(exclude={"total_hours"}),
        total_hours=float(lifecycle.total_hours(entries)),
        entries=[_entry_out(e) for e in entries],
    )


# ── Week navigation ──


@router.get("/next-open-week", response_model=OpenWeekResponse)
def get_next_open_week(
    start: Optional[date] = Query(None),
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db),
):
    found = next_open_week(db, actor.user_id, monday_of(start or date.today()))
    return OpenWeekResponse(week_start=found.week_start, draft_id=found.draft_id)


@router.get("/editable-weeks", response_model=list[EditableWeekResponse])
def get_editable_weeks(
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db),
):
    return [
        EditableWeekResponse(week_start=w.week_start, status=w.status, timesheet_id=w.timesheet_id)
        for w in lifecycle.list_editable_weeks(db, actor)
    ]


# ── Drafts / grid ──


@router.post("/drafts", response_model=WeeklyTimesheetDetail)
def open_draft(
    body: DraftRequest,
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db),
):
    header = lifecycle.ensure_draft(db, actor, body.week_start)
    return _detail_out(header, lifecycle.list_entries(db, actor, header.id))


@router.get("/copy-previous", response_model=CopyPreviousResponse)
def copy_previous(
    week_start: date = Query(...),
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db),
):
    rows = lifecycle.copy_from_previous_week(db, actor, week_start)
    return CopyPreviousResponse(
        source_week=previous_week(week_start),
        rows=rows,
        message="" if rows else "Nothing to copy from last week",
    )


@router.put("/grid", response_model=WeeklyTimesheetDetail)
def save_grid(
    body: SaveGridRequest,
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db),
):
    header = lifecycle.save_grid(
        db,
        actor,
        body.rows,
        target_status=body.status,
        week_start=body.week_start,
        timesheet_id=body.timesheet_id,
    )
    return _detail_out(header, lifecycle.list_entries(db, actor, header.id))


@router.post("/timer-stops", response_model=TimesheetEntryResponse)
def timer_stop(
    body: TimerStopRequest,
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db),
):
    entry = lifecycle.record_timer_stop(
        db,
        actor,
        body.start,
        body.end,
        body.project_id,
        task_id=body.task_id,
        description=body.description,
    )
    return _entry_out(entry)


# ── Reads ──


@router.get("/", response_model=list[WeeklyTimesheetResponse])
def list_timesheets(
    status: Optional[str] = Query(None),
    user_id: Optional[uuid.UUID] = Query(None),
    start: Optional[date] = Query(None),
    end: Optional[date] = Query(None),
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db),
):
    return lifecycle.list_timesheets(db, actor, status=status, user_id=user_id, start=start, end=end)


@router.get("/{timesheet_id}", response_model=WeeklyTimesheetDetail)
def get_timesheet(
    timesheet_id: uuid.UUID,
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db),
):
    header = lifecycle.get_timesheet(db, actor, timesheet_id)
    return _detail_out(header, lifecycle.list_entries(db, actor, timesheet_id))


@router.get("/{timesheet_id}/entries", response_model=list[TimesheetEntryResponse])
def get_entries(
    timesheet_id: uuid.UUID,
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db),
):
    return [_entry_out(e) for e in lifecycle.list_entries(db, actor, timesheet_id)]


# ── Submit / Approve / Reject ──


@router.post("/{timesheet_id}/submit", response_model=WeeklyTimesheetResponse)
def submit_timesheet(
    timesheet_id: uuid.UUID,
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db),
):
    return lifecycle.submit(db, actor, timesheet_id)


@router.post("/{timesheet_id}/approve", response_model=WeeklyTimesheetResponse)
def approve_timesheet(
    timesheet_id: uuid.UUID,
    body: Optional[ReviewRequest] = None,
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db),
):
    return lifecycle.approve(db, actor, timesheet_id, comment=body.comment if body else "")


@router.post("/{timesheet_id}/reject", response_model=WeeklyTimesheetResponse)
def reject_timesheet(
    timesheet_id: uuid.UUID,
    body: Optional[ReviewRequest] = None,
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db),
):
    return lifecycle.reject(db, actor, timesheet_id, comment=body.comment if body else "")


@router.get("/{timesheet_id}/history", response_model=list[AuditEntryResponse])
def get_history(
    timesheet_id: uuid.UUID,
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db),
):
    return lifecycle.history(db, actor, timesheet_id)
