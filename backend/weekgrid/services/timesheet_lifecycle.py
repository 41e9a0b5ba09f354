"""
Weekly timesheet lifecycle.

  (none) ──ensure──▶ draft ──submit──▶ submitted ──approve──▶ approved
                       ▲                    │
                       │                    └──reject──▶ rejected
                       └──── next touch of the week seeds a NEW draft from it ──┘

Every operation takes the acting identity explicitly (Actor). Status changes are
conditional writes through the repository; a lost race surfaces as
StateGuardFailure and is never retried here.
"""

import logging
import uuid
from dataclasses import dataclass
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Optional

from sqlalchemy.orm import Session

from weekgrid.models.timesheet import TIMESHEET_STATUSES, TimesheetEntry, WeeklyTimesheet
from weekgrid.schemas.timesheet import DaySlot, GridRow
from weekgrid.services import timesheet_repository as repo
from weekgrid.services.audit import list_actions, log_action
from weekgrid.services.calendar import WEEKDAYS, monday_of, previous_week, weekday_name
from weekgrid.services.durations import MINUTES_PER_DAY, format_clock, from_times, reconcile
from weekgrid.services.errors import StateGuardFailure, TimesheetNotFound, ValidationError
from weekgrid.services.timesheet_repository import TransitionOutcome

logger = logging.getLogger(__name__)

RESOURCE = "weekly_timesheet"
APPROVER_ROLES = ("owner", "admin", "manager")
ORG_ROLES = ("owner", "admin", "manager", "member")


@dataclass(frozen=True)
class Actor:
    user_id: uuid.UUID
    org_id: Optional[uuid.UUID] = None
    role: str = "member"

    @property
    def can_review(self) -> bool:
        return self.role in APPROVER_ROLES


@dataclass(frozen=True)
class EditableWeek:
    week_start: date
    status: str
    timesheet_id: uuid.UUID


# ──────────────────────────────────────────────
# Helpers
# ──────────────────────────────────────────────

def _now_utc() -> datetime:
    return datetime.now(timezone.utc)


def _hours_out(value) -> Optional[float]:
    return float(value) if value is not None else None


def entry_to_row(entry: TimesheetEntry) -> GridRow:
    """Grid row for an entry, without its id or timesheet id."""
    days = {}
    for day in WEEKDAYS:
        hours, start, end = entry.slot(day)
        days[day] = DaySlot(hours=_hours_out(hours), start_time=start, end_time=end)
    return GridRow(
        project_id=entry.project_id,
        task_id=entry.task_id,
        description=entry.description or "",
        days=days,
    )


def grid_rows_to_columns(rows: list[GridRow]) -> list[dict]:
    """Validate and normalise grid rows into entry column dicts.

    Rows without a project are blank lines and are dropped.
    """
    out = []
    for index, row in enumerate(rows):
        if not row.project_id:
            continue
        cols = {
            "project_id": row.project_id,
            "task_id": row.task_id,
            "description": row.description or "",
        }
        for day in WEEKDAYS:
            slot = row.days.get(day) or DaySlot()
            try:
                hours, start, end = reconcile(slot.hours, slot.start_time, slot.end_time)
            except ValidationError as exc:
                raise ValidationError(f"Row {index + 1}, {day}: {exc.message}", code=exc.code) from exc
            cols[f"{day}_hours"] = hours
            cols[f"{day}_start_time"] = start
            cols[f"{day}_end_time"] = end
        out.append(cols)
    return out


def _visible_header(db: Session, actor: Actor, header_id: uuid.UUID) -> WeeklyTimesheet:
    """Owner, or a reviewer from the same organisation."""
    header = repo.get_header(db, header_id)
    if header is None:
        raise TimesheetNotFound("Timesheet not found")
    if header.user_id == actor.user_id:
        return header
    if actor.can_review and _same_org(actor, header):
        return header
    # do not reveal other people's sheets
    raise TimesheetNotFound("Timesheet not found")


def _owned_header(db: Session, actor: Actor, header_id: uuid.UUID) -> WeeklyTimesheet:
    header = _visible_header(db, actor, header_id)
    if header.user_id != actor.user_id:
        raise StateGuardFailure(
            "Only the owner can edit or submit this timesheet",
            reason=StateGuardFailure.FORBIDDEN,
            code="not_owner",
        )
    return header


def _same_org(actor: Actor, header: WeeklyTimesheet) -> bool:
    return header.org_id is None or header.org_id == actor.org_id


def _transition(
    db: Session,
    actor: Actor,
    header_id: uuid.UUID,
    guard: str,
    new_status: str,
    details: Optional[dict] = None,
    **fields,
) -> WeeklyTimesheet:
    outcome = repo.set_status(db, header_id, new_status, guard, **fields)
    if outcome is TransitionOutcome.NOT_FOUND:
        raise TimesheetNotFound("Timesheet not found")
    if outcome is TransitionOutcome.GUARD_MISMATCH:
        current = repo.get_header(db, header_id)
        status = current.status if current else "unknown"
        logger.warning(
            "Refused %s -> %s on timesheet %s (currently %s) by %s",
            guard, new_status, header_id, status, actor.user_id,
        )
        raise StateGuardFailure(
            f"Timesheet is {status}; only {guard} timesheets can be {new_status}",
            code=f"not_{guard}",
        )

    logger.info("Timesheet %s: %s -> %s by %s", header_id, guard, new_status, actor.user_id)
    log_action(db, actor.org_id, actor.user_id, new_status, RESOURCE, header_id, {"from": guard, **(details or {})})
    return repo.get_header(db, header_id)


# ──────────────────────────────────────────────
# Drafts
# ──────────────────────────────────────────────

def ensure_draft(db: Session, actor: Actor, week_start: date) -> WeeklyTimesheet:
    """Live header for the actor's week, creating a draft when there is none.

    A new draft for a week whose last sheet was rejected starts with the
    rejected sheet's rows; the rejected sheet itself is left as it was.
    """
    week = monday_of(week_start)
    rejected = repo.latest_rejected_header(db, actor.user_id, week)
    header, created = repo.upsert_draft_header(
        db,
        actor.user_id,
        week,
        org_id=actor.org_id,
        recycled_from_id=rejected.id if rejected else None,
    )
    if not created:
        return header

    header_id = header.id
    recycled_from = header.recycled_from_id
    log_action(db, actor.org_id, actor.user_id, "create", RESOURCE, header_id, {"week_start": week.isoformat()})
    if recycled_from:
        log_action(
            db, actor.org_id, actor.user_id, "recycle", RESOURCE, header_id,
            {"recycled_from": str(recycled_from), "rows": len(repo.list_entries(db, header_id))},
        )
    return repo.get_header(db, header_id)


def save_grid(
    db: Session,
    actor: Actor,
    rows: list[GridRow],
    target_status: str = "draft",
    week_start: Optional[date] = None,
    timesheet_id: Optional[uuid.UUID] = None,
) -> WeeklyTimesheet:
    """Write the whole grid as the header's rows, then optionally submit.

    The header is created as a draft if needed. Rows are replaced while the
    header is still a draft; only then is the draft -> submitted flip attempted.
    """
    if target_status not in ("draft", "submitted"):
        raise ValidationError(f"Cannot save a timesheet as '{target_status}'", code="invalid_target_status")
    if (week_start is None) == (timesheet_id is None):
        raise ValidationError("Provide either week_start or timesheet_id", code="missing_header_ref")

    # validate everything before any write
    payload = grid_rows_to_columns(rows)

    if timesheet_id is not None:
        header = _owned_header(db, actor, timesheet_id)
    else:
        header = ensure_draft(db, actor, week_start)

    header_id = header.id
    if header.status != "draft":
        raise StateGuardFailure(f"That week is already {header.status}.", code="week_closed")

    repo.replace_entries(db, header_id, payload, guard="draft")
    log_action(db, actor.org_id, actor.user_id, "save", RESOURCE, header_id, {"rows": len(payload)})
    logger.info("Saved timesheet %s with %d rows (dropped %d blank)", header_id, len(payload), len(rows) - len(payload))

    if target_status == "submitted":
        return _transition(db, actor, header_id, "draft", "submitted", submitted_at=_now_utc())
    return repo.get_header(db, header_id)


def copy_from_previous_week(db: Session, actor: Actor, target_week_start: date) -> list[GridRow]:
    """Rows of last week's sheet, ready to stage into the current grid. Never writes.

    An empty list means there was nothing to copy.
    """
    source_week = previous_week(target_week_start)
    header = repo.get_header_for_week(db, actor.user_id, source_week)
    if header is None:
        logger.info("No timesheet for user %s in week %s to copy", actor.user_id, source_week)
        return []
    return [entry_to_row(e) for e in repo.list_entries(db, header.id)]


def record_timer_stop(
    db: Session,
    actor: Actor,
    start: datetime,
    end: datetime,
    project_id: Optional[uuid.UUID],
    task_id: Optional[uuid.UUID] = None,
    description: str = "",
) -> TimesheetEntry:
    """Write a stopped timer's interval into the day-slot of the week it started in."""
    if project_id is None:
        raise ValidationError("A project is required to log time", code="project_required")
    if end <= start:
        raise ValidationError("End time must be after start time", code="negative_range")

    span_minutes = int((end - start).total_seconds() + 30) // 60
    if span_minutes > MINUTES_PER_DAY:
        raise ValidationError("range exceeds 24h", code="range_exceeds_24h")
    if span_minutes == 0:
        raise ValidationError("Timer ran for less than a minute", code="empty_interval")

    start_minutes = start.hour * 60 + start.minute
    start_clock = format_clock(start_minutes)
    end_clock = format_clock(start_minutes + span_minutes)
    hours = from_times(start_clock, end_clock)
    day = weekday_name(start)

    header = ensure_draft(db, actor, monday_of(start))
    header_id = header.id
    if header.status != "draft":
        raise StateGuardFailure(f"That week is already {header.status}.", code="week_closed")

    entry = repo.upsert_entry_slot(
        db, header_id, project_id, task_id, description, day, hours, start_clock, end_clock, guard="draft",
    )
    log_action(
        db, actor.org_id, actor.user_id, "timer_stop", RESOURCE, header_id,
        {"day": day, "hours": str(hours), "entry_id": str(entry.id)},
    )
    logger.info("Recorded %s h on %s for timesheet %s", hours, day, header_id)
    return entry


# ──────────────────────────────────────────────
# Transitions
# ──────────────────────────────────────────────

def submit(db: Session, actor: Actor, header_id: uuid.UUID) -> WeeklyTimesheet:
    _owned_header(db, actor, header_id)
    return _transition(db, actor, header_id, "draft", "submitted", submitted_at=_now_utc())


def _review(db: Session, actor: Actor, header_id: uuid.UUID, new_status: str, comment: str) -> WeeklyTimesheet:
    verb = "approve" if new_status == "approved" else "reject"
    if not actor.can_review:
        raise StateGuardFailure(
            f"You do not have permission to {verb} timesheets",
            reason=StateGuardFailure.FORBIDDEN,
            code="not_approver",
        )
    header = repo.get_header(db, header_id)
    if header is None:
        raise TimesheetNotFound("Timesheet not found")
    if not _same_org(actor, header):
        raise StateGuardFailure(
            f"You do not have permission to {verb} this timesheet",
            reason=StateGuardFailure.FORBIDDEN,
            code="other_org",
        )
    return _transition(
        db, actor, header_id, "submitted", new_status,
        details={"comment": comment} if comment else None,
        reviewed_by=actor.user_id,
        reviewed_at=_now_utc(),
        review_comment=comment or "",
    )


def approve(db: Session, actor: Actor, header_id: uuid.UUID, comment: str = "") -> WeeklyTimesheet:
    return _review(db, actor, header_id, "approved", comment)


def reject(db: Session, actor: Actor, header_id: uuid.UUID, comment: str = "") -> WeeklyTimesheet:
    return _review(db, actor, header_id, "rejected", comment)


# ──────────────────────────────────────────────
# Reads
# ──────────────────────────────────────────────

def get_timesheet(db: Session, actor: Actor, header_id: uuid.UUID) -> WeeklyTimesheet:
    return _visible_header(db, actor, header_id)


def list_entries(db: Session, actor: Actor, header_id: uuid.UUID) -> list[TimesheetEntry]:
    _visible_header(db, actor, header_id)
    return repo.list_entries(db, header_id)


def history(db: Session, actor: Actor, header_id: uuid.UUID) -> list:
    """Audit rows for one timesheet, oldest first."""
    _visible_header(db, actor, header_id)
    return list_actions(db, RESOURCE, header_id)


def list_timesheets(
    db: Session,
    actor: Actor,
    status: Optional[str] = None,
    user_id: Optional[uuid.UUID] = None,
    start: Optional[date] = None,
    end: Optional[date] = None,
) -> list[WeeklyTimesheet]:
    """Members see their own sheets; reviewers may list their whole organisation."""
    if status and status not in TIMESHEET_STATUSES:
        raise ValidationError(f"Unknown status '{status}'", code="invalid_status")

    if not actor.can_review:
        if user_id and user_id != actor.user_id:
            raise StateGuardFailure(
                "You can only list your own timesheets",
                reason=StateGuardFailure.FORBIDDEN,
                code="not_approver",
            )
        return repo.list_headers(db, user_id=actor.user_id, status=status, start=start, end=end)

    return repo.list_headers(db, user_id=user_id, org_id=actor.org_id, status=status, start=start, end=end)


def list_editable_weeks(db: Session, actor: Actor) -> list[EditableWeek]:
    """Weeks the actor can open for editing: live drafts, and rejected weeks not yet reopened."""
    current = repo.headers_by_week(db, actor.user_id, date.min)
    return [
        EditableWeek(week_start=week, status=h.status, timesheet_id=h.id)
        for week, h in sorted(current.items())
        if h.status in ("draft", "rejected")
    ]


def total_hours(entries: list[TimesheetEntry]) -> Decimal:
    return sum((e.total_hours for e in entries), Decimal("0"))
