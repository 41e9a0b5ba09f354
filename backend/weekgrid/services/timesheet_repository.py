"""
Timesheet repository: every write to weekly_timesheets / timesheet_entries goes through here.

Guarantees:
  - ensure_draft_header is one conditional INSERT .. ON CONFLICT DO NOTHING against
    the live-week unique index, followed by a read. Concurrent callers for the same
    (user, week) all get the same header; an existing header's status is never touched.
  - replace_entries deletes and re-inserts a header's rows in one transaction.
    On any storage error the session is rolled back and the previous rows remain.
  - set_status is a conditional UPDATE keyed on the expected current status and
    reports APPLIED / GUARD_MISMATCH / NOT_FOUND instead of raising.
"""

import enum
import logging
import uuid
from datetime import date
from typing import Iterable, Optional

from sqlalchemy import func, text
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from weekgrid.models.timesheet import LIVE_HEADER_WHERE, TIMESHEET_STATUSES, TimesheetEntry, WeeklyTimesheet
from weekgrid.services.calendar import WEEKDAYS, is_monday
from weekgrid.services.errors import (
    PersistenceFailure,
    StateGuardFailure,
    TimesheetNotFound,
    ValidationError,
)

logger = logging.getLogger(__name__)


class TransitionOutcome(str, enum.Enum):
    APPLIED = "applied"
    GUARD_MISMATCH = "guard_mismatch"
    NOT_FOUND = "not_found"


_INSERT_BY_DIALECT = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


def _insert_for(db: Session):
    dialect = db.get_bind().dialect.name
    try:
        return _INSERT_BY_DIALECT[dialect]
    except KeyError:
        raise PersistenceFailure(f"Unsupported database dialect '{dialect}'", code="unsupported_dialect")


def _fail(db: Session, message: str, exc: Exception) -> PersistenceFailure:
    db.rollback()
    logger.exception("%s: %s", message, exc)
    return PersistenceFailure(message)


def _pick_current(headers: Iterable[WeeklyTimesheet]) -> Optional[WeeklyTimesheet]:
    """The header that represents a week: the live one, else the newest rejected one."""
    headers = list(headers)
    if not headers:
        return None
    for h in headers:
        if h.status != "rejected":
            return h
    # a rejected header that was recycled into another one is older than its successor
    recycled = {h.recycled_from_id for h in headers if h.recycled_from_id}
    candidates = [h for h in headers if h.id not in recycled] or headers
    return max(candidates, key=lambda h: (h.created_at is not None, h.created_at))


# ──────────────────────────────────────────────
# Headers
# ──────────────────────────────────────────────

def entry_columns(entry: TimesheetEntry) -> dict:
    """Column values of a grid row, without its identity or header."""
    cols = {
        "project_id": entry.project_id,
        "task_id": entry.task_id,
        "description": entry.description or "",
    }
    for day in WEEKDAYS:
        hours, start, end = entry.slot(day)
        cols[f"{day}_hours"] = hours
        cols[f"{day}_start_time"] = start
        cols[f"{day}_end_time"] = end
    return cols


def _seed_entries(db: Session, header_id: uuid.UUID, source_id: uuid.UUID) -> int:
    rows = [entry_columns(e) for e in list_entries(db, source_id)]
    db.add_all(TimesheetEntry(timesheet_id=header_id, row_order=i, **row) for i, row in enumerate(rows))
    db.flush()
    return len(rows)


def upsert_draft_header(
    db: Session,
    user_id: uuid.UUID,
    week_start: date,
    org_id: Optional[uuid.UUID] = None,
    recycled_from_id: Optional[uuid.UUID] = None,
) -> tuple[WeeklyTimesheet, bool]:
    """Insert-or-return the live header for (user_id, week_start).

    Returns (header, created). ``org_id`` and ``recycled_from_id`` only apply
    when the row is created. A created header recycled from a rejected one
    gets copies of its rows in the same transaction, so the new draft is
    never visible without them.
    """
    if not is_monday(week_start):
        raise ValidationError(f"Week start {week_start.isoformat()} is not a Monday", code="week_start_not_monday")

    insert = _insert_for(db)
    new_id = uuid.uuid4()
    stmt = (
        insert(WeeklyTimesheet.__table__)
        .values(
            id=new_id,
            org_id=org_id,
            user_id=user_id,
            week_start_date=week_start,
            status="draft",
            recycled_from_id=recycled_from_id,
        )
        .on_conflict_do_nothing(
            index_elements=["user_id", "week_start_date"],
            index_where=text(LIVE_HEADER_WHERE),
        )
    )
    try:
        created = db.execute(stmt).rowcount == 1
        seeded = 0
        if created and recycled_from_id is not None:
            seeded = _seed_entries(db, new_id, recycled_from_id)
        header = (
            db.query(WeeklyTimesheet)
            .filter(
                WeeklyTimesheet.user_id == user_id,
                WeeklyTimesheet.week_start_date == week_start,
                WeeklyTimesheet.status != "rejected",
            )
            .populate_existing()
            .one()
        )
        db.commit()
    except SQLAlchemyError as exc:
        raise _fail(db, "Could not create or open the timesheet for that week", exc) from exc

    if created:
        logger.info("Created draft timesheet %s for user %s week %s", header.id, user_id, week_start)
    if seeded:
        logger.info("Seeded draft %s with %d rows from rejected timesheet %s", header.id, seeded, recycled_from_id)
    return header, created


def ensure_draft_header(
    db: Session,
    user_id: uuid.UUID,
    week_start: date,
    org_id: Optional[uuid.UUID] = None,
) -> uuid.UUID:
    """Idempotent: id of the live header for the week, created as draft if absent."""
    header, _created = upsert_draft_header(db, user_id, week_start, org_id=org_id)
    return header.id


def get_header(db: Session, header_id: uuid.UUID) -> Optional[WeeklyTimesheet]:
    return db.query(WeeklyTimesheet).filter(WeeklyTimesheet.id == header_id).first()


def get_header_for_week(db: Session, user_id: uuid.UUID, week_start: date) -> Optional[WeeklyTimesheet]:
    headers = (
        db.query(WeeklyTimesheet)
        .filter(WeeklyTimesheet.user_id == user_id, WeeklyTimesheet.week_start_date == week_start)
        .all()
    )
    return _pick_current(headers)


def latest_rejected_header(db: Session, user_id: uuid.UUID, week_start: date) -> Optional[WeeklyTimesheet]:
    headers = (
        db.query(WeeklyTimesheet)
        .filter(
            WeeklyTimesheet.user_id == user_id,
            WeeklyTimesheet.week_start_date == week_start,
            WeeklyTimesheet.status == "rejected",
        )
        .all()
    )
    return _pick_current(headers)


def headers_by_week(
    db: Session,
    user_id: uuid.UUID,
    first_week: date,
    last_week: Optional[date] = None,
) -> dict[date, WeeklyTimesheet]:
    """Current header per week for a user, from ``first_week`` (inclusive) onwards."""
    q = db.query(WeeklyTimesheet).filter(
        WeeklyTimesheet.user_id == user_id,
        WeeklyTimesheet.week_start_date >= first_week,
    )
    if last_week is not None:
        q = q.filter(WeeklyTimesheet.week_start_date <= last_week)

    grouped: dict[date, list[WeeklyTimesheet]] = {}
    for h in q.all():
        grouped.setdefault(h.week_start_date, []).append(h)
    return {week: _pick_current(hs) for week, hs in grouped.items()}


def list_headers(
    db: Session,
    user_id: Optional[uuid.UUID] = None,
    org_id: Optional[uuid.UUID] = None,
    status: Optional[str] = None,
    start: Optional[date] = None,
    end: Optional[date] = None,
) -> list[WeeklyTimesheet]:
    q = db.query(WeeklyTimesheet)
    if user_id:
        q = q.filter(WeeklyTimesheet.user_id == user_id)
    if org_id:
        q = q.filter(WeeklyTimesheet.org_id == org_id)
    if status:
        q = q.filter(WeeklyTimesheet.status == status)
    if start:
        q = q.filter(WeeklyTimesheet.week_start_date >= start)
    if end:
        q = q.filter(WeeklyTimesheet.week_start_date <= end)
    return q.order_by(WeeklyTimesheet.week_start_date.desc(), WeeklyTimesheet.created_at.desc()).all()


def set_status(
    db: Session,
    header_id: uuid.UUID,
    new_status: str,
    guard: str,
    **fields,
) -> TransitionOutcome:
    """UPDATE .. SET status = new_status WHERE id = header_id AND status = guard."""
    if new_status not in TIMESHEET_STATUSES or guard not in TIMESHEET_STATUSES:
        raise ValueError(f"Unknown status transition {guard!r} -> {new_status!r}")

    values = {"status": new_status, **fields}
    try:
        updated = (
            db.query(WeeklyTimesheet)
            .filter(WeeklyTimesheet.id == header_id, WeeklyTimesheet.status == guard)
            .update(values, synchronize_session=False)
        )
        if updated == 0:
            exists = db.query(WeeklyTimesheet.id).filter(WeeklyTimesheet.id == header_id).first() is not None
            db.rollback()
            return TransitionOutcome.GUARD_MISMATCH if exists else TransitionOutcome.NOT_FOUND
        db.commit()
    except SQLAlchemyError as exc:
        raise _fail(db, "Could not update the timesheet status", exc) from exc
    return TransitionOutcome.APPLIED


# ──────────────────────────────────────────────
# Entries
# ──────────────────────────────────────────────

def _claim_header(db: Session, header_id: uuid.UUID, guard: Optional[str]) -> None:
    """Touch the header inside the current transaction, optionally requiring a status.

    On PostgreSQL the UPDATE also row-locks the header until commit, so a
    concurrent status change waits for the row replacement to finish.
    """
    q = db.query(WeeklyTimesheet).filter(WeeklyTimesheet.id == header_id)
    if guard:
        q = q.filter(WeeklyTimesheet.status == guard)
    if q.update({"updated_at": func.now()}, synchronize_session=False) == 1:
        return

    current = db.query(WeeklyTimesheet.status).filter(WeeklyTimesheet.id == header_id).scalar()
    db.rollback()
    if current is None:
        raise TimesheetNotFound("Timesheet not found")
    raise StateGuardFailure(f"Timesheet is {current}, only {guard} timesheets can be edited", code=f"not_{guard}")


def list_entries(db: Session, header_id: uuid.UUID) -> list[TimesheetEntry]:
    return (
        db.query(TimesheetEntry)
        .filter(TimesheetEntry.timesheet_id == header_id)
        .order_by(TimesheetEntry.row_order, TimesheetEntry.id)
        .all()
    )


def replace_entries(
    db: Session,
    header_id: uuid.UUID,
    rows: list[dict],
    guard: Optional[str] = "draft",
) -> list[TimesheetEntry]:
    """Swap the full row set of a header for ``rows`` (column dicts), all or nothing.

    Rows are stored in the given order. Rows without a project are the
    caller's job to drop; passing one here fails the whole replace.
    """
    try:
        _claim_header(db, header_id, guard)
        db.query(TimesheetEntry).filter(TimesheetEntry.timesheet_id == header_id).delete(
            synchronize_session=False
        )
        entries = [TimesheetEntry(timesheet_id=header_id, row_order=i, **row) for i, row in enumerate(rows)]
        db.add_all(entries)
        db.flush()
        db.commit()
    except SQLAlchemyError as exc:
        raise _fail(db, "Could not save timesheet rows", exc) from exc

    logger.info("Replaced rows of timesheet %s (%d rows)", header_id, len(entries))
    return list_entries(db, header_id)


def upsert_entry_slot(
    db: Session,
    header_id: uuid.UUID,
    project_id: uuid.UUID,
    task_id: Optional[uuid.UUID],
    description: str,
    day: str,
    hours,
    start: str,
    end: str,
    guard: Optional[str] = "draft",
) -> TimesheetEntry:
    """Write one day-slot on the row matching (project, task, description), adding the row if needed."""
    description = description or ""
    try:
        _claim_header(db, header_id, guard)
        q = db.query(TimesheetEntry).filter(
            TimesheetEntry.timesheet_id == header_id,
            TimesheetEntry.project_id == project_id,
            TimesheetEntry.description == description,
        )
        if task_id is None:
            q = q.filter(TimesheetEntry.task_id.is_(None))
        else:
            q = q.filter(TimesheetEntry.task_id == task_id)
        entry = q.order_by(TimesheetEntry.row_order).first()

        if entry is None:
            last = (
                db.query(func.max(TimesheetEntry.row_order))
                .filter(TimesheetEntry.timesheet_id == header_id)
                .scalar()
            )
            entry = TimesheetEntry(
                timesheet_id=header_id,
                row_order=0 if last is None else last + 1,
                project_id=project_id,
                task_id=task_id,
                description=description,
            )
            db.add(entry)

        entry.set_slot(day, hours, start, end)
        db.flush()
        entry_id = entry.id
        db.commit()
    except SQLAlchemyError as exc:
        raise _fail(db, "Could not record time on the timesheet", exc) from exc

    return db.query(TimesheetEntry).filter(TimesheetEntry.id == entry_id).one()
