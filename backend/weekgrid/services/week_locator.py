"""
Week locator: finds the next week a user can still edit.

Walks forward one week at a time from a starting Monday:
  no header          -> blank week, open a new sheet for it
  draft              -> resume that draft
  submitted/approved/rejected -> closed, keep walking

The walk is capped at MAX_WEEK_WALK weeks (one year).
"""

import logging
import uuid
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Optional

from sqlalchemy.orm import Session

from weekgrid.services.calendar import monday_of, week_range
from weekgrid.services.errors import NoOpenWeekError
from weekgrid.services import timesheet_repository as repo

logger = logging.getLogger(__name__)

MAX_WEEK_WALK = 52


@dataclass(frozen=True)
class OpenWeek:
    week_start: date
    draft_id: Optional[uuid.UUID] = None

    @property
    def is_blank(self) -> bool:
        return self.draft_id is None


def next_open_week(
    db: Session,
    user_id: uuid.UUID,
    start_monday: date,
    max_steps: int = MAX_WEEK_WALK,
) -> OpenWeek:
    pointer = monday_of(start_monday)
    first, last = week_range(pointer, max_steps)
    # one read for the whole window instead of one per week
    by_week = repo.headers_by_week(db, user_id, first, last)

    for _ in range(max_steps):
        header = by_week.get(pointer)
        if header is None:
            return OpenWeek(week_start=pointer)
        if header.status == "draft":
            return OpenWeek(week_start=pointer, draft_id=header.id)
        logger.debug("Week %s is %s for user %s, skipping", pointer, header.status, user_id)
        pointer += timedelta(days=7)

    logger.warning("No open week for user %s within %d weeks of %s", user_id, max_steps, first)
    raise NoOpenWeekError("No open week found in the next 12 months")
