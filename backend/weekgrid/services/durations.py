"""
Day-slot reconciliation between decimal hours and a start/end clock pair.

A slot is (hours, start, end). Editing hours re-anchors the pair at 09:00;
editing either clock value recomputes hours from the pair. Whichever side was
edited last wins.

Clock values are "HH:MM" strings. A span that runs past midnight keeps
counting (09:00 + 20h -> "29:00") so that end - start is always the duration.
"""

import re
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Optional

from weekgrid.services.errors import ValidationError

ANCHOR_START = "09:00"
SENTINEL = (ANCHOR_START, ANCHOR_START)

MAX_HOURS = Decimal("24")
MINUTES_PER_DAY = 24 * 60
# 09:00 anchor + 24h
MAX_CLOCK_MINUTES = 48 * 60 - 1

# Grid values agree with their clock pair if they differ by at most this much
TOLERANCE = Decimal("0.01")

_HUNDREDTH = Decimal("0.01")
_CLOCK_RE = re.compile(r"^(\d{1,2}):([0-5]\d)(?::[0-5]\d)?$")

Slot = tuple[Optional[Decimal], str, str]


def to_hours(value) -> Optional[Decimal]:
    """Coerce user input ("7.5", 7.5, Decimal) to 2-dp hours. Blank -> None."""
    if value is None:
        return None
    if isinstance(value, str):
        value = value.strip()
        if not value:
            return None
    try:
        hours = Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise ValidationError(f"Invalid hours value '{value}'", code="invalid_hours")
    if not hours.is_finite():
        raise ValidationError(f"Invalid hours value '{value}'", code="invalid_hours")
    if hours < 0 or hours > MAX_HOURS:
        raise ValidationError("Hours cannot exceed 24 for a single day", code="hours_out_of_range")
    return hours.quantize(_HUNDREDTH, rounding=ROUND_HALF_UP)


def parse_clock(value: str) -> int:
    """Minutes since midnight for "HH:MM" (seconds, if present, are dropped)."""
    m = _CLOCK_RE.match((value or "").strip())
    if not m:
        raise ValidationError(f"Invalid time '{value}', expected HH:MM", code="invalid_time")
    minutes = int(m.group(1)) * 60 + int(m.group(2))
    if minutes > MAX_CLOCK_MINUTES:
        raise ValidationError(f"Invalid time '{value}'", code="invalid_time")
    return minutes


def format_clock(minutes: int) -> str:
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def from_duration(hours) -> tuple[str, str]:
    """Clock pair for ``hours`` anchored at 09:00, rounded to the minute."""
    h = to_hours(hours)
    if not h:
        return SENTINEL
    minutes = int((h * 60).quantize(Decimal("1"), rounding=ROUND_HALF_UP))
    return ANCHOR_START, format_clock(parse_clock(ANCHOR_START) + minutes)


def from_times(start: str, end: str) -> Decimal:
    """Decimal hours between two clock values, rounded to 2 places."""
    span = parse_clock(end) - parse_clock(start)
    if span < 0:
        raise ValidationError("End time is before start time", code="negative_range")
    if span > MINUTES_PER_DAY:
        raise ValidationError("range exceeds 24h", code="range_exceeds_24h")
    return (Decimal(span) / 60).quantize(_HUNDREDTH, rounding=ROUND_HALF_UP)


def edit_hours(hours) -> Slot:
    """Slot after the user typed into the hours cell."""
    h = to_hours(hours)
    if not h:
        return (None, *SENTINEL)
    return (h, *from_duration(h))


def edit_time(start: str, end: str, field: str, value: str) -> Slot:
    """Slot after the user changed the start or end clock.

    Raises ValidationError on a bad range; the caller keeps its prior slot.
    A zero-length range clears the slot back to the sentinel pair.
    """
    if field not in ("start", "end"):
        raise ValueError(f"field must be 'start' or 'end', got {field!r}")
    if field == "start":
        start = value
    else:
        end = value
    hours = from_times(start, end)
    if not hours:
        return (None, *SENTINEL)
    return (hours, format_clock(parse_clock(start)), format_clock(parse_clock(end)))


def reconcile(hours=None, start: Optional[str] = None, end: Optional[str] = None) -> Slot:
    """Normalise a slot coming from a saved grid row.

    - hours only: clocks derived from the anchor
    - clocks only: hours derived from the clocks
    - both: must agree within TOLERANCE
    Zero or blank hours always end up as (None, "09:00", "09:00").
    """
    h = to_hours(hours)
    has_times = bool(start) and bool(end)

    if not has_times:
        return edit_hours(h)

    computed = from_times(start, end)
    if h is None:
        if not computed:
            return (None, *SENTINEL)
        return (computed, format_clock(parse_clock(start)), format_clock(parse_clock(end)))

    if abs(computed - h) > TOLERANCE:
        raise ValidationError(
            f"Times {start}-{end} do not match {h} hours",
            code="slot_mismatch",
        )
    if not h:
        return (None, *SENTINEL)
    return (h, format_clock(parse_clock(start)), format_clock(parse_clock(end)))


def is_consistent(hours, start: str, end: str) -> bool:
    """True when the slot satisfies the hours/clock invariant."""
    h = to_hours(hours)
    if not h:
        return (start, end) == SENTINEL
    try:
        return abs(from_times(start, end) - h) <= TOLERANCE
    except ValidationError:
        return False
