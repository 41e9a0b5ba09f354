from datetime import date, datetime

from weekgrid.services.calendar import (
    WEEKDAYS,
    iso_local,
    is_monday,
    monday_of,
    previous_week,
    week_days,
    week_range,
    weekday_name,
)


def test_monday_of_midweek():
    # 2025-06-11 is a Wednesday
    assert monday_of(date(2025, 6, 11)) == date(2025, 6, 9)


def test_sunday_belongs_to_the_week_before():
    assert monday_of(date(2025, 6, 15)) == date(2025, 6, 9)


def test_monday_of_monday_is_itself():
    assert monday_of(date(2025, 6, 9)) == date(2025, 6, 9)


def test_monday_of_across_year_boundary():
    # 2026-01-01 is a Thursday
    assert monday_of(date(2026, 1, 1)) == date(2025, 12, 29)


def test_datetime_keeps_local_calendar_day():
    late = datetime(2025, 6, 15, 23, 30)
    assert iso_local(late) == "2025-06-15"
    assert monday_of(late) == date(2025, 6, 9)
    assert weekday_name(late) == "sunday"


def test_weekday_names_follow_weekday_index():
    days = week_days(date(2025, 6, 12))
    assert [weekday_name(d) for d in days] == list(WEEKDAYS)
    assert days[0] == date(2025, 6, 9)
    assert days[-1] == date(2025, 6, 15)


def test_previous_week():
    assert previous_week(date(2025, 6, 12)) == date(2025, 6, 2)
    assert previous_week(date(2025, 1, 6)) == date(2024, 12, 30)


def test_is_monday():
    assert is_monday(date(2025, 6, 9))
    assert not is_monday(date(2025, 6, 10))


def test_week_range_spans_whole_weeks():
    assert week_range(date(2025, 6, 11), 1) == (date(2025, 6, 9), date(2025, 6, 9))
    assert week_range(date(2025, 6, 11), 52) == (date(2025, 6, 9), date(2026, 6, 1))
