# tests/test_work_calendar.py
from datetime import date

import pytest

from selffin.work_calendar import WorkCalendar, korean_public_holidays
from selffin.exceptions import ValidationError
from selffin.models import ScheduleInfo

MONDAY = date(2025, 3, 3)
SATURDAY = date(2025, 3, 1)


def test_weekends_are_skipped():
    cal = WorkCalendar()
    assert not cal.is_working_day(SATURDAY)
    assert cal.next_working_day(SATURDAY) == MONDAY
    assert cal.add_working_days(MONDAY, 5) == date(2025, 3, 10)


def test_holidays_are_skipped():
    cal = WorkCalendar(holidays=[date(2025, 3, 4)])
    assert cal.add_working_days(MONDAY, 1) == date(2025, 3, 5)


def test_six_day_week():
    cal = WorkCalendar(["mon", "tue", "wed", "thu", "fri", "sat"])
    assert cal.is_working_day(SATURDAY)
    assert cal.add_working_days(MONDAY, 5) == date(2025, 3, 8)


def test_working_days_between_and_until():
    cal = WorkCalendar()
    assert cal.working_days_between(MONDAY, date(2025, 3, 10)) == 5
    assert cal.working_days_between(date(2025, 3, 10), MONDAY) == 0
    # deadline day itself counts, start rolls forward off the weekend
    assert cal.days_until(SATURDAY, date(2025, 3, 7)) == 5


def test_offset_to_date_truncates_fractions():
    cal = WorkCalendar()
    assert cal.offset_to_date(MONDAY, 4.5) == date(2025, 3, 7)


def test_empty_calendar_is_rejected():
    with pytest.raises(ValidationError) as exc:
        WorkCalendar(work_days=[])
    assert exc.value.code == "EMPTY_CALENDAR"


def test_public_holidays_are_opt_in():
    childrens_day = date(2025, 5, 5)
    assert childrens_day in korean_public_holidays(2025)

    plain = WorkCalendar.from_schedule_info(ScheduleInfo(start_date=childrens_day))
    assert plain.next_working_day(childrens_day) == childrens_day

    korean = WorkCalendar.from_schedule_info(ScheduleInfo(start_date=childrens_day, public_holidays=True))
    assert korean.next_working_day(childrens_day) == date(2025, 5, 6)
