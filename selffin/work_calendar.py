# selffin/work_calendar.py
from datetime import date, timedelta
from typing import Iterable, List, Optional

from selffin.exceptions import ValidationError
from selffin.models import WEEKDAY_NAMES

DEFAULT_WORK_DAYS = ["mon", "tue", "wed", "thu", "fri"]

# (month, day); lunar holidays are not included
FIXED_PUBLIC_HOLIDAYS = [(1, 1), (3, 1), (5, 5), (6, 6), (8, 15), (10, 3), (10, 9), (12, 25)]


def korean_public_holidays(year: int) -> List[date]:
    return [date(year, m, d) for m, d in FIXED_PUBLIC_HOLIDAYS]


class WorkCalendar:
    """
    Working-day calendar. Offsets are counted in working days from a start
    date that is itself rolled forward onto a working day.
    """

    def __init__(self, work_days: Optional[Iterable[str]] = None, holidays: Optional[Iterable[date]] = None):
        days = DEFAULT_WORK_DAYS if work_days is None else list(work_days)
        self.weekdays = {WEEKDAY_NAMES.index(d.lower()[:3]) for d in days if d.lower()[:3] in WEEKDAY_NAMES}
        if not self.weekdays:
            raise ValidationError("Calendar has no working days", code="EMPTY_CALENDAR")
        self.holidays = set(holidays or [])

    @classmethod
    def from_schedule_info(cls, schedule_info):
        holidays = list(schedule_info.holidays)
        if schedule_info.public_holidays:
            year = schedule_info.start_date.year
            # two years is enough for any renovation we plan
            holidays += korean_public_holidays(year) + korean_public_holidays(year + 1)
        return cls(schedule_info.work_days, holidays)

    def is_working_day(self, day: date) -> bool:
        return day.weekday() in self.weekdays and day not in self.holidays

    def next_working_day(self, day: date) -> date:
        # holidays are finite, so this terminates once past the last one
        while not self.is_working_day(day):
            day += timedelta(days=1)
        return day

    def add_working_days(self, day: date, n: int) -> date:
        """Date of the n-th working day after `day` (n=0 gives `day` rolled forward)."""
        day = self.next_working_day(day)
        for _ in range(int(n)):
            day = self.next_working_day(day + timedelta(days=1))
        return day

    def working_days_between(self, start: date, end: date) -> int:
        """Working days in the half-open range [start, end)."""
        if end <= start:
            return 0
        count = 0
        day = start
        while day < end:
            if self.is_working_day(day):
                count += 1
            day += timedelta(days=1)
        return count

    def days_until(self, start: date, deadline: date) -> int:
        """Working days available from `start` through `deadline` inclusive."""
        return self.working_days_between(self.next_working_day(start), deadline + timedelta(days=1))

    def offset_to_date(self, start: date, offset: float) -> date:
        return self.add_working_days(start, max(0, int(offset)))
