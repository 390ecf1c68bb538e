# selffin/utils.py
from datetime import date, datetime, timezone
from typing import Optional

DATE_FORMATS = [
    "%Y-%m-%d",           # e.g., "2024-03-04"
    "%Y-%m-%d %H:%M:%S",  # e.g., "2024-03-04 08:00:00"
    "%Y/%m/%d",
    "%Y.%m.%d",           # e.g., "2024.03.04"
    "%m/%d/%Y",
    "%m/%d/%y",
]


def parse_user_date(value) -> Optional[date]:
    """Parse a user or spreadsheet supplied date. Returns None when it cannot."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = str(value).strip()
    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            pass
    return None


def compute_duration(start, finish) -> float:
    """
    Calendar days from start through finish inclusive.
    Returns 1 if either date is missing or the range is empty.
    """
    start_d = parse_user_date(start)
    finish_d = parse_user_date(finish)
    if not start_d or not finish_d:
        return 1.0
    days = (finish_d - start_d).days + 1
    return float(days) if days > 0 else 1.0


def utcnow_iso() -> str:
    return datetime.now(timezone.utc).isoformat()
