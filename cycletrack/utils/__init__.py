from datetime import date, datetime, timedelta

from cycletrack.exceptions import ValidationError

DATE_FORMAT = "%Y-%m-%d"


def parse_date(value: date | datetime | str) -> date:
    """Coerce user input into a calendar date, dropping any time of day."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return datetime.strptime(value, DATE_FORMAT).date()
    except (TypeError, ValueError):
        raise ValidationError("Invalid date format. Use YYYY-MM-DD.")


def format_date(value: date) -> str:
    return value.strftime(DATE_FORMAT)


def days_between(start: date, end: date) -> int:
    return (end - start).days


def date_range(start: date, days: int) -> list[date]:
    """`days` consecutive dates beginning with `start`."""
    return [start + timedelta(days=offset) for offset in range(days)]


def inclusive_range(start: date, end: date) -> list[date]:
    if end < start:
        return []
    return date_range(start, days_between(start, end) + 1)


def month_key(value: date) -> str:
    """Calendar key used for the one-cycle-per-month rule, e.g. ``2023-11``."""
    return f"{value.year}-{value.month}"


def is_in_current_month(value: date, today: date | None = None) -> bool:
    today = today or date.today()
    return value.year == today.year and value.month == today.month
