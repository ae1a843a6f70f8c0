"""Date manipulation utilities"""

from datetime import date, datetime, timedelta, timezone


def utc_now() -> datetime:
    """Timezone-aware current time in UTC"""
    return datetime.now(timezone.utc)


def as_utc(moment: datetime) -> datetime:
    """Treat naive datetimes (e.g. read back from SQLite) as UTC"""
    return moment.replace(tzinfo=timezone.utc) if moment.tzinfo is None else moment


def days_between(start: date, end: date) -> int:
    """Whole days from start to end, never negative"""
    return max(0, (end - start).days)


def add_days(from_date: date, days: int) -> date:
    """Add calendar days to a date (payment terms are calendar days)"""
    return from_date + timedelta(days=days)
