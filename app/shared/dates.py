"""Calendar helpers shared by the ETL, analytics and financial features."""

from datetime import date, datetime, time, timedelta, tzinfo


def day_window(day: date, tz: tzinfo) -> tuple[datetime, datetime]:
    """Half-open ``[start_of_day, start_of_next_day)`` for a calendar day.

    Args:
        day: Calendar day.
        tz: Timezone that defines where the day begins.

    Returns:
        Timezone-aware start and exclusive end.
    """
    start = datetime.combine(day, time.min, tzinfo=tz)
    end = datetime.combine(day + timedelta(days=1), time.min, tzinfo=tz)
    return start, end


def range_window(start: date, end: date, tz: tzinfo) -> tuple[datetime, datetime]:
    """Half-open datetime window covering the inclusive date range."""
    window_start, _ = day_window(start, tz)
    _, window_end = day_window(end, tz)
    return window_start, window_end


def today(tz: tzinfo) -> date:
    """Current calendar day in the given timezone."""
    return datetime.now(tz).date()


def iter_days(start: date, end: date) -> list[date]:
    """Every day in the inclusive range, ascending."""
    return [start + timedelta(days=offset) for offset in range((end - start).days + 1)]


def parse_day(value: str | None) -> date | None:
    """Lenient ``YYYY-MM-DD`` parse for query parameters.

    A trailing time part is ignored; anything unparseable yields None so the
    caller can fall back to its default.
    """
    if not value:
        return None
    try:
        return date.fromisoformat(value.strip()[:10])
    except ValueError:
        return None
