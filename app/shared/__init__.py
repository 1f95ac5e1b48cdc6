"""Shared utilities used across 3+ features."""

from app.shared.dates import day_window, iter_days, parse_day, range_window, today
from app.shared.models import SoftDeleteMixin, TimestampMixin

__all__ = [
    "SoftDeleteMixin",
    "TimestampMixin",
    "day_window",
    "iter_days",
    "parse_day",
    "range_window",
    "today",
]
