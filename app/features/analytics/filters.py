"""Request filters for analytics queries.

A ``FilterContext`` is built once per request from the caller and the query
string, and never changes afterwards. Role scoping is applied while building
it, so every query that receives a context is already restricted to what the
caller may see.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, timedelta
from enum import Enum

from app.core.exceptions import BadRequestError, ForbiddenError
from app.core.identity import Principal, Role
from app.core.logging import get_logger
from app.shared.dates import parse_day

logger = get_logger(__name__)


class DatePreset(str, Enum):
    """Named windows ending today."""

    TODAY = "today"
    LAST_7_DAYS = "7d"
    LAST_30_DAYS = "30d"
    MONTH_TO_DATE = "mtd"
    YEAR_TO_DATE = "ytd"


@dataclass(frozen=True)
class DateRange:
    """Inclusive range of calendar days."""

    start: date
    end: date

    @property
    def days(self) -> int:
        return (self.end - self.start).days + 1

    def previous(self) -> DateRange:
        """Range of equal length ending the day before ``start``."""
        end = self.start - timedelta(days=1)
        return DateRange(start=end - timedelta(days=self.days - 1), end=end)


def resolve_date_range(
    start: str | None,
    end: str | None,
    preset: str | None,
    *,
    today: date,
    default_days: int = 30,
) -> DateRange:
    """Turn query parameters into a date range, never failing.

    A recognized ``preset`` wins over ``start``/``end``. Missing or malformed
    dates fall back to a trailing window of ``default_days`` ending today,
    and a reversed range is swapped.

    Args:
        start: ISO start date, may be missing or malformed.
        end: ISO end date, may be missing or malformed.
        preset: One of today|7d|30d|mtd|ytd.
        today: Current day in the analytics timezone.
        default_days: Length of the fallback window.

    Returns:
        Resolved inclusive range.
    """
    if preset:
        try:
            chosen = DatePreset(preset)
        except ValueError:
            logger.debug("analytics.preset_ignored", preset=preset)
            return DateRange(start=today - timedelta(days=default_days - 1), end=today)

        if chosen == DatePreset.TODAY:
            return DateRange(start=today, end=today)
        if chosen == DatePreset.LAST_7_DAYS:
            return DateRange(start=today - timedelta(days=6), end=today)
        if chosen == DatePreset.LAST_30_DAYS:
            return DateRange(start=today - timedelta(days=29), end=today)
        if chosen == DatePreset.MONTH_TO_DATE:
            return DateRange(start=today.replace(day=1), end=today)
        return DateRange(start=today.replace(month=1, day=1), end=today)

    end_day = parse_day(end) or today
    start_day = parse_day(start) or end_day - timedelta(days=default_days - 1)
    if start_day > end_day:
        start_day, end_day = end_day, start_day
    return DateRange(start=start_day, end=end_day)


def parse_id_list(raw: str | None, name: str) -> tuple[int, ...]:
    """Parse a comma-separated id list such as ``"3, 7,9"``.

    Raises:
        BadRequestError: If an entry is not an integer.
    """
    if not raw:
        return ()
    ids: list[int] = []
    for part in raw.split(","):
        part = part.strip()
        if not part:
            continue
        try:
            ids.append(int(part))
        except ValueError as e:
            raise BadRequestError(
                message=f"Invalid id '{part}' in {name}",
                details={"parameter": name},
            ) from e
    return tuple(dict.fromkeys(ids))


@dataclass(frozen=True)
class FilterContext:
    """Immutable, role-scoped filter for one analytics request.

    Attributes:
        tenant_id: Tenant all reads are restricted to.
        user_id: Caller.
        role: Caller's role.
        date_range: Inclusive day range.
        style_ids: Restrict to these styles (empty = all).
        vendor_ids: Restrict to these vendors (empty = all).
        tailor_ids: Restrict to these tailors (empty = all).
        search: Case-insensitive match on style code or name.
    """

    tenant_id: str
    user_id: str
    role: Role
    date_range: DateRange
    style_ids: tuple[int, ...] = ()
    vendor_ids: tuple[int, ...] = ()
    tailor_ids: tuple[int, ...] = ()
    search: str | None = None

    @property
    def tailor_scoped(self) -> bool:
        """True when results must be restricted to particular tailors."""
        return bool(self.tailor_ids)


def build_filter_context(
    principal: Principal,
    date_range: DateRange,
    *,
    style_ids: tuple[int, ...] = (),
    vendor_ids: tuple[int, ...] = (),
    tailor_ids: tuple[int, ...] = (),
    search: str | None = None,
) -> FilterContext:
    """Build the filter for a caller, applying role scoping first.

    Vendors only ever see their own vendor and tailors their own jobs; ids
    supplied by such callers for that dimension are replaced, not merged.

    Raises:
        ForbiddenError: If the caller has no tenant, or a vendor/tailor caller
            has no own id to scope to.
    """
    tenant_id = principal.require_tenant()

    if principal.role == Role.VENDOR:
        if principal.vendor_id is None:
            raise ForbiddenError("Vendor account is not linked to a vendor")
        if vendor_ids and vendor_ids != (principal.vendor_id,):
            logger.warning(
                "analytics.scope_override_ignored",
                user_id=principal.user_id,
                requested_vendor_ids=list(vendor_ids),
            )
        vendor_ids = (principal.vendor_id,)
    elif principal.role == Role.TAILOR:
        if principal.tailor_id is None:
            raise ForbiddenError("Tailor account is not linked to a tailor")
        if tailor_ids and tailor_ids != (principal.tailor_id,):
            logger.warning(
                "analytics.scope_override_ignored",
                user_id=principal.user_id,
                requested_tailor_ids=list(tailor_ids),
            )
        tailor_ids = (principal.tailor_id,)

    search = search.strip() if search else None
    return FilterContext(
        tenant_id=tenant_id,
        user_id=principal.user_id,
        role=principal.role,
        date_range=date_range,
        style_ids=style_ids,
        vendor_ids=vendor_ids,
        tailor_ids=tailor_ids,
        search=search or None,
    )
