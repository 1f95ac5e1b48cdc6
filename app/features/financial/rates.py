"""Effective vendor-rate lookup.

A rate applies from its ``effective_date`` until a later rate for the same
(style, vendor) takes over. Transactions are priced with the rate in force on
the transaction date, never the rate current at report time.

Tie-break when several rates share an ``effective_date``: the latest
``created_at`` wins, then the highest ``id``.
"""

from __future__ import annotations

from bisect import bisect_right
from collections import defaultdict
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.logging import get_logger
from app.features.data_platform.models import Rate

logger = get_logger(__name__)

RateKey = tuple[int, int]  # (style_id, vendor_id)


@dataclass(frozen=True)
class RateRecord:
    """Rate row reduced to the fields the lookup needs."""

    id: int
    style_id: int
    vendor_id: int
    vendor_rate: Decimal
    effective_date: date
    created_at: datetime | None = None


def _history_order(record: RateRecord) -> tuple[date, float, int]:
    created = record.created_at.timestamp() if record.created_at is not None else float("-inf")
    return (record.effective_date, created, record.id)


class RateBook:
    """In-memory price history indexed by (style, vendor)."""

    def __init__(self, records: Iterable[RateRecord]) -> None:
        grouped: dict[RateKey, list[RateRecord]] = defaultdict(list)
        for record in records:
            grouped[(record.style_id, record.vendor_id)].append(record)

        self._history: dict[RateKey, list[RateRecord]] = {}
        self._dates: dict[RateKey, list[date]] = {}
        for key, items in grouped.items():
            # Ascending, so the last entry at or before a day is the winner
            items.sort(key=_history_order)
            self._history[key] = items
            self._dates[key] = [r.effective_date for r in items]

    def __len__(self) -> int:
        return sum(len(items) for items in self._history.values())

    def rate_on(self, style_id: int, vendor_id: int, day: date) -> Decimal | None:
        """Rate in force for (style, vendor) on ``day``, or None if none had started."""
        key = (style_id, vendor_id)
        dates = self._dates.get(key)
        if not dates:
            return None
        idx = bisect_right(dates, day) - 1
        if idx < 0:
            return None
        return self._history[key][idx].vendor_rate


async def load_rate_book(db: AsyncSession, style_ids: Iterable[int]) -> RateBook:
    """Load every rate for the given styles.

    Args:
        db: Database session.
        style_ids: Styles whose price history is needed.

    Returns:
        RateBook over the loaded rows (empty when no styles are given).
    """
    ids = set(style_ids)
    if not ids:
        return RateBook([])

    stmt = select(
        Rate.id,
        Rate.style_id,
        Rate.vendor_id,
        Rate.vendor_rate,
        Rate.effective_date,
        Rate.created_at,
    ).where(Rate.style_id.in_(ids))
    result = await db.execute(stmt)
    book = RateBook(
        RateRecord(
            id=row.id,
            style_id=row.style_id,
            vendor_id=row.vendor_id,
            vendor_rate=Decimal(str(row.vendor_rate)),
            effective_date=row.effective_date,
            created_at=row.created_at,
        )
        for row in result
    )
    logger.debug("financial.rate_book_loaded", styles=len(ids), rates=len(book))
    return book
