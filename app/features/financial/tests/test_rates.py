"""Tests for effective vendor-rate lookup."""

from datetime import date, datetime, timezone
from decimal import Decimal
from types import SimpleNamespace
from unittest.mock import AsyncMock

import pytest

from app.features.financial.rates import RateBook, RateRecord, load_rate_book


class TestRateBook:
    def test_rate_in_force_on_day(self, rate_book):
        assert rate_book.rate_on(1, 10, date(2024, 1, 1)) == Decimal("40.00")
        assert rate_book.rate_on(1, 10, date(2024, 2, 29)) == Decimal("40.00")

    def test_later_rate_not_used_for_earlier_day(self, rate_book):
        """A rate effective in March never prices a February shipment."""
        assert rate_book.rate_on(1, 10, date(2024, 2, 15)) == Decimal("40.00")

    def test_same_effective_date_latest_created_wins(self, rate_book):
        assert rate_book.rate_on(1, 10, date(2024, 3, 1)) == Decimal("47.00")
        assert rate_book.rate_on(1, 10, date(2024, 12, 31)) == Decimal("47.00")

    def test_same_effective_and_created_highest_id_wins(self):
        created = datetime(2024, 1, 1, tzinfo=timezone.utc)
        book = RateBook(
            [
                RateRecord(9, 1, 10, Decimal("12"), date(2024, 1, 1), created_at=created),
                RateRecord(5, 1, 10, Decimal("11"), date(2024, 1, 1), created_at=created),
            ]
        )
        assert book.rate_on(1, 10, date(2024, 1, 1)) == Decimal("12")

    def test_missing_created_at_sorts_first(self):
        book = RateBook(
            [
                RateRecord(9, 1, 10, Decimal("12"), date(2024, 1, 1)),
                RateRecord(
                    5,
                    1,
                    10,
                    Decimal("11"),
                    date(2024, 1, 1),
                    created_at=datetime(2024, 1, 1, tzinfo=timezone.utc),
                ),
            ]
        )
        assert book.rate_on(1, 10, date(2024, 1, 2)) == Decimal("11")

    def test_no_rate_before_first_effective_date(self, rate_book):
        assert rate_book.rate_on(1, 10, date(2023, 12, 31)) is None

    def test_rates_are_per_vendor(self, rate_book):
        assert rate_book.rate_on(1, 20, date(2024, 3, 5)) == Decimal("60.00")
        assert rate_book.rate_on(1, 30, date(2024, 3, 5)) is None
        assert rate_book.rate_on(2, 10, date(2024, 3, 5)) is None

    def test_len(self, rate_book):
        assert len(rate_book) == 4
        assert len(RateBook([])) == 0


class TestLoadRateBook:
    @pytest.mark.asyncio
    async def test_no_styles_skips_query(self):
        db = AsyncMock()
        book = await load_rate_book(db, [])
        assert len(book) == 0
        db.execute.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_loads_rows(self):
        db = AsyncMock()
        db.execute.return_value = [
            SimpleNamespace(
                id=1,
                style_id=3,
                vendor_id=4,
                vendor_rate=Decimal("25.50"),
                effective_date=date(2024, 1, 1),
                created_at=None,
            )
        ]

        book = await load_rate_book(db, {3})

        assert book.rate_on(3, 4, date(2024, 6, 1)) == Decimal("25.50")
        assert len(book) == 1
        db.execute.assert_awaited_once()
