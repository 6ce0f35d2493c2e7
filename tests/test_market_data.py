"""Tests for the market data accessor."""

from datetime import date

import pytest

from grainplan.db import connect
from grainplan.errors import DataAccessError, NotFoundError
from grainplan.models import Scope
from grainplan.services.market_data import (
    create_grain_entry,
    fetch_market_window,
    get_grain_entry,
    latest_market_price,
    list_grain_entries,
    market_statistics,
)

JAN_1 = date(2024, 1, 1)
JAN_31 = date(2024, 1, 31)


class TestFetchMarketWindow:
    def test_ordered_by_date(self, conn, ref, wheat_prices):
        points = fetch_market_window(conn, Scope(crop_id=ref["wheat"]), JAN_1, JAN_31)

        assert [p.date for p in points] == sorted(wheat_prices)
        assert [p.cash_price for p in points] == [10.0, 11.0, 12.0, 9.0, 10.0]

    def test_basis_derived_when_missing(self, conn, ref, wheat_prices):
        points = fetch_market_window(conn, Scope(crop_id=ref["wheat"]), JAN_1, JAN_31)
        assert all(p.basis == pytest.approx(-1.0) for p in points)

    def test_window_bounds_inclusive(self, conn, ref, wheat_prices):
        points = fetch_market_window(conn, Scope(crop_id=ref["wheat"]), date(2024, 1, 3), date(2024, 1, 5))
        assert [p.date.day for p in points] == [3, 4, 5]

    def test_filters_are_conjunctive(self, conn, ref, wheat_prices):
        create_grain_entry(
            conn,
            entry_date=date(2024, 1, 2),
            crop_id=ref["wheat"],
            elevator_id=ref["pioneer"],
            town_id=ref["weyburn"],
            cash_price=8.0,
        )

        at_viterra = fetch_market_window(conn, Scope(crop_id=ref["wheat"], elevator_id=ref["viterra"]), JAN_1, JAN_31)
        wrong_town = fetch_market_window(
            conn, Scope(crop_id=ref["wheat"], elevator_id=ref["viterra"], town_id=ref["weyburn"]), JAN_1, JAN_31
        )

        assert len(at_viterra) == 5
        assert wrong_town == []

    def test_region_filters_through_town(self, conn, ref, wheat_prices):
        create_grain_entry(conn, entry_date=date(2024, 1, 2), crop_id=ref["wheat"], town_id=ref["weyburn"], cash_price=8.0)

        north = fetch_market_window(conn, Scope(crop_id=ref["wheat"], region_id=ref["north"]), JAN_1, JAN_31)
        south = fetch_market_window(conn, Scope(crop_id=ref["wheat"], region_id=ref["south"]), JAN_1, JAN_31)

        assert len(north) == 5
        assert [p.cash_price for p in south] == [8.0]

    def test_no_match_is_empty(self, conn, ref, wheat_prices):
        assert fetch_market_window(conn, Scope(crop_id=ref["canola"]), JAN_1, JAN_31) == []

    def test_storage_failure_raises(self, tmp_path):
        bare = connect(tmp_path / "empty.db")
        with pytest.raises(DataAccessError):
            fetch_market_window(bare, Scope(crop_id=1), JAN_1, JAN_31)
        bare.close()


class TestMarketHelpers:
    def test_statistics(self, conn, ref, wheat_prices):
        stats = market_statistics(fetch_market_window(conn, Scope(crop_id=ref["wheat"]), JAN_1, JAN_31))

        assert stats.average == pytest.approx(10.4)
        assert stats.high == 12.0
        assert stats.low == 9.0
        assert stats.current == 10.0

    def test_statistics_empty(self):
        stats = market_statistics([])
        assert (stats.average, stats.high, stats.low, stats.current) == (0.0, 0.0, 0.0, 0.0)

    def test_latest_market_price_as_of(self, conn, ref, wheat_prices):
        scope = Scope(crop_id=ref["wheat"])
        assert latest_market_price(conn, scope, JAN_1, date(2024, 1, 4)) == 12.0
        assert latest_market_price(conn, scope, JAN_1, date(2024, 1, 6)) == 9.0
        assert latest_market_price(conn, scope, JAN_1, JAN_1) is None

    def test_get_grain_entry(self, conn, ref):
        entry_id = create_grain_entry(conn, entry_date="2024-01-02", crop_id=ref["wheat"], cash_price=9.0, futures_price=10.5)

        row = get_grain_entry(conn, entry_id)
        assert row["basis"] == pytest.approx(-1.5)

        with pytest.raises(NotFoundError):
            get_grain_entry(conn, entry_id + 100)

    def test_list_grain_entries_newest_first(self, conn, ref, wheat_prices):
        rows = list_grain_entries(conn, Scope(crop_id=ref["wheat"]), limit=2)
        assert [r["entry_date"] for r in rows] == ["2024-01-08", "2024-01-05"]
