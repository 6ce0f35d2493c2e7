"""Shared fixtures: a throwaway SQLite database seeded with reference data."""

from datetime import date

import pytest

from grainplan.db import connect, ensure_schema, q
from grainplan.models import RecommendationPoint, VirtualSale
from grainplan.services.demo_data import upsert_reference_data
from grainplan.services.market_data import create_grain_entry
from grainplan.services.scenarios import create_scenario

START = date(2024, 1, 1)
END = date(2024, 1, 31)


def _id(conn, table, name):
    return int(q(conn, f"SELECT id FROM {table} WHERE name=?", (name,))[0]["id"])


@pytest.fixture
def db_path(tmp_path):
    return tmp_path / "grainplan-test.db"


@pytest.fixture
def conn(db_path):
    c = connect(db_path)
    ensure_schema(c)
    upsert_reference_data(c)
    yield c
    c.close()


@pytest.fixture
def ref(conn):
    """Ids of the seeded reference rows, by short name."""
    return {
        "wheat": _id(conn, "crops", "Wheat"),
        "canola": _id(conn, "crops", "Canola"),
        "cwrs": _id(conn, "crop_classes", "CWRS"),
        "north": _id(conn, "regions", "North"),
        "south": _id(conn, "regions", "South"),
        "lloydminster": _id(conn, "towns", "Lloydminster"),
        "weyburn": _id(conn, "towns", "Weyburn"),
        "viterra": _id(conn, "elevators", "Viterra"),
        "pioneer": _id(conn, "elevators", "Richardson Pioneer"),
    }


@pytest.fixture
def scenario_data(ref):
    return {
        "name": "Wheat January plan",
        "crop_id": ref["wheat"],
        "start_date": START,
        "end_date": END,
        "production_estimate": 10000,
    }


@pytest.fixture
def scenario(conn, scenario_data):
    return create_scenario(conn, scenario_data, actor_id="alice")


@pytest.fixture
def wheat_prices(conn, ref):
    """Five wheat cash prices in early January at Viterra/Lloydminster."""
    prices = {
        date(2024, 1, 2): 10.0,
        date(2024, 1, 3): 11.0,
        date(2024, 1, 4): 12.0,
        date(2024, 1, 5): 9.0,
        date(2024, 1, 8): 10.0,
    }
    for d, cash in prices.items():
        create_grain_entry(
            conn,
            entry_date=d,
            crop_id=ref["wheat"],
            class_id=ref["cwrs"],
            elevator_id=ref["viterra"],
            town_id=ref["lloydminster"],
            cash_price=cash,
            futures_price=cash + 1.0,
        )
    return prices


@pytest.fixture
def make_sale():
    def _make(volume, price=None, sale_date=START, **kw):
        return VirtualSale(
            id=None,
            scenario_id=None,
            sale_date=sale_date,
            volume_bushels=volume,
            cash_price=price,
            **kw,
        )

    return _make


@pytest.fixture
def make_point():
    def _make(target_date, pct):
        return RecommendationPoint(id=None, scenario_id=None, target_date=target_date, target_percentage_sold=pct)

    return _make
