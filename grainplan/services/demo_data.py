from __future__ import annotations

import logging
import random
from datetime import date, timedelta

from grainplan.db import q, x, ensure_schema, transaction
from grainplan.services.market_data import create_grain_entry
from grainplan.services.recommendations import add_recommendation
from grainplan.services.sales import add_sale
from grainplan.services.scenarios import create_scenario

logger = logging.getLogger(__name__)

DEMO_ACTOR = "demo"

DEFAULT_CROPS = {
    "Wheat": ["CWRS", "CPSR"],
    "Canola": ["No. 1"],
    "Barley": ["Feed", "Malt"],
}
DEFAULT_REGIONS = {
    "North": ["Lloydminster", "North Battleford"],
    "South": ["Weyburn", "Estevan"],
}
DEFAULT_ELEVATORS = ["Prairie Co-op", "Richardson Pioneer", "Viterra"]

# Rough per-bushel starting cash prices
BASE_PRICES = {"Wheat": 9.5, "Canola": 14.0, "Barley": 6.0}
FUTURES_SPREAD = {"Wheat": 1.10, "Canola": 0.60, "Barley": 0.90}


def upsert_reference_data(conn) -> None:
    ensure_schema(conn)

    for crop, classes in DEFAULT_CROPS.items():
        x(conn, "INSERT OR IGNORE INTO crops(name) VALUES (?)", (crop,))
        crop_id = int(q(conn, "SELECT id FROM crops WHERE name=?", (crop,))[0]["id"])
        for cls in classes:
            x(conn, "INSERT OR IGNORE INTO crop_classes(crop_id, name) VALUES (?, ?)", (crop_id, cls))

    for region, towns in DEFAULT_REGIONS.items():
        x(conn, "INSERT OR IGNORE INTO regions(name) VALUES (?)", (region,))
        region_id = int(q(conn, "SELECT id FROM regions WHERE name=?", (region,))[0]["id"])
        for town in towns:
            x(conn, "INSERT OR IGNORE INTO towns(name, region_id) VALUES (?, ?)", (town, region_id))

    for name in DEFAULT_ELEVATORS:
        x(conn, "INSERT OR IGNORE INTO elevators(name) VALUES (?)", (name,))


def wipe_all(conn) -> None:
    # Keep schema, delete data (order matters for FKs).
    for t in [
        "scenario_evaluations",
        "scenario_recommendations",
        "scenario_sales",
        "scenarios",
        "grain_entries",
        "elevators",
        "towns",
        "regions",
        "crop_classes",
        "crops",
    ]:
        conn.execute(f"DELETE FROM {t};")
    conn.commit()


def load_demo_prices(conn, *, start: date, days: int, seed: int = 7) -> int:
    """Random-walk daily cash/futures for every crop+class at every elevator (weekdays only)."""
    rng = random.Random(seed)
    crops = q(
        conn,
        """
        SELECT c.id AS crop_id, c.name AS crop, cc.id AS class_id
        FROM crops c JOIN crop_classes cc ON cc.crop_id = c.id
        ORDER BY c.id, cc.id
        """,
    )
    elevators = q(conn, "SELECT id FROM elevators ORDER BY id")
    towns = q(conn, "SELECT id FROM towns ORDER BY id")

    n = 0
    with transaction(conn):
        for c in crops:
            for i, e in enumerate(elevators):
                town_id = int(towns[i % len(towns)]["id"]) if towns else None
                cash = BASE_PRICES.get(str(c["crop"]), 8.0) + rng.uniform(-0.3, 0.3)
                for d in range(days):
                    day = start + timedelta(days=d)
                    if day.weekday() >= 5:
                        continue
                    cash = max(1.0, cash + rng.gauss(0, 0.08))
                    futures = cash + FUTURES_SPREAD.get(str(c["crop"]), 1.0) + rng.uniform(-0.05, 0.05)
                    create_grain_entry(
                        conn,
                        entry_date=day,
                        crop_id=int(c["crop_id"]),
                        class_id=int(c["class_id"]),
                        elevator_id=int(e["id"]),
                        town_id=town_id,
                        cash_price=round(cash, 2),
                        futures_price=round(futures, 2),
                        contract_month=(day + timedelta(days=60)).strftime("%b %Y"),
                        commit=False,
                    )
                    n += 1
    logger.info("Loaded %d demo grain entries", n)
    return n


def load_demo_data(conn, *, seed: int = 7) -> None:
    rng = random.Random(seed)
    upsert_reference_data(conn)

    start = date.today() - timedelta(days=150)
    load_demo_prices(conn, start=start, days=150, seed=seed)

    wheat = q(conn, "SELECT id FROM crops WHERE name='Wheat'")[0]
    elevator = q(conn, "SELECT id FROM elevators ORDER BY id LIMIT 1")[0]

    scenario = create_scenario(
        conn,
        {
            "name": "Wheat spring marketing plan",
            "description": "Demo scenario: staged sales into the spring rally",
            "crop_id": int(wheat["id"]),
            "elevator_id": int(elevator["id"]),
            "start_date": start,
            "end_date": start + timedelta(days=180),
            "production_estimate": 50000,
            "risk_tolerance": "moderate",
        },
        actor_id=DEMO_ACTOR,
    )

    for i, pct in enumerate([20, 40, 60, 80]):
        add_recommendation(
            conn,
            scenario.id,
            {"target_date": start + timedelta(days=30 * (i + 1)), "target_percentage_sold": pct},
            actor_id=DEMO_ACTOR,
        )

    for i in range(4):
        sale_day = start + timedelta(days=25 * (i + 1) + rng.randint(0, 4))
        add_sale(
            conn,
            scenario.id,
            {
                "sale_date": sale_day,
                "volume_bushels": rng.choice([5000, 7500, 10000]),
                "price_type": "current_market",
            },
            actor_id=DEMO_ACTOR,
        )
