from __future__ import annotations

import logging
from typing import Any, Mapping, Optional, Union

from grainplan.config import DEFAULT_TUNING, Tuning
from grainplan.db import q, x
from grainplan.errors import NotFoundError
from grainplan.models import VirtualSale
from grainplan.services import lifecycle
from grainplan.services.ledger import calculate_basis, percentage_of_production
from grainplan.services.market_data import get_grain_entry, latest_market_price
from grainplan.services.scenarios import get_scenario
from grainplan.services.validation import ValidationResult, validate_sale
from grainplan.utils import iso_date, iso_now, to_date, to_float_or_none

logger = logging.getLogger(__name__)


def _normalize_text(v: Optional[str]) -> Optional[str]:
    if v is None:
        return None
    s = str(v).strip()
    return s if s else None


def _safe_int_or_none(v) -> Optional[int]:
    if v is None or (isinstance(v, str) and not v.strip()):
        return None
    return int(v)


def list_sales(conn, scenario_id: int) -> list[VirtualSale]:
    rows = q(
        conn,
        "SELECT * FROM scenario_sales WHERE scenario_id=? ORDER BY sale_date ASC, id ASC",
        (int(scenario_id),),
    )
    return [VirtualSale.from_row(r) for r in rows]


def get_sale(conn, sale_id: int) -> VirtualSale:
    rows = q(conn, "SELECT * FROM scenario_sales WHERE id=?", (int(sale_id),))
    if not rows:
        raise NotFoundError("sale", sale_id)
    return VirtualSale.from_row(rows[0])


def _resolve_prices(conn, scenario, data: Mapping[str, Any], result: ValidationResult) -> tuple:
    """
    Fill cash/futures from the selected price source.
    manual keeps what the user typed; grain_entry copies the referenced observation;
    current_market takes the latest in-scope cash price as of the sale date.
    """
    price_type = data.get("price_type")
    cash = to_float_or_none(data.get("cash_price"))
    futures = to_float_or_none(data.get("futures_price"))

    if price_type == "grain_entry":
        try:
            entry = get_grain_entry(conn, int(data["grain_entry_id"]))
        except NotFoundError:
            result.add("grain_entry_id", "Selected grain entry does not exist")
            return cash, futures
        if cash is None:
            cash = to_float_or_none(entry["cash_price"])
        if futures is None:
            futures = to_float_or_none(entry["futures_price"])
        if cash is None:
            result.add("grain_entry_id", "Selected grain entry has no cash price")

    elif price_type == "current_market":
        market = latest_market_price(conn, scenario.scope, scenario.start_date, to_date(data["sale_date"]))
        if market is None:
            result.add("price_type", "No market price is available for this scenario's scope")
        else:
            cash = market

    return cash, futures


def add_sale(
    conn,
    scenario_id: int,
    data: Mapping[str, Any],
    *,
    actor_id: str,
    tuning: Tuning = DEFAULT_TUNING,
) -> Union[VirtualSale, ValidationResult]:
    scenario = get_scenario(conn, scenario_id)
    lifecycle.check_editable(scenario.status, "add sale")

    existing = list_sales(conn, scenario_id)
    result = validate_sale(
        data,
        scenario.production_estimate,
        existing,
        window=(scenario.start_date, scenario.end_date),
        tuning=tuning,
    )
    if not result.is_valid:
        return result

    cash, futures = _resolve_prices(conn, scenario, data, result)
    if not result.is_valid:
        return result

    volume = float(data["volume_bushels"])
    sale_id = x(
        conn,
        """
        INSERT INTO scenario_sales (
            scenario_id, sale_date, volume_bushels, percentage_of_production,
            price_type, cash_price, futures_price, basis, grain_entry_id,
            elevator_id, town_id, contract_month, notes,
            created_by, created_at
        ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        """,
        (
            int(scenario_id),
            iso_date(data["sale_date"]),
            volume,
            percentage_of_production(volume, scenario.production_estimate),
            str(data["price_type"]),
            cash,
            futures,
            calculate_basis(cash, futures),
            _safe_int_or_none(data.get("grain_entry_id")),
            _safe_int_or_none(data.get("elevator_id")),
            _safe_int_or_none(data.get("town_id")),
            _normalize_text(data.get("contract_month")),
            _normalize_text(data.get("notes")),
            str(actor_id),
            iso_now(),
        ),
    )

    logger.info("Sale %s (%.0f bu) added to scenario %s by %s", sale_id, volume, scenario_id, actor_id)
    return get_sale(conn, sale_id)


def delete_sale(conn, sale_id: int, *, actor_id: str) -> None:
    # Sales are never edited in place: corrections are delete + re-add.
    sale = get_sale(conn, sale_id)
    scenario = get_scenario(conn, sale.scenario_id)
    lifecycle.check_editable(scenario.status, "delete sale")

    x(conn, "DELETE FROM scenario_sales WHERE id=?", (int(sale_id),))
    logger.info("Sale %s removed from scenario %s by %s", sale_id, sale.scenario_id, actor_id)
