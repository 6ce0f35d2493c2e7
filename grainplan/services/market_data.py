from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Sequence

from grainplan.db import q, x
from grainplan.errors import NotFoundError
from grainplan.models import MarketPoint, Scope
from grainplan.utils import iso_date, to_date

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MarketStats:
    average: float
    high: float
    low: float
    current: float


def _scope_where(scope: Scope) -> tuple[str, list]:
    """
    Conjunctive filters for the configured scope dimensions.
    Region has no column on grain entries; it narrows through the town's region.
    """
    clauses: list[str] = []
    params: list = []
    if scope.crop_id is not None:
        clauses.append("ge.crop_id = ?")
        params.append(int(scope.crop_id))
    if scope.class_id is not None:
        clauses.append("ge.class_id = ?")
        params.append(int(scope.class_id))
    if scope.elevator_id is not None:
        clauses.append("ge.elevator_id = ?")
        params.append(int(scope.elevator_id))
    if scope.town_id is not None:
        clauses.append("ge.town_id = ?")
        params.append(int(scope.town_id))
    if scope.region_id is not None:
        clauses.append("ge.town_id IN (SELECT id FROM towns WHERE region_id = ?)")
        params.append(int(scope.region_id))
    sql = "".join(f" AND {c}" for c in clauses)
    return sql, params


def _point(r) -> MarketPoint:
    cash = float(r["cash_price"]) if r["cash_price"] is not None else 0.0
    futures = float(r["futures_price"]) if r["futures_price"] is not None else 0.0
    basis = float(r["basis"]) if r["basis"] is not None else 0.0
    return MarketPoint(date=to_date(r["entry_date"]), cash_price=cash, futures_price=futures, basis=basis)


def fetch_market_window(conn, scope: Scope, start_date, end_date) -> list[MarketPoint]:
    """
    Ordered-by-date price points matching every scope filter within [start, end].
    No rows is an empty list, not an error.
    """
    where, params = _scope_where(scope)
    rows = q(
        conn,
        f"""
        SELECT ge.entry_date, ge.cash_price, ge.futures_price,
               COALESCE(ge.basis, ge.cash_price - ge.futures_price) AS basis
        FROM grain_entries ge
        WHERE ge.entry_date >= ? AND ge.entry_date <= ?
        {where}
        ORDER BY ge.entry_date ASC, ge.id ASC
        """,
        [iso_date(start_date), iso_date(end_date), *params],
    )
    points = [_point(r) for r in rows]
    logger.debug("Market window %s..%s returned %d points", start_date, end_date, len(points))
    return points


def latest_market_price(conn, scope: Scope, start_date, as_of) -> Optional[float]:
    """Cash price of the most recent in-scope observation on or before as_of."""
    points = fetch_market_window(conn, scope, start_date, as_of)
    priced = [p for p in points if p.cash_price > 0]
    return priced[-1].cash_price if priced else None


def market_statistics(points: Sequence[MarketPoint]) -> MarketStats:
    if not points:
        return MarketStats(average=0.0, high=0.0, low=0.0, current=0.0)
    prices = [p.cash_price for p in points]
    return MarketStats(
        average=sum(prices) / len(prices),
        high=max(prices),
        low=min(prices),
        current=points[-1].cash_price,
    )


def get_grain_entry(conn, grain_entry_id: int):
    rows = q(conn, "SELECT * FROM grain_entries WHERE id=?", (int(grain_entry_id),))
    if not rows:
        raise NotFoundError("grain entry", grain_entry_id)
    return rows[0]


def list_grain_entries(conn, scope: Optional[Scope] = None, *, limit: int = 500):
    where, params = _scope_where(scope or Scope())
    return q(
        conn,
        f"""
        SELECT ge.id, ge.entry_date, c.name AS crop, cc.name AS class,
               e.name AS elevator, t.name AS town,
               ge.cash_price, ge.futures_price,
               COALESCE(ge.basis, ge.cash_price - ge.futures_price) AS basis,
               ge.contract_month
        FROM grain_entries ge
        JOIN crops c ON c.id = ge.crop_id
        LEFT JOIN crop_classes cc ON cc.id = ge.class_id
        LEFT JOIN elevators e ON e.id = ge.elevator_id
        LEFT JOIN towns t ON t.id = ge.town_id
        WHERE 1=1 {where}
        ORDER BY ge.entry_date DESC, ge.id DESC
        LIMIT ?
        """,
        [*params, int(limit)],
    )


def create_grain_entry(
    conn,
    *,
    entry_date,
    crop_id: int,
    cash_price: Optional[float],
    futures_price: Optional[float] = None,
    basis: Optional[float] = None,
    class_id: Optional[int] = None,
    elevator_id: Optional[int] = None,
    town_id: Optional[int] = None,
    contract_month: Optional[str] = None,
    commit: bool = True,
) -> int:
    d = to_date(entry_date)
    if d is None:
        raise ValueError("Entry date is required.")
    if basis is None and cash_price is not None and futures_price is not None:
        basis = float(cash_price) - float(futures_price)

    return x(
        conn,
        """
        INSERT INTO grain_entries (
            entry_date, crop_id, class_id, elevator_id, town_id,
            cash_price, futures_price, basis, contract_month
        ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
        """,
        (
            d.isoformat(),
            int(crop_id),
            int(class_id) if class_id is not None else None,
            int(elevator_id) if elevator_id is not None else None,
            int(town_id) if town_id is not None else None,
            float(cash_price) if cash_price is not None else None,
            float(futures_price) if futures_price is not None else None,
            float(basis) if basis is not None else None,
            contract_month,
        ),
        commit=commit,
    )

