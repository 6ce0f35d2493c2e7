from __future__ import annotations

from datetime import date
from typing import Iterable, Optional, Sequence

from grainplan.models import VirtualSale
from grainplan.utils import safe_div

# Aggregates are recomputed from the full sale list on every read.


def _price(sale: VirtualSale) -> float:
    return float(sale.cash_price) if sale.cash_price is not None else 0.0


def total_volume(sales: Iterable[VirtualSale]) -> float:
    return sum(float(s.volume_bushels) for s in sales)


def total_revenue(sales: Iterable[VirtualSale]) -> float:
    return sum(_price(s) * float(s.volume_bushels) for s in sales)


def weighted_average_price(sales: Sequence[VirtualSale]) -> float:
    if not sales:
        return 0.0
    return safe_div(total_revenue(sales), total_volume(sales))


def percentage_sold(sales: Iterable[VirtualSale], production_estimate: float) -> float:
    if not production_estimate:
        return 0.0
    return total_volume(sales) * 100.0 / float(production_estimate)


def remaining_volume(sales: Iterable[VirtualSale], production_estimate: float) -> float:
    # Oversold scenarios clamp to zero remaining.
    return max(0.0, float(production_estimate) - total_volume(sales))


def unrealized_value(
    sales: Iterable[VirtualSale],
    production_estimate: float,
    current_market_price: float,
) -> float:
    return remaining_volume(sales, production_estimate) * float(current_market_price)


def calculate_basis(cash_price: Optional[float], futures_price: Optional[float]) -> Optional[float]:
    if cash_price is None or futures_price is None:
        return None
    return float(cash_price) - float(futures_price)


def percentage_of_production(volume_bushels: float, production_estimate: float) -> float:
    return safe_div(float(volume_bushels) * 100.0, production_estimate)


def last_sale_date(sales: Iterable[VirtualSale]) -> Optional[date]:
    dates = [s.sale_date for s in sales if s.sale_date is not None]
    return max(dates) if dates else None


def sales_within_window(sales: Iterable[VirtualSale], start: date, end: date) -> list[VirtualSale]:
    return [s for s in sales if s.sale_date is not None and start <= s.sale_date <= end]
