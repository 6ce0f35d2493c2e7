from __future__ import annotations

from datetime import datetime, date, timezone
from typing import Optional


def iso_now() -> str:
    # Use UTC ISO timestamps for consistency.
    return datetime.now(timezone.utc).replace(microsecond=0).isoformat()


def safe_div(n: float, d: float) -> float:
    return float(n) / float(d) if d else 0.0


def to_date(v) -> Optional[date]:
    """Accept date, datetime or ISO string; blank values become None."""
    if v is None:
        return None
    if isinstance(v, datetime):
        return v.date()
    if isinstance(v, date):
        return v
    s = str(v).strip()
    if not s:
        return None
    return date.fromisoformat(s[:10])


def iso_date(v) -> Optional[str]:
    d = to_date(v)
    return d.isoformat() if d else None


def to_float_or_none(v) -> Optional[float]:
    if v is None:
        return None
    if isinstance(v, str) and not v.strip():
        return None
    return float(v)


def format_currency(value: float, currency: str = "CAD", decimals: int = 2) -> str:
    symbol = "$" if currency in {"CAD", "USD"} else f"{currency} "
    sign = "-" if value < 0 else ""
    return f"{sign}{symbol}{abs(float(value)):,.{decimals}f}"


def format_volume(value: float) -> str:
    return f"{float(value):,.0f} bu"


def format_percentage(value: float, decimals: int = 1) -> str:
    return f"{float(value):.{decimals}f}%"
