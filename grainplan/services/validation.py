"""
Pure validation rules for scenario, sale and recommendation input.

Every rule runs; callers get the complete list of issues in one pass.
Warnings are advisory and do not make a result invalid.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import Any, Iterable, Mapping, Optional

from grainplan.config import DEFAULT_TUNING, Tuning
from grainplan.models import PRICE_TYPES, RISK_TOLERANCES, SCOPE_FIELDS, VirtualSale
from grainplan.utils import to_date

SEVERITY_ERROR = "error"
SEVERITY_WARNING = "warning"

MAX_NAME_LENGTH = 200


@dataclass(frozen=True)
class ValidationIssue:
    field: str
    message: str
    severity: str = SEVERITY_ERROR


@dataclass
class ValidationResult:
    errors: list[ValidationIssue] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not any(e.severity == SEVERITY_ERROR for e in self.errors)

    @property
    def warnings(self) -> list[ValidationIssue]:
        return [e for e in self.errors if e.severity == SEVERITY_WARNING]

    def add(self, field_name: str, message: str, severity: str = SEVERITY_ERROR) -> None:
        self.errors.append(ValidationIssue(field_name, message, severity))

    def fields(self) -> set[str]:
        return {e.field for e in self.errors if e.severity == SEVERITY_ERROR}

    def summary(self) -> str:
        return "; ".join(f"{e.field}: {e.message}" for e in self.errors)


def _blank(v: Any) -> bool:
    return v is None or (isinstance(v, str) and not v.strip())


def _date_field(data: Mapping[str, Any], key: str, label: str, result: ValidationResult) -> Optional[date]:
    raw = data.get(key)
    if _blank(raw):
        result.add(key, f"{label} is required")
        return None
    try:
        return to_date(raw)
    except (TypeError, ValueError):
        result.add(key, f"{label} is not a valid date")
        return None


def _number_field(data: Mapping[str, Any], key: str, label: str, result: ValidationResult) -> Optional[float]:
    raw = data.get(key)
    if _blank(raw):
        return None
    try:
        return float(raw)
    except (TypeError, ValueError):
        result.add(key, f"{label} must be a number")
        return None


def _id_field(data: Mapping[str, Any], key: str, label: str, result: ValidationResult) -> Optional[int]:
    raw = data.get(key)
    if _blank(raw):
        return None
    try:
        return int(raw)
    except (TypeError, ValueError):
        result.add(key, f"{label} must be a valid id")
        return None


def validate_scenario(data: Mapping[str, Any], *, tuning: Tuning = DEFAULT_TUNING) -> ValidationResult:
    result = ValidationResult()

    name = data.get("name")
    if _blank(name):
        result.add("name", "Scenario name is required")
    elif len(str(name).strip()) > MAX_NAME_LENGTH:
        result.add("name", f"Scenario name must be {MAX_NAME_LENGTH} characters or less")

    start = _date_field(data, "start_date", "Start date", result)
    end = _date_field(data, "end_date", "End date", result)
    if start and end and end <= start:
        result.add("end_date", "End date must be after start date")

    estimate = _number_field(data, "production_estimate", "Production estimate", result)
    if estimate is None:
        if "production_estimate" not in result.fields():
            result.add("production_estimate", "Production estimate is required")
    elif estimate <= 0:
        result.add("production_estimate", "Production estimate must be greater than 0")
    elif estimate > tuning.max_production_estimate:
        result.add("production_estimate", "Production estimate seems unreasonably high")

    if all(_blank(data.get(f)) for f in SCOPE_FIELDS):
        result.add(
            "granularity",
            "At least one level of granularity (crop, class, region, town, or elevator) must be selected",
        )
    for f in SCOPE_FIELDS:
        _id_field(data, f, f.replace("_id", "").capitalize(), result)

    risk = data.get("risk_tolerance")
    if not _blank(risk) and str(risk) not in RISK_TOLERANCES:
        result.add("risk_tolerance", f"Risk tolerance must be one of: {', '.join(RISK_TOLERANCES)}")

    return result


def validate_sale(
    data: Mapping[str, Any],
    production_estimate: float,
    existing_sales: Iterable[VirtualSale],
    *,
    window: Optional[tuple[date, date]] = None,
    tuning: Tuning = DEFAULT_TUNING,
) -> ValidationResult:
    result = ValidationResult()
    estimate = float(production_estimate or 0)

    sale_date = _date_field(data, "sale_date", "Sale date", result)
    if sale_date and window and not (window[0] <= sale_date <= window[1]):
        result.add("sale_date", "Sale date must fall within the scenario window")

    volume = _number_field(data, "volume_bushels", "Volume", result)
    if "volume_bushels" not in result.fields():
        if volume is None or volume <= 0:
            result.add("volume_bushels", "Volume must be greater than 0")
        elif volume > estimate * tuning.max_sale_to_production_ratio:
            result.add("volume_bushels", "Volume seems unreasonably high compared to production estimate")

    already = sum(float(s.volume_bushels) for s in existing_sales)
    total_after = already + (volume if volume and volume > 0 else 0.0)
    if total_after > estimate * tuning.max_cumulative_sold_ratio:
        result.add(
            "volume_bushels",
            f"Total sales ({total_after:.0f} bu) would exceed "
            f"{tuning.max_cumulative_sold_ratio * 100:.0f}% of production estimate",
        )

    price_type = data.get("price_type")
    if _blank(price_type):
        result.add("price_type", "Price type is required")
    elif price_type not in PRICE_TYPES:
        result.add("price_type", f"Price type must be one of: {', '.join(PRICE_TYPES)}")

    cash = _number_field(data, "cash_price", "Cash price", result)
    futures = _number_field(data, "futures_price", "Futures price", result)

    if price_type == "manual" and cash is None and "cash_price" not in result.fields():
        result.add("cash_price", "Cash price is required for manual entry")
    if price_type == "grain_entry" and _blank(data.get("grain_entry_id")):
        result.add("grain_entry_id", "Grain entry selection is required")
    _id_field(data, "grain_entry_id", "Grain entry", result)
    _id_field(data, "elevator_id", "Elevator", result)
    _id_field(data, "town_id", "Town", result)

    if cash is not None:
        if cash < 0:
            result.add("cash_price", "Cash price cannot be negative")
        elif cash > tuning.max_cash_price:
            result.add("cash_price", "Cash price seems unreasonably high")

    if futures is not None and futures < 0:
        result.add("futures_price", "Futures price cannot be negative")

    return result


def validate_recommendation(
    data: Mapping[str, Any],
    scenario_start: date,
    scenario_end: date,
) -> ValidationResult:
    result = ValidationResult()

    target_date = _date_field(data, "target_date", "Target date", result)
    if target_date:
        if target_date < to_date(scenario_start):
            result.add("target_date", "Target date cannot be before scenario start date")
        if target_date > to_date(scenario_end):
            result.add("target_date", "Target date cannot be after scenario end date")

    pct = _number_field(data, "target_percentage_sold", "Target percentage", result)
    if pct is None:
        if "target_percentage_sold" not in result.fields():
            result.add("target_percentage_sold", "Target percentage is required")
    elif pct < 0:
        result.add("target_percentage_sold", "Target percentage cannot be negative")
    elif pct > 100:
        result.add("target_percentage_sold", "Target percentage cannot exceed 100%")

    return result


def validate_recommendation_sequence(points: Iterable[Any]) -> ValidationResult:
    """
    Accepts RecommendationPoint records or mappings with target_date/target_percentage_sold.
    Duplicate dates are errors; a falling target is a warning.
    """
    result = ValidationResult()

    pairs: list[tuple[date, float]] = []
    for p in points:
        if isinstance(p, Mapping):
            pairs.append((to_date(p["target_date"]), float(p["target_percentage_sold"])))
        else:
            pairs.append((to_date(p.target_date), float(p.target_percentage_sold)))

    seen: set[date] = set()
    for d, _ in pairs:
        if d in seen:
            result.add("recommendations", f"Each recommendation must have a unique target date ({d.isoformat()})")
        seen.add(d)

    ordered = sorted(pairs, key=lambda t: t[0])
    high_d, high_pct = None, None
    for d, pct in ordered:
        if high_pct is not None and pct < high_pct:
            result.add(
                "recommendations",
                f"Target percentage on {d.isoformat()} ({pct:g}%) is less than previous target "
                f"on {high_d.isoformat()} ({high_pct:g}%)",
                SEVERITY_WARNING,
            )
        if high_pct is None or pct >= high_pct:
            high_d, high_pct = d, pct

    return result
