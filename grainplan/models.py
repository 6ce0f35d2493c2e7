from __future__ import annotations

from dataclasses import dataclass, field, asdict
from datetime import date
from typing import Optional

from grainplan.utils import to_date

SCENARIO_STATUSES = ("planning", "active", "closed", "evaluated")
PRICE_TYPES = ("manual", "grain_entry", "current_market")
RISK_TOLERANCES = ("conservative", "moderate", "aggressive")
SCOPE_FIELDS = ("crop_id", "class_id", "region_id", "town_id", "elevator_id")


def _opt_int(v) -> Optional[int]:
    return int(v) if v is not None else None


def _opt_float(v) -> Optional[float]:
    return float(v) if v is not None else None


@dataclass(frozen=True)
class Scope:
    """Market-data dimensions a scenario is anchored to."""

    crop_id: Optional[int] = None
    class_id: Optional[int] = None
    region_id: Optional[int] = None
    town_id: Optional[int] = None
    elevator_id: Optional[int] = None


@dataclass
class Scenario:
    id: int
    name: str
    start_date: date
    end_date: date
    production_estimate: float
    status: str
    created_by: str
    scope: Scope = field(default_factory=Scope)
    description: Optional[str] = None
    risk_tolerance: Optional[str] = None
    market_assumptions: Optional[str] = None
    notes: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
    deleted_at: Optional[str] = None

    @classmethod
    def from_row(cls, r) -> "Scenario":
        return cls(
            id=int(r["id"]),
            name=str(r["name"]),
            start_date=to_date(r["start_date"]),
            end_date=to_date(r["end_date"]),
            production_estimate=float(r["production_estimate"]),
            status=str(r["status"]),
            created_by=str(r["created_by"]),
            scope=Scope(**{f: _opt_int(r[f]) for f in SCOPE_FIELDS}),
            description=r["description"],
            risk_tolerance=r["risk_tolerance"],
            market_assumptions=r["market_assumptions"],
            notes=r["notes"],
            created_at=r["created_at"],
            updated_at=r["updated_at"],
            deleted_at=r["deleted_at"],
        )


@dataclass
class VirtualSale:
    id: Optional[int]
    scenario_id: Optional[int]
    sale_date: date
    volume_bushels: float
    price_type: str = "manual"
    cash_price: Optional[float] = None
    futures_price: Optional[float] = None
    basis: Optional[float] = None
    percentage_of_production: float = 0.0
    grain_entry_id: Optional[int] = None
    elevator_id: Optional[int] = None
    town_id: Optional[int] = None
    contract_month: Optional[str] = None
    notes: Optional[str] = None
    created_by: Optional[str] = None
    created_at: Optional[str] = None

    @classmethod
    def from_row(cls, r) -> "VirtualSale":
        return cls(
            id=int(r["id"]),
            scenario_id=int(r["scenario_id"]),
            sale_date=to_date(r["sale_date"]),
            volume_bushels=float(r["volume_bushels"]),
            price_type=str(r["price_type"]),
            cash_price=_opt_float(r["cash_price"]),
            futures_price=_opt_float(r["futures_price"]),
            basis=_opt_float(r["basis"]),
            percentage_of_production=float(r["percentage_of_production"]),
            grain_entry_id=_opt_int(r["grain_entry_id"]),
            elevator_id=_opt_int(r["elevator_id"]),
            town_id=_opt_int(r["town_id"]),
            contract_month=r["contract_month"],
            notes=r["notes"],
            created_by=r["created_by"],
            created_at=r["created_at"],
        )


@dataclass
class RecommendationPoint:
    id: Optional[int]
    scenario_id: Optional[int]
    target_date: date
    target_percentage_sold: float
    notes: Optional[str] = None
    created_by: Optional[str] = None
    created_at: Optional[str] = None

    @classmethod
    def from_row(cls, r) -> "RecommendationPoint":
        return cls(
            id=int(r["id"]),
            scenario_id=int(r["scenario_id"]),
            target_date=to_date(r["target_date"]),
            target_percentage_sold=float(r["target_percentage_sold"]),
            notes=r["notes"],
            created_by=r["created_by"],
            created_at=r["created_at"],
        )


@dataclass(frozen=True)
class MarketPoint:
    date: date
    cash_price: float
    futures_price: float
    basis: float


@dataclass(frozen=True)
class Evaluation:
    """Immutable once written; re-evaluation creates a new record."""

    id: Optional[int]
    scenario_id: int
    evaluation_date: date
    percentage_sold: float
    total_volume_sold: float
    average_price_achieved: float
    market_average_price: float
    market_high_price: float
    market_low_price: float
    performance_score: float
    variance_from_recommendation: float
    opportunities_missed: int
    total_revenue: float
    unrealized_value: float
    evaluation_notes: str = ""
    is_final: bool = False
    created_by: Optional[str] = None
    created_at: Optional[str] = None

    @classmethod
    def from_row(cls, r) -> "Evaluation":
        return cls(
            id=int(r["id"]),
            scenario_id=int(r["scenario_id"]),
            evaluation_date=to_date(r["evaluation_date"]),
            percentage_sold=float(r["percentage_sold"]),
            total_volume_sold=float(r["total_volume_sold"]),
            average_price_achieved=float(r["average_price_achieved"]),
            market_average_price=float(r["market_average_price"]),
            market_high_price=float(r["market_high_price"]),
            market_low_price=float(r["market_low_price"]),
            performance_score=float(r["performance_score"]),
            variance_from_recommendation=float(r["variance_from_recommendation"]),
            opportunities_missed=int(r["opportunities_missed"]),
            total_revenue=float(r["total_revenue"]),
            unrealized_value=float(r["unrealized_value"]),
            evaluation_notes=r["evaluation_notes"] or "",
            is_final=bool(r["is_final"]),
            created_by=r["created_by"],
            created_at=r["created_at"],
        )

    def figures(self) -> dict:
        """Computed figures only (no identity/audit fields)."""
        d = asdict(self)
        for k in ("id", "created_by", "created_at", "is_final"):
            d.pop(k)
        return d


@dataclass
class ScenarioSummary:
    scenario: Scenario
    total_sales: float
    percentage_sold: float
    average_price: float
    total_revenue: float
    sales_count: int
    last_sale_date: Optional[date]
    latest_evaluation: Optional[Evaluation]
    current_target: float = 0.0
    health_status: str = "no-target"

    def as_row(self) -> dict:
        s = self.scenario
        le = self.latest_evaluation
        return {
            "id": s.id,
            "name": s.name,
            "status": s.status,
            "start_date": s.start_date.isoformat(),
            "end_date": s.end_date.isoformat(),
            "production_estimate": s.production_estimate,
            "total_sales": self.total_sales,
            "percentage_sold": round(self.percentage_sold, 2),
            "average_price": round(self.average_price, 4),
            "total_revenue": round(self.total_revenue, 2),
            "sales_count": self.sales_count,
            "last_sale_date": self.last_sale_date.isoformat() if self.last_sale_date else None,
            "health": self.health_status,
            "latest_score": round(le.performance_score, 1) if le else None,
        }
