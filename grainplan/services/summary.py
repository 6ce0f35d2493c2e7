from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Optional, Sequence

from grainplan.config import DEFAULT_TUNING, Tuning
from grainplan.models import Scenario, ScenarioSummary, VirtualSale
from grainplan.services import ledger, timeline
from grainplan.services.evaluation import latest_evaluation
from grainplan.services.recommendations import list_recommendations
from grainplan.services.sales import list_sales
from grainplan.services.scenarios import ScenarioFilters, get_scenario, list_scenarios


@dataclass(frozen=True)
class ScenarioMetrics:
    total_scenarios: int
    active_scenarios: int
    completed_scenarios: int
    average_performance_score: float


@dataclass(frozen=True)
class PerformanceComparison:
    scenario_id: int
    scenario_name: str
    average_price: float
    total_revenue: float
    percentage_sold: float
    performance_score: float
    variance_from_recommendation: float


def _summarize(conn, scenario: Scenario, as_of: date, tuning: Tuning) -> ScenarioSummary:
    sales = list_sales(conn, scenario.id)
    points = list_recommendations(conn, scenario.id)
    pct = ledger.percentage_sold(sales, scenario.production_estimate)

    return ScenarioSummary(
        scenario=scenario,
        total_sales=ledger.total_volume(sales),
        percentage_sold=pct,
        average_price=ledger.weighted_average_price(sales),
        total_revenue=ledger.total_revenue(sales),
        sales_count=len(sales),
        last_sale_date=ledger.last_sale_date(sales),
        latest_evaluation=latest_evaluation(conn, scenario.id),
        current_target=timeline.current_target(points, as_of),
        health_status=timeline.classify(pct, points, as_of, tuning=tuning),
    )


def get_scenario_summary(
    conn,
    scenario_id: int,
    *,
    as_of: Optional[date] = None,
    tuning: Tuning = DEFAULT_TUNING,
) -> ScenarioSummary:
    """Derived view, rebuilt from the stored records on every call."""
    scenario = get_scenario(conn, scenario_id)
    return _summarize(conn, scenario, as_of or date.today(), tuning)


def list_scenario_summaries(
    conn,
    filters: Optional[ScenarioFilters] = None,
    *,
    as_of: Optional[date] = None,
    tuning: Tuning = DEFAULT_TUNING,
) -> list[ScenarioSummary]:
    day = as_of or date.today()
    return [_summarize(conn, s, day, tuning) for s in list_scenarios(conn, filters)]


def scenario_metrics(summaries: Sequence[ScenarioSummary]) -> ScenarioMetrics:
    scores = [s.latest_evaluation.performance_score for s in summaries if s.latest_evaluation]
    return ScenarioMetrics(
        total_scenarios=len(summaries),
        active_scenarios=sum(1 for s in summaries if s.scenario.status == "active"),
        completed_scenarios=sum(1 for s in summaries if s.scenario.status == "evaluated"),
        average_performance_score=(sum(scores) / len(scores)) if scores else 0.0,
    )


def compare_scenarios(summaries: Sequence[ScenarioSummary]) -> list[PerformanceComparison]:
    """Side-by-side rows for evaluated scenarios, best score first."""
    rows = [
        PerformanceComparison(
            scenario_id=s.scenario.id,
            scenario_name=s.scenario.name,
            average_price=s.average_price,
            total_revenue=s.total_revenue,
            percentage_sold=s.percentage_sold,
            performance_score=s.latest_evaluation.performance_score,
            variance_from_recommendation=s.latest_evaluation.variance_from_recommendation,
        )
        for s in summaries
        if s.latest_evaluation is not None
    ]
    return sorted(rows, key=lambda r: r.performance_score, reverse=True)


def is_ready_for_evaluation(
    scenario: Scenario,
    sales: Sequence[VirtualSale],
    as_of: Optional[date] = None,
    *,
    tuning: Tuning = DEFAULT_TUNING,
) -> bool:
    # Ready once the window has ended or most of the crop is sold.
    day = as_of or date.today()
    if day >= scenario.end_date:
        return True
    return ledger.percentage_sold(sales, scenario.production_estimate) >= tuning.ready_sold_pct
