"""
Scenario performance evaluation.

compute_evaluation() is pure: same inputs, same figures. evaluate() gathers the
inputs, stores the snapshot and, for a final evaluation, moves the scenario
from closed to evaluated in the same transaction.
"""
from __future__ import annotations

import logging
import math
from dataclasses import replace
from datetime import date
from typing import Optional, Sequence

from grainplan.config import DEFAULT_TUNING, Tuning
from grainplan.db import q, transaction, u, x
from grainplan.errors import IllegalTransitionError, NotFoundError, TransitionConflictError
from grainplan.models import Evaluation, MarketPoint, RecommendationPoint, Scenario, VirtualSale
from grainplan.services import ledger, lifecycle, timeline
from grainplan.services.market_data import fetch_market_window, market_statistics
from grainplan.services.recommendations import list_recommendations
from grainplan.services.sales import list_sales
from grainplan.services.scenarios import get_scenario
from grainplan.utils import iso_now, safe_div

logger = logging.getLogger(__name__)


def count_missed_opportunities(
    sales: Sequence[VirtualSale],
    market_window: Sequence[MarketPoint],
    percentile: float = 90.0,
) -> int:
    """
    Distinct market dates priced at or above the top-percentile threshold
    with no sale on that exact date.
    """
    if not market_window:
        return 0

    prices = sorted((p.cash_price for p in market_window), reverse=True)
    idx = math.floor(len(prices) * (100.0 - percentile) / 100.0)
    idx = min(max(idx, 0), len(prices) - 1)
    threshold = prices[idx]

    high_dates = {p.date for p in market_window if p.cash_price >= threshold}
    sale_dates = {s.sale_date for s in sales}
    return len(high_dates - sale_dates)


def performance_score(
    average_price_achieved: float,
    market_high_price: float,
    variance: float,
    *,
    tuning: Tuning = DEFAULT_TUNING,
) -> float:
    price_performance = safe_div(average_price_achieved, market_high_price) * 100.0
    strategy_adherence = max(0.0, 100.0 - abs(variance))
    score = price_performance * tuning.price_weight + strategy_adherence * tuning.adherence_weight
    return max(0.0, min(100.0, score))


def compose_notes(score: float, variance: float, missed: int, *, tuning: Tuning = DEFAULT_TUNING) -> str:
    lines = ["Automated evaluation."]
    if score >= 80:
        lines.append("Excellent performance - achieved high price capture and followed strategy.")
    elif score >= 60:
        lines.append("Good performance - reasonable price capture with some opportunities missed.")
    elif score >= 40:
        lines.append("Fair performance - improvement possible in timing and price capture.")
    else:
        lines.append("Below target performance - significant opportunities missed.")

    if abs(variance) > tuning.notes_variance_threshold_pct:
        direction = "ahead of" if variance > 0 else "behind"
        lines.append(f"Variance from recommendation: {abs(variance):.1f}% {direction} target.")

    if missed > 0:
        lines.append(f"Missed {missed} high-price opportunities during the period.")

    return "\n".join(lines)


def _clean_sales(scenario: Scenario, sales: Sequence[VirtualSale]) -> list[VirtualSale]:
    # Re-check the window and clamp negative volumes that slipped past validation.
    in_window = ledger.sales_within_window(sales, scenario.start_date, scenario.end_date)
    out = []
    for s in in_window:
        if s.volume_bushels < 0:
            logger.warning("Sale %s has negative volume %s; treating as 0", s.id, s.volume_bushels)
            s = replace(s, volume_bushels=0.0)
        out.append(s)
    return out


def compute_evaluation(
    scenario: Scenario,
    sales: Sequence[VirtualSale],
    recommendations: Sequence[RecommendationPoint],
    market_window: Sequence[MarketPoint],
    *,
    evaluation_date: date,
    is_final: bool = False,
    tuning: Tuning = DEFAULT_TUNING,
) -> Evaluation:
    valid_sales = _clean_sales(scenario, sales)

    estimate = max(0.0, scenario.production_estimate)
    pct_sold = ledger.percentage_sold(valid_sales, estimate)
    volume_sold = ledger.total_volume(valid_sales)
    avg_price = ledger.weighted_average_price(valid_sales)
    revenue = ledger.total_revenue(valid_sales)

    stats = market_statistics(market_window)

    variance = timeline.variance_from_recommendation(pct_sold, recommendations, evaluation_date)
    missed = count_missed_opportunities(valid_sales, market_window, tuning.opportunity_percentile)
    score = performance_score(avg_price, stats.high, variance, tuning=tuning)
    unrealized = ledger.unrealized_value(valid_sales, estimate, stats.current)

    return Evaluation(
        id=None,
        scenario_id=scenario.id,
        evaluation_date=evaluation_date,
        percentage_sold=pct_sold,
        total_volume_sold=volume_sold,
        average_price_achieved=avg_price,
        market_average_price=stats.average,
        market_high_price=stats.high,
        market_low_price=stats.low,
        performance_score=score,
        variance_from_recommendation=variance,
        opportunities_missed=missed,
        total_revenue=revenue,
        unrealized_value=unrealized,
        evaluation_notes=compose_notes(score, variance, missed, tuning=tuning),
        is_final=bool(is_final),
    )


def _insert_evaluation(conn, ev: Evaluation, actor_id: str) -> int:
    return x(
        conn,
        """
        INSERT INTO scenario_evaluations (
            scenario_id, evaluation_date,
            percentage_sold, total_volume_sold, average_price_achieved,
            market_average_price, market_high_price, market_low_price,
            performance_score, variance_from_recommendation, opportunities_missed,
            total_revenue, unrealized_value, evaluation_notes,
            is_final, created_by, created_at
        ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        """,
        (
            int(ev.scenario_id),
            ev.evaluation_date.isoformat(),
            ev.percentage_sold,
            ev.total_volume_sold,
            ev.average_price_achieved,
            ev.market_average_price,
            ev.market_high_price,
            ev.market_low_price,
            ev.performance_score,
            ev.variance_from_recommendation,
            int(ev.opportunities_missed),
            ev.total_revenue,
            ev.unrealized_value,
            ev.evaluation_notes,
            1 if ev.is_final else 0,
            str(actor_id),
            iso_now(),
        ),
        commit=False,
    )


def evaluate(
    conn,
    scenario_id: int,
    *,
    is_final: bool = False,
    actor_id: str,
    evaluation_date: Optional[date] = None,
    tuning: Tuning = DEFAULT_TUNING,
) -> Evaluation:
    as_of = evaluation_date or date.today()

    # Read, compute and write under one transaction so another session sharing
    # the connection cannot commit or roll back between the check and the insert.
    with transaction(conn):
        scenario = get_scenario(conn, scenario_id)
        if is_final:
            lifecycle.check_can_finalize(scenario.status)

        sales = list_sales(conn, scenario_id)
        recommendations = list_recommendations(conn, scenario_id)
        market_window = fetch_market_window(conn, scenario.scope, scenario.start_date, scenario.end_date)

        ev = compute_evaluation(
            scenario,
            sales,
            recommendations,
            market_window,
            evaluation_date=as_of,
            is_final=is_final,
            tuning=tuning,
        )

        if is_final:
            # A writer on another connection may still have moved the status.
            n = u(
                conn,
                "UPDATE scenarios SET status=?, updated_at=? WHERE id=? AND status=? AND deleted_at IS NULL",
                (lifecycle.EVALUATED, iso_now(), int(scenario_id), lifecycle.CLOSED),
                commit=False,
            )
            if n != 1:
                raise TransitionConflictError(
                    f"Cannot finalize: scenario {scenario_id} is no longer 'closed'."
                )
        evaluation_id = _insert_evaluation(conn, ev, actor_id)

    logger.info(
        "Scenario %s evaluated by %s (final=%s, score=%.1f)",
        scenario_id,
        actor_id,
        is_final,
        ev.performance_score,
    )
    return get_evaluation(conn, evaluation_id)


def get_evaluation(conn, evaluation_id: int) -> Evaluation:
    rows = q(conn, "SELECT * FROM scenario_evaluations WHERE id=?", (int(evaluation_id),))
    if not rows:
        raise NotFoundError("evaluation", evaluation_id)
    return Evaluation.from_row(rows[0])


def list_evaluations(conn, scenario_id: int) -> list[Evaluation]:
    rows = q(
        conn,
        """
        SELECT * FROM scenario_evaluations
        WHERE scenario_id=?
        ORDER BY evaluation_date DESC, id DESC
        """,
        (int(scenario_id),),
    )
    return [Evaluation.from_row(r) for r in rows]


def latest_evaluation(conn, scenario_id: int) -> Optional[Evaluation]:
    evaluations = list_evaluations(conn, scenario_id)
    return evaluations[0] if evaluations else None


def delete_evaluation(conn, evaluation_id: int, *, actor_id: str) -> None:
    ev = get_evaluation(conn, evaluation_id)
    if ev.is_final:
        raise IllegalTransitionError("The final evaluation of a scenario cannot be deleted.")
    x(conn, "DELETE FROM scenario_evaluations WHERE id=?", (int(evaluation_id),))
    logger.info("Evaluation %s of scenario %s deleted by %s", evaluation_id, ev.scenario_id, actor_id)
