from __future__ import annotations

from datetime import date
from typing import Sequence

from grainplan.config import DEFAULT_TUNING, Tuning
from grainplan.models import RecommendationPoint

HEALTH_ON_TRACK = "on-track"
HEALTH_AHEAD = "ahead"
HEALTH_BEHIND = "behind"
HEALTH_NO_TARGET = "no-target"


def sorted_points(points: Sequence[RecommendationPoint]) -> list[RecommendationPoint]:
    return sorted(points, key=lambda p: p.target_date)


def current_target(points: Sequence[RecommendationPoint], as_of: date) -> float:
    """
    Target of the first point dated on/after as_of.
    Past the last point the last target stays in force; no points -> 0.
    """
    ordered = sorted_points(points)
    if not ordered:
        return 0.0
    for p in ordered:
        if p.target_date >= as_of:
            return float(p.target_percentage_sold)
    return float(ordered[-1].target_percentage_sold)


def interpolate(points: Sequence[RecommendationPoint], as_of: date) -> float:
    """
    Linear staircase smoothing between consecutive points.
    Before the first point -> 0, after the last -> last target.
    """
    ordered = sorted_points(points)
    if not ordered:
        return 0.0

    before = [p for p in ordered if p.target_date <= as_of]
    after = [p for p in ordered if p.target_date > as_of]

    if not after:
        return float(before[-1].target_percentage_sold)
    if not before:
        return 0.0

    lo, hi = before[-1], after[0]
    span = (hi.target_date - lo.target_date).days
    ratio = (as_of - lo.target_date).days / span
    return float(lo.target_percentage_sold) + ratio * (
        float(hi.target_percentage_sold) - float(lo.target_percentage_sold)
    )


def variance_from_recommendation(
    actual_pct: float,
    points: Sequence[RecommendationPoint],
    as_of: date,
) -> float:
    # Positive = ahead of plan, negative = behind.
    if not points:
        return 0.0
    return float(actual_pct) - current_target(points, as_of)


def classify(
    actual_pct: float,
    points: Sequence[RecommendationPoint],
    as_of: date,
    *,
    tuning: Tuning = DEFAULT_TUNING,
) -> str:
    if not points:
        return HEALTH_NO_TARGET

    variance = variance_from_recommendation(actual_pct, points, as_of)
    if abs(variance) <= tuning.on_track_tolerance_pct:
        return HEALTH_ON_TRACK
    if variance > tuning.on_track_tolerance_pct:
        return HEALTH_AHEAD
    return HEALTH_BEHIND
