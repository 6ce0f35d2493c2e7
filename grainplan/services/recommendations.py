from __future__ import annotations

import logging
from typing import Any, Mapping, Optional, Union

from grainplan.db import q, x
from grainplan.errors import NotFoundError
from grainplan.models import RecommendationPoint
from grainplan.services import lifecycle
from grainplan.services.scenarios import get_scenario
from grainplan.services.validation import (
    ValidationResult,
    validate_recommendation,
    validate_recommendation_sequence,
)
from grainplan.utils import iso_date, iso_now, to_date

logger = logging.getLogger(__name__)


def list_recommendations(conn, scenario_id: int) -> list[RecommendationPoint]:
    rows = q(
        conn,
        "SELECT * FROM scenario_recommendations WHERE scenario_id=? ORDER BY target_date ASC",
        (int(scenario_id),),
    )
    return [RecommendationPoint.from_row(r) for r in rows]


def get_recommendation(conn, recommendation_id: int) -> RecommendationPoint:
    rows = q(conn, "SELECT * FROM scenario_recommendations WHERE id=?", (int(recommendation_id),))
    if not rows:
        raise NotFoundError("recommendation", recommendation_id)
    return RecommendationPoint.from_row(rows[0])


def add_recommendation(
    conn,
    scenario_id: int,
    data: Mapping[str, Any],
    *,
    actor_id: str,
) -> Union[RecommendationPoint, ValidationResult]:
    """
    Inserts one point. Duplicate dates are rejected; a target lower than an
    earlier one is allowed and surfaces through check_recommendation_sequence.
    """
    scenario = get_scenario(conn, scenario_id)
    lifecycle.check_editable(scenario.status, "add recommendation")

    result = validate_recommendation(data, scenario.start_date, scenario.end_date)
    if not result.is_valid:
        return result

    target_date = to_date(data["target_date"])
    if any(p.target_date == target_date for p in list_recommendations(conn, scenario_id)):
        result.add("target_date", f"A recommendation already exists for {target_date.isoformat()}")
        return result

    notes: Optional[str] = data.get("notes")
    rec_id = x(
        conn,
        """
        INSERT INTO scenario_recommendations (
            scenario_id, target_date, target_percentage_sold, notes, created_by, created_at
        ) VALUES (?, ?, ?, ?, ?, ?)
        """,
        (
            int(scenario_id),
            iso_date(target_date),
            float(data["target_percentage_sold"]),
            notes.strip() if notes and notes.strip() else None,
            str(actor_id),
            iso_now(),
        ),
    )

    logger.info("Recommendation %s added to scenario %s by %s", rec_id, scenario_id, actor_id)
    return get_recommendation(conn, rec_id)


def check_recommendation_sequence(conn, scenario_id: int) -> ValidationResult:
    return validate_recommendation_sequence(list_recommendations(conn, scenario_id))


def delete_recommendation(conn, recommendation_id: int, *, actor_id: str) -> None:
    rec = get_recommendation(conn, recommendation_id)
    scenario = get_scenario(conn, rec.scenario_id)
    lifecycle.check_editable(scenario.status, "delete recommendation")

    x(conn, "DELETE FROM scenario_recommendations WHERE id=?", (int(recommendation_id),))
    logger.info("Recommendation %s removed from scenario %s by %s", recommendation_id, rec.scenario_id, actor_id)
