from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Mapping, Optional, Union

from grainplan.config import DEFAULT_TUNING, Tuning
from grainplan.db import q, transaction, u, x
from grainplan.errors import NotFoundError, TransitionConflictError
from grainplan.models import SCOPE_FIELDS, Scenario
from grainplan.services import lifecycle
from grainplan.services.ledger import percentage_of_production
from grainplan.services.validation import ValidationResult, validate_scenario
from grainplan.utils import iso_date, iso_now

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = (
    "name",
    "description",
    *SCOPE_FIELDS,
    "start_date",
    "end_date",
    "production_estimate",
    "risk_tolerance",
    "market_assumptions",
    "notes",
)


@dataclass
class ScenarioFilters:
    status: Optional[str] = None
    crop_id: Optional[int] = None
    class_id: Optional[int] = None
    region_id: Optional[int] = None
    search: Optional[str] = None
    date_from: Optional[str] = None
    date_to: Optional[str] = None


def _clean_text(v: Optional[str]) -> Optional[str]:
    if v is None:
        return None
    s = str(v).strip()
    return s if s else None


def _opt_id(v) -> Optional[int]:
    if v is None or (isinstance(v, str) and not v.strip()):
        return None
    return int(v)


def _row_values(data: Mapping[str, Any]) -> dict:
    return {
        "name": str(data["name"]).strip(),
        "description": _clean_text(data.get("description")),
        **{f: _opt_id(data.get(f)) for f in SCOPE_FIELDS},
        "start_date": iso_date(data["start_date"]),
        "end_date": iso_date(data["end_date"]),
        "production_estimate": float(data["production_estimate"]),
        "risk_tolerance": _clean_text(data.get("risk_tolerance")),
        "market_assumptions": _clean_text(data.get("market_assumptions")),
        "notes": _clean_text(data.get("notes")),
    }


def _scenario_as_input(s: Scenario) -> dict:
    return {
        "name": s.name,
        "description": s.description,
        "crop_id": s.scope.crop_id,
        "class_id": s.scope.class_id,
        "region_id": s.scope.region_id,
        "town_id": s.scope.town_id,
        "elevator_id": s.scope.elevator_id,
        "start_date": s.start_date,
        "end_date": s.end_date,
        "production_estimate": s.production_estimate,
        "risk_tolerance": s.risk_tolerance,
        "market_assumptions": s.market_assumptions,
        "notes": s.notes,
    }


def get_scenario(conn, scenario_id: int) -> Scenario:
    rows = q(conn, "SELECT * FROM scenarios WHERE id=? AND deleted_at IS NULL", (int(scenario_id),))
    if not rows:
        raise NotFoundError("scenario", scenario_id)
    return Scenario.from_row(rows[0])


def list_scenarios(conn, filters: Optional[ScenarioFilters] = None) -> list[Scenario]:
    f = filters or ScenarioFilters()
    where = ["s.deleted_at IS NULL"]
    params: list = []

    if f.status:
        where.append("s.status = ?")
        params.append(str(f.status))
    for col in ("crop_id", "class_id", "region_id"):
        v = getattr(f, col)
        if v is not None:
            where.append(f"s.{col} = ?")
            params.append(int(v))
    if f.date_from:
        where.append("s.start_date >= ?")
        params.append(iso_date(f.date_from))
    if f.date_to:
        where.append("s.end_date <= ?")
        params.append(iso_date(f.date_to))
    if f.search and f.search.strip():
        like = f"%{f.search.strip().lower()}%"
        where.append(
            """(
              LOWER(s.name) LIKE ?
              OR LOWER(COALESCE(s.description, '')) LIKE ?
              OR LOWER(COALESCE(c.name, '')) LIKE ?
              OR LOWER(COALESCE(cc.name, '')) LIKE ?
              OR LOWER(COALESCE(r.name, '')) LIKE ?
            )"""
        )
        params.extend([like] * 5)

    rows = q(
        conn,
        f"""
        SELECT s.*
        FROM scenarios s
        LEFT JOIN crops c ON c.id = s.crop_id
        LEFT JOIN crop_classes cc ON cc.id = s.class_id
        LEFT JOIN regions r ON r.id = s.region_id
        WHERE {' AND '.join(where)}
        ORDER BY s.created_at DESC, s.id DESC
        """,
        params,
    )
    return [Scenario.from_row(r) for r in rows]


def create_scenario(
    conn,
    data: Mapping[str, Any],
    *,
    actor_id: str,
    tuning: Tuning = DEFAULT_TUNING,
) -> Union[Scenario, ValidationResult]:
    result = validate_scenario(data, tuning=tuning)
    if not result.is_valid:
        return result

    v = _row_values(data)
    now = iso_now()
    scenario_id = x(
        conn,
        """
        INSERT INTO scenarios (
            name, description,
            crop_id, class_id, region_id, town_id, elevator_id,
            start_date, end_date, production_estimate,
            status, risk_tolerance, market_assumptions, notes,
            created_by, created_at, updated_at
        ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, 'planning', ?, ?, ?, ?, ?, ?)
        """,
        (
            v["name"],
            v["description"],
            v["crop_id"],
            v["class_id"],
            v["region_id"],
            v["town_id"],
            v["elevator_id"],
            v["start_date"],
            v["end_date"],
            v["production_estimate"],
            v["risk_tolerance"],
            v["market_assumptions"],
            v["notes"],
            str(actor_id),
            now,
            now,
        ),
    )
    logger.info("Scenario %s created by %s", scenario_id, actor_id)
    return get_scenario(conn, scenario_id)


def update_scenario(
    conn,
    scenario_id: int,
    changes: Mapping[str, Any],
    *,
    actor_id: str,
    tuning: Tuning = DEFAULT_TUNING,
) -> Union[Scenario, ValidationResult]:
    """
    Field edits only. Status goes through set_status/evaluate and the creator never changes.
    Stored sale percentages are refreshed when the production estimate moves.
    """
    current = get_scenario(conn, scenario_id)
    lifecycle.check_editable(current.status, "edit scenario")

    unknown = set(changes) - set(EDITABLE_FIELDS)
    if unknown:
        result = ValidationResult()
        for k in sorted(unknown):
            result.add(k, "Field cannot be edited")
        return result

    merged = {**_scenario_as_input(current), **dict(changes)}
    result = validate_scenario(merged, tuning=tuning)
    if not result.is_valid:
        return result

    v = _row_values(merged)
    with transaction(conn):
        x(
            conn,
            f"""
            UPDATE scenarios SET
                {', '.join(f'{k}=?' for k in v)},
                updated_at=?
            WHERE id=?
            """,
            (*v.values(), iso_now(), int(scenario_id)),
            commit=False,
        )
        if float(v["production_estimate"]) != current.production_estimate:
            _refresh_sale_percentages(conn, int(scenario_id), float(v["production_estimate"]))

    logger.info("Scenario %s updated by %s (%s)", scenario_id, actor_id, ", ".join(sorted(changes)))
    return get_scenario(conn, scenario_id)


def _refresh_sale_percentages(conn, scenario_id: int, production_estimate: float) -> None:
    rows = q(conn, "SELECT id, volume_bushels FROM scenario_sales WHERE scenario_id=?", (scenario_id,))
    for r in rows:
        x(
            conn,
            "UPDATE scenario_sales SET percentage_of_production=? WHERE id=?",
            (percentage_of_production(float(r["volume_bushels"]), production_estimate), int(r["id"])),
            commit=False,
        )


def set_status(conn, scenario_id: int, new_status: str, *, actor_id: str) -> Scenario:
    current = get_scenario(conn, scenario_id)
    new_status = lifecycle.check_transition(current.status, new_status)

    # Conditional on the status we validated against, so concurrent changes cannot skip a state.
    n = u(
        conn,
        "UPDATE scenarios SET status=?, updated_at=? WHERE id=? AND status=? AND deleted_at IS NULL",
        (new_status, iso_now(), int(scenario_id), current.status),
    )
    if n != 1:
        raise TransitionConflictError(
            f"Scenario {scenario_id} changed status concurrently; expected '{current.status}'."
        )

    logger.info("Scenario %s: %s -> %s by %s", scenario_id, current.status, new_status, actor_id)
    return get_scenario(conn, scenario_id)


def delete_scenario(conn, scenario_id: int, *, actor_id: str) -> bool:
    """
    Returns True for a hard delete (children cascade), False for a soft delete.
    Scenarios referenced by evaluations are only hidden so the snapshots survive.
    """
    get_scenario(conn, scenario_id)

    n_evals = int(
        q(conn, "SELECT COUNT(1) AS n FROM scenario_evaluations WHERE scenario_id=?", (int(scenario_id),))[0]["n"]
    )
    if n_evals:
        now = iso_now()
        x(conn, "UPDATE scenarios SET deleted_at=?, updated_at=? WHERE id=?", (now, now, int(scenario_id)))
        logger.info("Scenario %s soft-deleted by %s (%d evaluations kept)", scenario_id, actor_id, n_evals)
        return False

    x(conn, "DELETE FROM scenarios WHERE id=?", (int(scenario_id),))
    logger.info("Scenario %s deleted by %s", scenario_id, actor_id)
    return True
