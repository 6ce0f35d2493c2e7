from __future__ import annotations

from grainplan.errors import IllegalTransitionError
from grainplan.models import SCENARIO_STATUSES

PLANNING = "planning"
ACTIVE = "active"
CLOSED = "closed"
EVALUATED = "evaluated"

# Transitions a user may request directly via set_status.
MANUAL_TRANSITIONS = {
    PLANNING: {ACTIVE},
    ACTIVE: {CLOSED},
    CLOSED: set(),
    EVALUATED: set(),
}

# closed -> evaluated only happens through a final evaluation.
FINAL_EVALUATION_FROM = CLOSED

# Statuses in which the sales ledger and the target timeline may change.
EDITABLE_STATUSES = {PLANNING, ACTIVE}


def normalize_status(status: str) -> str:
    s = str(status or "").strip().lower()
    if s not in SCENARIO_STATUSES:
        raise IllegalTransitionError(f"Unknown status '{status}'. Use one of: {', '.join(SCENARIO_STATUSES)}.")
    return s


def can_transition(current: str, new: str) -> bool:
    return new in MANUAL_TRANSITIONS.get(current, set())


def check_transition(current: str, new: str) -> str:
    new = normalize_status(new)
    if new == EVALUATED:
        raise IllegalTransitionError("A scenario can only become 'evaluated' through a final evaluation.")
    if not can_transition(current, new):
        raise IllegalTransitionError(f"Cannot move scenario from '{current}' to '{new}'.")
    return new


def check_can_finalize(current: str) -> None:
    if current != FINAL_EVALUATION_FROM:
        raise IllegalTransitionError(f"Cannot finalize: scenario is '{current}', not 'closed'.")


def check_editable(current: str, action: str) -> None:
    if current not in EDITABLE_STATUSES:
        raise IllegalTransitionError(f"Cannot {action}: scenario is '{current}'.")


def next_statuses(current: str) -> list[str]:
    return sorted(MANUAL_TRANSITIONS.get(current, set()))
