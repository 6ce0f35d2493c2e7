from __future__ import annotations


class GrainPlanError(Exception):
    """Base class for errors surfaced by the scenario engine."""


class NotFoundError(GrainPlanError):
    def __init__(self, kind: str, record_id) -> None:
        super().__init__(f"{kind.capitalize()} {record_id} not found.")
        self.kind = kind
        self.record_id = record_id


class IllegalTransitionError(GrainPlanError):
    """A status change or operation the scenario lifecycle does not permit."""


class TransitionConflictError(IllegalTransitionError):
    """Another writer already moved the scenario out of the expected status."""


class DataAccessError(GrainPlanError):
    """Storage failure. Propagated as-is, never retried by the engine."""
