"""Result types for a run."""

from dataclasses import dataclass, field
from enum import StrEnum
from typing import Dict, List, Optional, Tuple


class Action(StrEnum):
    """What the engine did with a resource."""

    create = "create"
    update = "update"
    skip = "skip"
    read = "read"
    delete = "delete"
    fail = "fail"


@dataclass
class ResourceOutcome:
    """Outcome of one resource in a run."""

    fqn: str
    type: str
    action: Action
    error: Optional[str] = None


@dataclass
class ReconcileReport:
    """Partial-success report of orphan (or destroy-phase) deletion."""

    deleted: List[str] = field(default_factory=list)
    failed: Dict[str, str] = field(default_factory=dict)
    blocked: List[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return not self.failed and not self.blocked


@dataclass
class RunResult:
    """Result of executing a scope tree."""

    app: str
    stage: str
    phase: str
    outcomes: Dict[str, ResourceOutcome] = field(default_factory=dict)
    transitions: List[Tuple[str, str]] = field(default_factory=list)
    reconcile: Optional[ReconcileReport] = None
    replacements: Optional[ReconcileReport] = None
    duration_seconds: float = 0.0

    def with_action(self, action: Action) -> List[str]:
        return [fqn for fqn, outcome in self.outcomes.items() if outcome.action == action]

    @property
    def failures(self) -> Dict[str, str]:
        """Failed FQNs mapped to their error message."""
        errors = {
            fqn: outcome.error or "failed"
            for fqn, outcome in self.outcomes.items()
            if outcome.action == Action.fail
        }
        if self.replacements is not None:
            for fqn, message in self.replacements.failed.items():
                errors.setdefault(fqn, message)
        if self.reconcile is not None:
            errors.update(self.reconcile.failed)
            for fqn in self.reconcile.blocked:
                errors.setdefault(fqn, "blocked by a failed dependent deletion")
        return errors

    @property
    def success(self) -> bool:
        return not self.failures


class ResultCollector:
    """Aggregates resource outcomes and persisted transitions during a run."""

    def __init__(self, app: str, stage: str, phase: str) -> None:
        self._result = RunResult(app=app, stage=stage, phase=phase)

    @property
    def has_failures(self) -> bool:
        return any(o.action == Action.fail for o in self._result.outcomes.values())

    def record(self, fqn: str, type: str, action: Action, error: Optional[str] = None) -> None:
        self._result.outcomes[fqn] = ResourceOutcome(fqn=fqn, type=type, action=action, error=error)

    def record_transition(self, fqn: str, status: str) -> None:
        self._result.transitions.append((fqn, status))

    def record_reconcile(self, report: ReconcileReport) -> None:
        self._result.reconcile = report

    def record_replacements(self, report: ReconcileReport) -> None:
        self._result.replacements = report

    def finalize(self, duration: float) -> RunResult:
        """Return the final result with duration set."""
        self._result.duration_seconds = duration
        return self._result
