"""Workflow session state machine and per-phase results."""

import dataclasses
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from types import MappingProxyType
from typing import Any

from legacy_keeper.activity.models import IntensityReport
from legacy_keeper.archive.models import StoreResult
from legacy_keeper.exceptions import PhaseOrderError
from legacy_keeper.interview.models import (
    InterviewContext,
    KnowledgeArtifact,
    Question,
    TacitKnowledgeCategorization,
)
from legacy_keeper.interview.questions import InterviewPhase


class WorkflowState(str, Enum):
    """Cognitive offboarding workflow states, in progress order."""

    TRIGGERED = "TRIGGERED"
    SCANNING = "SCANNING"
    SCAN_COMPLETE = "SCAN_COMPLETE"
    INTERVIEWING = "INTERVIEWING"
    INTERVIEW_COMPLETE = "INTERVIEW_COMPLETE"
    ARCHIVING = "ARCHIVING"
    ARCHIVED = "ARCHIVED"
    FAILED = "FAILED"


# Strictly forward; every non-terminal state may fail
TRANSITIONS: dict[WorkflowState, frozenset[WorkflowState]] = {
    WorkflowState.TRIGGERED: frozenset({WorkflowState.SCANNING, WorkflowState.FAILED}),
    WorkflowState.SCANNING: frozenset({WorkflowState.SCAN_COMPLETE, WorkflowState.FAILED}),
    WorkflowState.SCAN_COMPLETE: frozenset({WorkflowState.INTERVIEWING, WorkflowState.FAILED}),
    WorkflowState.INTERVIEWING: frozenset({WorkflowState.INTERVIEW_COMPLETE, WorkflowState.FAILED}),
    WorkflowState.INTERVIEW_COMPLETE: frozenset({WorkflowState.ARCHIVING, WorkflowState.FAILED}),
    WorkflowState.ARCHIVING: frozenset({WorkflowState.ARCHIVED, WorkflowState.FAILED}),
    WorkflowState.ARCHIVED: frozenset(),
    WorkflowState.FAILED: frozenset(),
}

PROGRESS: dict[WorkflowState, int] = {
    WorkflowState.TRIGGERED: 10,
    WorkflowState.SCANNING: 25,
    WorkflowState.SCAN_COMPLETE: 40,
    WorkflowState.INTERVIEWING: 60,
    WorkflowState.INTERVIEW_COMPLETE: 80,
    WorkflowState.ARCHIVING: 90,
    WorkflowState.ARCHIVED: 100,
    WorkflowState.FAILED: 0,
}

TERMINAL_STATES = frozenset({WorkflowState.ARCHIVED, WorkflowState.FAILED})


def can_transition(current: WorkflowState, target: WorkflowState) -> bool:
    return target in TRANSITIONS[current]


def _read_only(obj: Any, name: str) -> None:
    """Replace a frozen dataclass mapping field with a read-only copy."""
    object.__setattr__(obj, name, MappingProxyType(dict(getattr(obj, name))))


@dataclass(frozen=True)
class ErrorEntry:
    """One entry of a session's append-only error log."""

    timestamp: datetime
    message: str
    code: str = "UNKNOWN_ERROR"
    details: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        _read_only(self, "details")


@dataclass(frozen=True)
class InterviewResult:
    """Questions and context produced by the interview phase."""

    questions: tuple[Question, ...]
    contextual_info: Mapping[str, Any]
    context: InterviewContext
    interview_flow: tuple[InterviewPhase, ...] = ()

    def __post_init__(self):
        _read_only(self, "contextual_info")


@dataclass(frozen=True)
class ArchiveResult:
    """Outcome of the archive phase."""

    knowledge_artifact: KnowledgeArtifact
    archive_location: StoreResult
    categorization: TacitKnowledgeCategorization | None = None


@dataclass(frozen=True)
class WorkflowSession:
    """One employee's journey through scan, interview and archive.

    Sessions are immutable. Every change produces a new instance, and the
    store swaps instances with compare-and-set on ``state``.
    """

    session_id: str
    employee_id: str
    triggered_by: str
    triggered_at: datetime
    state: WorkflowState = WorkflowState.TRIGGERED
    scan_results: IntensityReport | None = None
    interview_results: InterviewResult | None = None
    archive_results: ArchiveResult | None = None
    errors: tuple[ErrorEntry, ...] = ()
    progress: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        _read_only(self, "progress")

    @property
    def progress_percentage(self) -> int:
        return PROGRESS[self.state]

    @property
    def is_terminal(self) -> bool:
        return self.state in TERMINAL_STATES

    @property
    def department(self) -> str | None:
        return self.progress.get("department")

    @property
    def role(self) -> str | None:
        return self.progress.get("role")

    def transition(self, target: WorkflowState, **progress: Any) -> "WorkflowSession":
        """Return a copy in ``target`` state with progress fields merged in.

        Raises:
            PhaseOrderError: If the transition table forbids the move
        """
        if not can_transition(self.state, target):
            raise PhaseOrderError(
                f"Cannot move session {self.session_id} from {self.state.value} to {target.value}",
                {"current_state": self.state.value, "target_state": target.value},
            )
        return dataclasses.replace(
            self,
            state=target,
            progress=MappingProxyType({**self.progress, **progress}),
        )

    def with_results(self, **results: Any) -> "WorkflowSession":
        return dataclasses.replace(self, **results)

    def with_error(self, entry: ErrorEntry) -> "WorkflowSession":
        return dataclasses.replace(self, errors=self.errors + (entry,))
