"""Cognitive offboarding workflow sessions."""

from legacy_keeper.workflow.models import (
    PROGRESS,
    TRANSITIONS,
    ArchiveResult,
    ErrorEntry,
    InterviewResult,
    WorkflowSession,
    WorkflowState,
    can_transition,
)
from legacy_keeper.workflow.orchestrator import (
    WorkflowOrchestrator,
    WorkflowParams,
    create_orchestrator,
)
from legacy_keeper.workflow.store import InMemorySessionStore, SessionStore
from legacy_keeper.workflow.validator import CompletionReport, validate_completion

__all__ = [
    # State machine
    "PROGRESS",
    "TRANSITIONS",
    "WorkflowSession",
    "WorkflowState",
    "can_transition",
    # Results
    "ArchiveResult",
    "ErrorEntry",
    "InterviewResult",
    # Orchestration
    "WorkflowOrchestrator",
    "WorkflowParams",
    "create_orchestrator",
    # Storage
    "InMemorySessionStore",
    "SessionStore",
    # Validation
    "CompletionReport",
    "validate_completion",
]
