"""Referential-integrity checks for finished workflow sessions."""

from dataclasses import dataclass, field

from legacy_keeper.workflow.models import WorkflowSession, WorkflowState


@dataclass
class CompletionReport:
    """Outcome of validating a session."""

    is_valid: bool
    errors: list[str] = field(default_factory=list)


def validate_completion(session: WorkflowSession | None) -> CompletionReport:
    """Check that a session finished every phase and kept its artifact links.

    Pure: reads the session and never modifies it.
    """
    if session is None:
        return CompletionReport(is_valid=False, errors=["Session not found"])

    errors = []

    if session.state != WorkflowState.ARCHIVED:
        errors.append(f"Workflow not completed. Current state: {session.state.value}")

    if session.scan_results is None:
        errors.append("Scan results missing")

    if session.interview_results is None:
        errors.append("Interview results missing")
    elif session.interview_results.context is None:
        errors.append("Interview context or artifacts missing")

    archive = session.archive_results
    if archive is None:
        errors.append("Archive results missing")
    else:
        if archive.knowledge_artifact is None:
            errors.append("Knowledge artifact missing")
        if archive.archive_location is None or not archive.archive_location.location_id:
            errors.append("Archive location missing")

    if session.scan_results is not None and archive is not None and archive.knowledge_artifact:
        if session.scan_results.specific_artifacts and not archive.knowledge_artifact.source_artifacts:
            errors.append("Artifact references not maintained from scan to archive")

    return CompletionReport(is_valid=not errors, errors=errors)
