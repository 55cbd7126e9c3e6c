"""API request and response schemas."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from legacy_keeper.activity.models import ChangeRequest, IntensityReport, ScanResponse, Ticket
from legacy_keeper.interview.models import Question
from legacy_keeper.workflow.models import (
    ArchiveResult,
    ErrorEntry,
    InterviewResult,
    WorkflowSession,
)
from legacy_keeper.workflow.validator import CompletionReport


class ScanRequest(BaseModel):
    """Trailing-window scan request."""

    user_id: str | None = Field(
        default=None, description="Restrict the scan to one author (all authors if omitted)"
    )


class TriggerRequest(BaseModel):
    """Start a cognitive offboarding workflow."""

    employee_id: str = Field(..., description="Account id of the departing employee", min_length=1)
    triggered_by: str = Field(..., description="Who requested the offboarding", min_length=1)
    department: str | None = Field(default=None, description="Employee's department")
    role: str | None = Field(default=None, description="Employee's role")
    offboarding_date: str | None = Field(default=None, description="Last working day (ISO date)")

    model_config = {"json_schema_extra": {
        "example": {
            "employee_id": "712020:5f2c",
            "triggered_by": "hr-admin",
            "department": "Payments",
            "role": "Senior Engineer",
        }
    }}


class AnswerItem(BaseModel):
    """One interview answer."""

    question: str = Field(default="", description="Question that was asked")
    answer: str = Field(default="", description="Free-text answer")
    artifact_id: str | None = Field(default=None, description="Artifact the question was about")


class ArchiveRequest(BaseModel):
    """Answers collected during the interview (may be empty)."""

    answers: list[AnswerItem] = Field(default_factory=list)


class CompleteWorkflowRequest(TriggerRequest):
    """Trigger and run every phase in one call."""

    answers: list[AnswerItem] = Field(default_factory=list)


class TicketItem(BaseModel):
    key: str
    title: str
    updated: datetime
    documentation_signal: int

    @classmethod
    def from_ticket(cls, ticket: Ticket) -> "TicketItem":
        return cls(
            key=ticket.reference,
            title=ticket.title,
            updated=ticket.updated,
            documentation_signal=ticket.documentation_signal,
        )


class ChangeItem(BaseModel):
    id: str
    title: str
    updated: datetime
    complexity_score: int
    repository: str = ""

    @classmethod
    def from_change(cls, change: ChangeRequest) -> "ChangeItem":
        return cls(
            id=change.id,
            title=change.title,
            updated=change.updated,
            complexity_score=change.complexity_score,
            repository=change.repository,
        )


class IntensityReportItem(BaseModel):
    """Undocumented-intensity report for one author."""

    user_id: str
    timeframe: str
    critical_tickets: list[TicketItem] = Field(default_factory=list)
    high_complexity_changes: list[ChangeItem] = Field(default_factory=list)
    documentation_link_count: int = 0
    undocumented_intensity_score: float = 0.0
    specific_artifacts: list[str] = Field(default_factory=list)
    risk_level: str
    recommended_actions: list[str] = Field(default_factory=list)
    notable_commits: list[str] = Field(default_factory=list)

    @classmethod
    def from_report(cls, report: IntensityReport) -> "IntensityReportItem":
        return cls(
            user_id=report.user_id,
            timeframe=report.timeframe,
            critical_tickets=[TicketItem.from_ticket(t) for t in report.critical_tickets],
            high_complexity_changes=[
                ChangeItem.from_change(c) for c in report.high_complexity_changes
            ],
            documentation_link_count=report.documentation_link_count,
            undocumented_intensity_score=report.undocumented_intensity_score,
            specific_artifacts=list(report.specific_artifacts),
            risk_level=report.risk_level.value,
            recommended_actions=list(report.recommended_actions),
            notable_commits=[c.hash for c in report.notable_commits],
        )


class ScanResponseBody(BaseModel):
    """Scan result; ``success`` is true even when sources are down."""

    success: bool = True
    reports: list[IntensityReportItem] = Field(default_factory=list)
    summary: dict[str, int] = Field(default_factory=dict)
    source_error: str | None = None

    @classmethod
    def from_response(cls, response: ScanResponse) -> "ScanResponseBody":
        return cls(
            success=response.success,
            reports=[IntensityReportItem.from_report(r) for r in response.reports],
            summary={
                "total_users_scanned": response.summary.total_users_scanned,
                "users_with_gaps": response.summary.users_with_gaps,
                "high_risk_users": response.summary.high_risk_users,
            },
            source_error=response.source_error,
        )


class QuestionItem(BaseModel):
    text: str
    type: str
    focus: str
    artifact_id: str | None = None
    follow_up: str | None = None

    @classmethod
    def from_question(cls, question: Question) -> "QuestionItem":
        return cls(
            text=question.text,
            type=question.type,
            focus=question.focus,
            artifact_id=question.artifact_id,
            follow_up=question.follow_up,
        )


class InterviewResponseBody(BaseModel):
    questions: list[QuestionItem] = Field(default_factory=list)
    contextual_info: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_result(cls, result: InterviewResult) -> "InterviewResponseBody":
        return cls(
            questions=[QuestionItem.from_question(q) for q in result.questions],
            contextual_info=dict(result.contextual_info),
        )


class ArchiveResponseBody(BaseModel):
    knowledge_artifact_id: str
    title: str
    confidence: float
    tags: list[str] = Field(default_factory=list)
    location_id: str
    url: str = ""
    source_artifact_ids: list[str] = Field(default_factory=list)
    linked_artifacts: list[str] = Field(default_factory=list)

    @classmethod
    def from_result(cls, result: ArchiveResult) -> "ArchiveResponseBody":
        artifact = result.knowledge_artifact
        return cls(
            knowledge_artifact_id=artifact.id,
            title=artifact.title,
            confidence=artifact.confidence,
            tags=list(artifact.tags),
            location_id=result.archive_location.location_id,
            url=result.archive_location.url,
            source_artifact_ids=[a.id for a in artifact.source_artifacts],
            linked_artifacts=list(result.archive_location.linked_artifacts),
        )


class ErrorItem(BaseModel):
    timestamp: datetime
    message: str
    code: str

    @classmethod
    def from_entry(cls, entry: ErrorEntry) -> "ErrorItem":
        return cls(timestamp=entry.timestamp, message=entry.message, code=entry.code)


class SessionResponse(BaseModel):
    """Snapshot of a workflow session."""

    session_id: str
    employee_id: str
    triggered_by: str
    triggered_at: datetime
    state: str
    progress_percentage: int
    progress: dict[str, Any] = Field(default_factory=dict)
    errors: list[ErrorItem] = Field(default_factory=list)
    scan_results: IntensityReportItem | None = None
    interview_results: InterviewResponseBody | None = None
    archive_results: ArchiveResponseBody | None = None

    @classmethod
    def from_session(cls, session: WorkflowSession) -> "SessionResponse":
        return cls(
            session_id=session.session_id,
            employee_id=session.employee_id,
            triggered_by=session.triggered_by,
            triggered_at=session.triggered_at,
            state=session.state.value,
            progress_percentage=session.progress_percentage,
            progress=dict(session.progress),
            errors=[ErrorItem.from_entry(e) for e in session.errors],
            scan_results=(
                IntensityReportItem.from_report(session.scan_results)
                if session.scan_results
                else None
            ),
            interview_results=(
                InterviewResponseBody.from_result(session.interview_results)
                if session.interview_results
                else None
            ),
            archive_results=(
                ArchiveResponseBody.from_result(session.archive_results)
                if session.archive_results
                else None
            ),
        )


class ValidationResponse(BaseModel):
    is_valid: bool
    errors: list[str] = Field(default_factory=list)

    @classmethod
    def from_report(cls, report: CompletionReport) -> "ValidationResponse":
        return cls(is_valid=report.is_valid, errors=list(report.errors))
