"""Cognitive offboarding workflow: trigger, scan, interview, archive."""

import logging
import uuid
from collections.abc import Callable, Mapping
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from types import MappingProxyType
from typing import Any

from legacy_keeper.activity.models import IntensityReport, ScanQuery
from legacy_keeper.activity.scanner import (
    ActivityScanner,
    ScanThresholds,
    scan_last_six_months,
    select_notable_commits,
    window_start,
)
from legacy_keeper.activity.sources import ActivitySource, CodeHistorySource
from legacy_keeper.archive.formatter import (
    extract_workflow_tags,
    format_for_archival,
    format_interview_content,
)
from legacy_keeper.archive.linker import ArtifactLinker
from legacy_keeper.archive.sinks import ArchiveSink
from legacy_keeper.exceptions import (
    LegacyKeeperError,
    PhaseOrderError,
    SessionNotFoundError,
    ValidationError,
    error_code,
    user_message,
)
from legacy_keeper.interview.extraction import KnowledgeClassifier, extract_tacit_knowledge
from legacy_keeper.interview.models import InterviewContext, KnowledgeArtifact, coerce_responses
from legacy_keeper.interview.questions import (
    artifacts_from_report,
    build_interview_flow,
    generate_artifact_questions,
)
from legacy_keeper.workflow.models import (
    ArchiveResult,
    ErrorEntry,
    InterviewResult,
    WorkflowSession,
    WorkflowState,
)
from legacy_keeper.workflow.store import InMemorySessionStore, SessionStore
from legacy_keeper.workflow.validator import CompletionReport, validate_completion

logger = logging.getLogger(__name__)

DEFAULT_ARTIFACT_CONFIDENCE = 0.5


@dataclass
class WorkflowParams:
    """Who is leaving, who asked, and optional HR context."""

    employee_id: str
    triggered_by: str
    department: str | None = None
    role: str | None = None
    offboarding_date: str | None = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "WorkflowParams":
        """Accept snake_case or camelCase keys."""
        return cls(
            employee_id=data.get("employee_id") or data.get("employeeId") or "",
            triggered_by=data.get("triggered_by") or data.get("triggeredBy") or "",
            department=data.get("department"),
            role=data.get("role"),
            offboarding_date=data.get("offboarding_date") or data.get("offboardingDate"),
        )


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class WorkflowOrchestrator:
    """Runs offboarding sessions through their phases.

    Phases must run in order. Calling one out of order, or on a session that
    another caller is already advancing, raises PhaseOrderError and leaves the
    session untouched. A failure after a phase has started is recorded in the
    session's error log, moves the session to FAILED, and is re-raised.
    """

    def __init__(
        self,
        store: SessionStore,
        source: ActivitySource,
        sink: ArchiveSink,
        scanner: ActivityScanner | None = None,
        classifier: KnowledgeClassifier | None = None,
        clock: Callable[[], datetime] = _utcnow,
        jira_url: str = "",
        bitbucket_web_url: str = "",
        linker: ArtifactLinker | None = None,
    ):
        """Initialize the orchestrator.

        Args:
            store: Session storage with compare-and-set
            source: Where activity records are fetched from
            sink: Where Legacy Documents are stored
            scanner: Activity scanner (default thresholds if omitted)
            classifier: Knowledge classification strategy (keywords if omitted)
            clock: Returns the current UTC time
            jira_url: Base URL for ticket links in archived documents
            bitbucket_web_url: Base URL for pull request links in archived documents
            linker: Comments the archive location on source artifacts (none if omitted)
        """
        self.store = store
        self.source = source
        self.sink = sink
        self.scanner = scanner or ActivityScanner()
        self.classifier = classifier
        self.clock = clock
        self.jira_url = jira_url
        self.bitbucket_web_url = bitbucket_web_url
        self.linker = linker

    # Session bookkeeping

    def _load(self, session_id: str) -> WorkflowSession:
        session = self.store.get(session_id)
        if session is None:
            raise SessionNotFoundError(session_id)
        return session

    def _begin(
        self,
        session: WorkflowSession,
        required: WorkflowState,
        target: WorkflowState,
        **progress: Any,
    ) -> WorkflowSession:
        """Atomically move a session from ``required`` into a running phase."""
        if session.state != required:
            raise PhaseOrderError(
                f"Session {session.session_id} is {session.state.value}; "
                f"this phase requires {required.value}",
                {"current_state": session.state.value, "required_state": required.value},
            )
        started = session.transition(target, **progress)
        if not self.store.compare_and_set(session.session_id, required, started):
            raise PhaseOrderError(
                f"Session {session.session_id} was advanced by another caller",
                {"required_state": required.value},
            )
        return started

    def _commit(self, started: WorkflowSession, completed: WorkflowSession) -> WorkflowSession:
        if not self.store.compare_and_set(started.session_id, started.state, completed):
            raise PhaseOrderError(f"Session {started.session_id} changed while {started.state.value}")
        return completed

    def _fail(self, session_id: str, exc: BaseException) -> None:
        """Record the error and move the session to FAILED."""
        entry = ErrorEntry(
            timestamp=self.clock(),
            message=user_message(exc),
            code=error_code(exc),
            details={"exception": type(exc).__name__},
        )
        while True:
            current = self.store.get(session_id)
            if current is None or current.is_terminal:
                return
            failed = current.with_error(entry).transition(
                WorkflowState.FAILED, failed_at=entry.timestamp.isoformat()
            )
            if self.store.compare_and_set(session_id, current.state, failed):
                logger.error(
                    f"Workflow session {session_id} failed during {current.state.value}: {exc}"
                )
                return

    async def _attach_code_history(
        self, report: IntensityReport, now: datetime
    ) -> IntensityReport:
        """Add notable commits and pull request diffs when the source can provide them."""
        if not isinstance(self.source, CodeHistorySource):
            return report

        start = window_start(now, self.scanner.thresholds.window_months)
        commits = await self.source.fetch_commits(report.user_id, start)
        notable = select_notable_commits(commits, self.scanner.thresholds.notable_commit_lines)

        contexts = []
        for change in report.high_complexity_changes:
            context = await self.source.fetch_diff_context(change)
            if context is not None:
                contexts.append(context)

        logger.info(
            f"Code history for {report.user_id}: {len(notable)} of {len(commits)} commits "
            f"notable, {len(contexts)} pull request diffs"
        )
        return replace(report, notable_commits=notable, diff_contexts=tuple(contexts))

    # Phases

    async def trigger(
        self,
        employee_id: str,
        triggered_by: str,
        department: str | None = None,
        role: str | None = None,
        offboarding_date: str | None = None,
    ) -> WorkflowSession:
        """Create a new session in TRIGGERED state.

        Raises:
            ValidationError: If employee_id or triggered_by is missing
        """
        missing = [
            name
            for name, value in (("employee_id", employee_id), ("triggered_by", triggered_by))
            if not isinstance(value, str) or not value.strip()
        ]
        if missing:
            raise ValidationError(
                f"Missing required parameters: {', '.join(missing)}", {"missing": missing}
            )

        now = self.clock()
        self.store.evict_expired(now)

        session = WorkflowSession(
            session_id=f"offboarding_{int(now.timestamp())}_{uuid.uuid4().hex[:8]}",
            employee_id=employee_id.strip(),
            triggered_by=triggered_by.strip(),
            triggered_at=now,
            progress=MappingProxyType(
                {
                    "department": department,
                    "role": role,
                    "offboarding_date": offboarding_date or now.date().isoformat(),
                }
            ),
        )
        self.store.put(session)
        logger.info(
            f"Cognitive offboarding triggered for {session.employee_id} "
            f"by {session.triggered_by} (session {session.session_id})"
        )
        return session

    async def execute_scan_phase(self, session_id: str) -> IntensityReport:
        """Scan the employee's trailing activity and store the report."""
        session = self._load(session_id)
        now = self.clock()
        started = self._begin(
            session,
            WorkflowState.TRIGGERED,
            WorkflowState.SCANNING,
            scan_started=now.isoformat(),
        )
        logger.info(f"Starting scan phase for {started.employee_id} (session {session_id})")

        try:
            response = await scan_last_six_months(
                self.source, self.scanner, ScanQuery(user_id=started.employee_id), now
            )
            report = next(
                (r for r in response.reports if r.user_id == started.employee_id),
                None,
            ) or self.scanner.empty_report(started.employee_id)

            errors = []
            if response.source_error:
                errors.append(
                    ErrorEntry(
                        timestamp=now,
                        message=response.source_error,
                        code="SOURCE_UNAVAILABLE",
                        details={"phase": WorkflowState.SCANNING.value},
                    )
                )
            try:
                report = await self._attach_code_history(report, now)
            except LegacyKeeperError as e:
                logger.warning(f"Code history unavailable for session {session_id}: {e}")
                errors.append(
                    ErrorEntry(
                        timestamp=now,
                        message=user_message(e),
                        code="CODE_HISTORY_UNAVAILABLE",
                        details={"phase": WorkflowState.SCANNING.value, "error": e.code},
                    )
                )

            completed = started.with_results(scan_results=report)
            for entry in errors:
                completed = completed.with_error(entry)
            completed = completed.transition(
                WorkflowState.SCAN_COMPLETE,
                scan_completed=self.clock().isoformat(),
                risk_level=report.risk_level.value,
                intensity_score=report.undocumented_intensity_score,
                artifact_count=len(report.specific_artifacts),
            )
            self._commit(started, completed)
        except Exception as e:
            self._fail(session_id, e)
            raise

        logger.info(
            f"Scan phase completed for session {session_id}: risk {report.risk_level.value}, "
            f"score {report.undocumented_intensity_score:.2f}"
        )
        return report

    async def execute_interview_phase(self, session_id: str) -> InterviewResult:
        """Turn the scan report into artifact-anchored interview questions."""
        session = self._load(session_id)
        if session.scan_results is None:
            raise PhaseOrderError(
                "Scan phase must be completed before interview phase",
                {"current_state": session.state.value},
            )
        started = self._begin(
            session,
            WorkflowState.SCAN_COMPLETE,
            WorkflowState.INTERVIEWING,
            interview_started=self.clock().isoformat(),
        )

        try:
            report = started.scan_results
            artifacts = artifacts_from_report(report)
            context = InterviewContext(
                session_id=started.session_id,
                employee_id=started.employee_id,
                undocumented_intensity_score=report.undocumented_intensity_score,
                artifacts=tuple(artifacts),
                department=started.department,
                role=started.role,
            )
            problems = context.validate()
            if problems:
                raise ValidationError(f"Invalid interview context: {', '.join(problems)}")

            questions = generate_artifact_questions(artifacts)
            result = InterviewResult(
                questions=tuple(questions),
                contextual_info={
                    "undocumented_intensity_score": report.undocumented_intensity_score,
                    "risk_level": report.risk_level.value,
                    "critical_ticket_count": len(report.critical_tickets),
                    "high_complexity_change_count": len(report.high_complexity_changes),
                    "artifact_count": len(artifacts),
                },
                context=context,
                interview_flow=tuple(build_interview_flow(context, questions)),
            )
            completed = started.with_results(interview_results=result).transition(
                WorkflowState.INTERVIEW_COMPLETE,
                interview_completed=self.clock().isoformat(),
                questions_generated=len(questions),
            )
            self._commit(started, completed)
        except Exception as e:
            self._fail(session_id, e)
            raise

        logger.info(
            f"Interview phase completed for session {session_id}: "
            f"{len(questions)} questions over {len(artifacts)} artifacts"
        )
        return result

    async def execute_archive_phase(self, session_id: str, answers: Any = None) -> ArchiveResult:
        """Categorize answers, build the knowledge artifact and archive it."""
        session = self._load(session_id)
        if session.interview_results is None:
            raise PhaseOrderError(
                "Interview phase must be completed before archive phase",
                {"current_state": session.state.value},
            )
        started = self._begin(
            session,
            WorkflowState.INTERVIEW_COMPLETE,
            WorkflowState.ARCHIVING,
            archive_started=self.clock().isoformat(),
        )

        try:
            report = started.scan_results
            context = started.interview_results.context
            responses = coerce_responses(answers)
            categorization = extract_tacit_knowledge(responses, context, self.classifier)

            now = self.clock()
            confidence = categorization.confidence_score
            artifact = KnowledgeArtifact(
                id=f"knowledge_{session_id}_{int(now.timestamp() * 1000)}",
                employee_id=started.employee_id,
                title=f"Cognitive Offboarding - {started.role or 'Unknown Role'}",
                content=format_interview_content(responses, categorization),
                tags=tuple(
                    extract_workflow_tags(report, started.department, started.role, categorization)
                ),
                extracted_at=now,
                confidence=DEFAULT_ARTIFACT_CONFIDENCE if confidence is None else confidence,
                related_tickets=tuple(t.reference for t in report.critical_tickets),
                related_prs=tuple(c.id for c in report.high_complexity_changes),
                related_commits=tuple(c.hash for c in report.notable_commits),
                source_artifacts=context.artifacts,
            )
            problems = artifact.validate()
            if problems:
                raise ValidationError(f"Invalid knowledge artifact: {', '.join(problems)}")

            formatted = format_for_archival(
                artifact, categorization, self.jira_url, self.bitbucket_web_url
            )
            location = await self.sink.store(formatted)
            if self.linker is not None:
                linked = await self.linker.link(location, formatted.artifact_links)
                location = replace(location, linked_artifacts=linked)

            result = ArchiveResult(
                knowledge_artifact=artifact,
                archive_location=location,
                categorization=categorization,
            )
            completed = started.with_results(archive_results=result).transition(
                WorkflowState.ARCHIVED,
                archive_completed=self.clock().isoformat(),
                archive_url=location.url,
                artifacts_linked=len(location.linked_artifacts),
                knowledge_confidence=artifact.confidence,
            )
            self._commit(started, completed)
        except Exception as e:
            self._fail(session_id, e)
            raise

        logger.info(
            f"Archive phase completed for session {session_id}: {location.url} "
            f"(confidence {artifact.confidence:.2f})"
        )
        return result

    async def execute_complete_workflow(
        self, params: WorkflowParams | Mapping[str, Any], answers: Any = None
    ) -> WorkflowSession:
        """Run trigger, scan, interview and archive back to back.

        The first failure propagates; the session it happened in is left FAILED.
        """
        if isinstance(params, Mapping):
            params = WorkflowParams.from_dict(params)

        session = await self.trigger(
            params.employee_id,
            params.triggered_by,
            params.department,
            params.role,
            params.offboarding_date,
        )
        await self.execute_scan_phase(session.session_id)
        await self.execute_interview_phase(session.session_id)
        await self.execute_archive_phase(session.session_id, answers)

        final = self._load(session.session_id)
        logger.info(
            f"Cognitive offboarding workflow finished for {final.employee_id}: "
            f"{final.state.value} ({final.progress_percentage}%)"
        )
        return final

    # Read-only accessors

    def get_session(self, session_id: str) -> WorkflowSession | None:
        return self.store.get(session_id)

    def list_active_sessions(self) -> list[WorkflowSession]:
        """Every session still retained by the store, oldest first."""
        self.store.evict_expired(self.clock())
        return self.store.list()

    def validate_completion(self, session_id: str) -> CompletionReport:
        return validate_completion(self.store.get(session_id))


def create_orchestrator(settings: Any = None) -> WorkflowOrchestrator:
    """Build an orchestrator wired to the configured sources and sink."""
    from legacy_keeper.activity.sources import create_activity_source
    from legacy_keeper.archive.linker import create_artifact_linker
    from legacy_keeper.archive.sinks import create_archive_sink

    if settings is None:
        from legacy_keeper.config import settings

    return WorkflowOrchestrator(
        store=InMemorySessionStore(ttl_seconds=settings.SESSION_TTL_SECONDS),
        source=create_activity_source(),
        sink=create_archive_sink(),
        scanner=ActivityScanner(ScanThresholds.from_settings(settings)),
        jira_url=settings.JIRA_URL,
        bitbucket_web_url=f"https://bitbucket.org/{settings.BITBUCKET_WORKSPACE}",
        linker=create_artifact_linker(settings),
    )
