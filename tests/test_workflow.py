"""Tests for the cognitive offboarding workflow."""

import asyncio
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest

from legacy_keeper.activity.models import ChangeRequest, Commit, DiffContext, RiskLevel, Ticket
from legacy_keeper.activity.sources import StaticActivitySource
from legacy_keeper.archive.sinks import InMemoryArchiveSink
from legacy_keeper.exceptions import (
    PERMISSION_DENIED_MESSAGE,
    ExtractionError,
    NetworkError,
    PermissionDeniedError,
    PhaseOrderError,
    SessionNotFoundError,
    ValidationError,
)
from legacy_keeper.workflow.models import (
    PROGRESS,
    TRANSITIONS,
    WorkflowSession,
    WorkflowState,
    can_transition,
)
from legacy_keeper.workflow.orchestrator import WorkflowOrchestrator, WorkflowParams
from legacy_keeper.workflow.store import InMemorySessionStore

NOW = datetime(2026, 10, 18, 12, 0, tzinfo=timezone.utc)
LONG_TITLE = "Investigate intermittent settlement failures in the nightly batch"


def activity(author: str = "alice") -> list:
    recent = NOW - timedelta(days=30)
    records = [
        Ticket(
            id=str(i), key=f"PAY-{i}", author=author, created=recent, updated=recent,
            title=LONG_TITLE, comment_count=1,
        )
        for i in range(3)
    ]
    records.append(
        ChangeRequest(
            id="451", author=author, created=recent, updated=recent,
            title="Major refactor of ledger sharding", lines_added=1500, lines_deleted=200,
            files_changed=30, review_comments=25,
        )
    )
    return records


class FailingSource:
    async def fetch_records(self, user_id, window_start):
        raise NetworkError("jira is temporarily unavailable")


@pytest.fixture
def sink():
    return InMemoryArchiveSink()


@pytest.fixture
def orchestrator(sink):
    """Orchestrator over static activity and an in-memory archive."""
    return WorkflowOrchestrator(
        store=InMemorySessionStore(),
        source=StaticActivitySource(activity()),
        sink=sink,
        clock=lambda: NOW,
        jira_url="https://acme.atlassian.net",
        bitbucket_web_url="https://bitbucket.org/acme",
    )


ANSWERS = [
    {
        "question": "Why shard the ledger?",
        "answer": "We decided on this approach because month-end volume would break the writer.",
        "artifact_id": "451",
    },
    {
        "question": "What about PAY-0?",
        "answer": "The retry loop is a temporary workaround that relies on the nightly job.",
        "artifactId": "PAY-0",
    },
]


class TestStateMachine:
    """Tests for the transition table."""

    def test_forward_only(self):
        assert can_transition(WorkflowState.TRIGGERED, WorkflowState.SCANNING)
        assert not can_transition(WorkflowState.TRIGGERED, WorkflowState.INTERVIEWING)
        assert not can_transition(WorkflowState.SCAN_COMPLETE, WorkflowState.SCANNING)

    def test_terminal_states_absorbing(self):
        assert TRANSITIONS[WorkflowState.ARCHIVED] == frozenset()
        assert TRANSITIONS[WorkflowState.FAILED] == frozenset()

    def test_every_live_state_can_fail(self):
        for state, targets in TRANSITIONS.items():
            if state not in (WorkflowState.ARCHIVED, WorkflowState.FAILED):
                assert WorkflowState.FAILED in targets

    def test_progress_non_decreasing(self):
        forward = [s for s in WorkflowState if s != WorkflowState.FAILED]
        values = [PROGRESS[s] for s in forward]
        assert values == sorted(values)
        assert PROGRESS[WorkflowState.ARCHIVED] == 100

    def test_illegal_transition_raises(self):
        session = WorkflowSession(
            session_id="s", employee_id="e", triggered_by="hr", triggered_at=NOW
        )
        with pytest.raises(PhaseOrderError):
            session.transition(WorkflowState.ARCHIVED)

    def test_transition_returns_new_session(self):
        session = WorkflowSession(
            session_id="s", employee_id="e", triggered_by="hr", triggered_at=NOW
        )
        moved = session.transition(WorkflowState.SCANNING, scan_started="now")
        assert session.state == WorkflowState.TRIGGERED
        assert moved.state == WorkflowState.SCANNING
        assert moved.progress["scan_started"] == "now"
        assert "scan_started" not in session.progress


class TestTrigger:
    """Tests for WorkflowOrchestrator.trigger()."""

    @pytest.mark.asyncio
    async def test_creates_session(self, orchestrator):
        session = await orchestrator.trigger("alice", "hr-admin", "Payments", "Staff Engineer")

        assert session.state == WorkflowState.TRIGGERED
        assert session.progress_percentage == 10
        assert session.session_id.startswith(f"offboarding_{int(NOW.timestamp())}_")
        assert session.department == "Payments"
        assert session.role == "Staff Engineer"
        assert session.progress["offboarding_date"] == "2026-10-18"
        assert orchestrator.get_session(session.session_id) is session

    @pytest.mark.asyncio
    async def test_unique_ids(self, orchestrator):
        first = await orchestrator.trigger("alice", "hr")
        second = await orchestrator.trigger("alice", "hr")
        assert first.session_id != second.session_id

    @pytest.mark.asyncio
    @pytest.mark.parametrize("employee_id,triggered_by", [("", "hr"), ("alice", ""), ("  ", "hr")])
    async def test_missing_parameters(self, orchestrator, employee_id, triggered_by):
        with pytest.raises(ValidationError):
            await orchestrator.trigger(employee_id, triggered_by)
        assert orchestrator.list_active_sessions() == []


class TestPhases:
    """Tests for the individual phases."""

    @pytest.mark.asyncio
    async def test_scan_phase(self, orchestrator):
        session = await orchestrator.trigger("alice", "hr")

        report = await orchestrator.execute_scan_phase(session.session_id)

        stored = orchestrator.get_session(session.session_id)
        assert stored.state == WorkflowState.SCAN_COMPLETE
        assert stored.scan_results is report
        assert report.user_id == "alice"
        assert report.risk_level == RiskLevel.HIGH
        assert stored.progress["risk_level"] == "HIGH"

    @pytest.mark.asyncio
    async def test_scan_without_activity_gives_empty_report(self, orchestrator):
        session = await orchestrator.trigger("bob", "hr")
        report = await orchestrator.execute_scan_phase(session.session_id)
        assert report.user_id == "bob"
        assert report.undocumented_intensity_score == 0.0
        assert report.risk_level == RiskLevel.LOW

    @pytest.mark.asyncio
    async def test_scan_source_outage_recorded(self, sink):
        """A down source completes the scan with an empty report and a logged error."""
        orchestrator = WorkflowOrchestrator(
            store=InMemorySessionStore(), source=FailingSource(), sink=sink, clock=lambda: NOW
        )
        session = await orchestrator.trigger("alice", "hr")

        await orchestrator.execute_scan_phase(session.session_id)

        stored = orchestrator.get_session(session.session_id)
        assert stored.state == WorkflowState.SCAN_COMPLETE
        assert stored.errors[0].code == "SOURCE_UNAVAILABLE"

    @pytest.mark.asyncio
    async def test_interview_phase(self, orchestrator):
        session = await orchestrator.trigger("alice", "hr", role="Staff Engineer")
        await orchestrator.execute_scan_phase(session.session_id)

        result = await orchestrator.execute_interview_phase(session.session_id)

        assert orchestrator.get_session(session.session_id).state == WorkflowState.INTERVIEW_COMPLETE
        assert len(result.context.artifacts) == 4
        assert result.contextual_info["critical_ticket_count"] == 3
        assert result.contextual_info["high_complexity_change_count"] == 1
        grounded = [q for q in result.questions if q.artifact_id]
        assert grounded
        for question in grounded:
            assert question.artifact_id in question.text
        assert [p.phase for p in result.interview_flow][0] == "opening"

    @pytest.mark.asyncio
    async def test_archive_phase(self, orchestrator, sink):
        session = await orchestrator.trigger("alice", "hr", "Payments", "Staff Engineer")
        await orchestrator.execute_scan_phase(session.session_id)
        await orchestrator.execute_interview_phase(session.session_id)

        result = await orchestrator.execute_archive_phase(session.session_id, ANSWERS)

        artifact = result.knowledge_artifact
        assert artifact.title == "Cognitive Offboarding - Staff Engineer"
        assert artifact.employee_id == "alice"
        assert set(artifact.related_tickets) == {"PAY-0", "PAY-1", "PAY-2"}
        assert artifact.related_prs == ("451",)
        assert len(artifact.source_artifacts) == 4
        assert "cognitive-offboarding" in artifact.tags
        assert 0.0 <= artifact.confidence <= 1.0
        assert result.categorization.critical_insights
        assert result.archive_location.location_id in sink.documents
        assert result.archive_location.linked_artifacts == ()

    @pytest.mark.asyncio
    async def test_archive_without_answers(self, orchestrator):
        """An interview with no answers still archives, with zero confidence."""
        session = await orchestrator.trigger("alice", "hr")
        await orchestrator.execute_scan_phase(session.session_id)
        await orchestrator.execute_interview_phase(session.session_id)

        result = await orchestrator.execute_archive_phase(session.session_id, [])

        assert result.knowledge_artifact.confidence == 0.0
        assert result.knowledge_artifact.title == "Cognitive Offboarding - Unknown Role"


class TestCompleteWorkflow:
    """Tests for execute_complete_workflow()."""

    @pytest.mark.asyncio
    async def test_happy_path(self, orchestrator):
        """Trigger through archive ends ARCHIVED and validates."""
        session = await orchestrator.execute_complete_workflow(
            {"employeeId": "alice", "triggeredBy": "hr", "role": "Staff Engineer"}, ANSWERS
        )

        assert session.state == WorkflowState.ARCHIVED
        assert session.progress_percentage == 100
        report = orchestrator.validate_completion(session.session_id)
        assert report.is_valid is True
        assert report.errors == []

    @pytest.mark.asyncio
    async def test_accepts_params_object(self, orchestrator):
        session = await orchestrator.execute_complete_workflow(
            WorkflowParams(employee_id="alice", triggered_by="hr")
        )
        assert session.state == WorkflowState.ARCHIVED

    @pytest.mark.asyncio
    async def test_sessions_independent(self, orchestrator):
        first, second = await asyncio.gather(
            orchestrator.execute_complete_workflow({"employee_id": "alice", "triggered_by": "hr"}),
            orchestrator.execute_complete_workflow({"employee_id": "bob", "triggered_by": "hr"}),
        )
        assert first.session_id != second.session_id
        assert first.state == second.state == WorkflowState.ARCHIVED
        assert len(orchestrator.list_active_sessions()) == 2


class TestSessionSnapshots:
    """Sessions handed to readers cannot change stored state."""

    @pytest.mark.asyncio
    async def test_nested_results_read_only(self, orchestrator):
        session = await orchestrator.execute_complete_workflow(
            {"employee_id": "alice", "triggered_by": "hr"}, ANSWERS
        )
        snapshot = orchestrator.get_session(session.session_id)
        interview = snapshot.interview_results
        categorization = snapshot.archive_results.categorization

        with pytest.raises(TypeError):
            interview.contextual_info["risk_level"] = "LOW"
        with pytest.raises(TypeError):
            snapshot.progress["archive_url"] = "https://example.invalid"
        with pytest.raises(TypeError):
            categorization.artifact_mappings["451"] = ()
        with pytest.raises(AttributeError):
            categorization.critical_insights.clear()
        with pytest.raises(AttributeError):
            interview.interview_flow[1].questions.append(interview.questions[0])

        stored = orchestrator.get_session(session.session_id)
        assert stored.interview_results.contextual_info["risk_level"] == "HIGH"
        assert stored.archive_results.categorization.critical_insights
        assert stored.progress["archive_url"].startswith("memory://legacy/")

    @pytest.mark.asyncio
    async def test_listed_sessions_read_only(self, orchestrator):
        await orchestrator.execute_complete_workflow(
            {"employee_id": "alice", "triggered_by": "hr"}, ANSWERS
        )
        listed = orchestrator.list_active_sessions()[0]

        with pytest.raises(AttributeError):
            listed.archive_results.categorization.categories.clear()

        stored = orchestrator.list_active_sessions()[0]
        assert stored.archive_results.categorization.populated_categories

    @pytest.mark.asyncio
    async def test_error_details_read_only(self, orchestrator):
        orchestrator.source = FailingSource()
        session = await orchestrator.trigger("alice", "hr")
        await orchestrator.execute_scan_phase(session.session_id)

        entry = orchestrator.get_session(session.session_id).errors[0]
        with pytest.raises(TypeError):
            entry.details["phase"] = "ARCHIVING"
        assert orchestrator.get_session(session.session_id).errors[0].details["phase"] == "SCANNING"


class HistoryOutageSource(StaticActivitySource):
    async def fetch_commits(self, user_id, window_start):
        raise NetworkError("bitbucket is temporarily unavailable")


def code_history_orchestrator(sink, source=None, **kwargs) -> WorkflowOrchestrator:
    recent = NOW - timedelta(days=20)
    source = source or StaticActivitySource(
        activity(),
        commits=[
            Commit(hash="abc12345ff", author="alice", date=recent, message="Rework batching",
                   files_changed=12, lines_changed=640, repository="ledger"),
            Commit(hash="0000aaaa11", author="alice", date=recent, message="Typo", lines_changed=3),
        ],
        diff_contexts=[
            DiffContext(pr_id="451", repository="ledger",
                        key_changes=("Critical files changed: ledger/settings.py",)),
        ],
    )
    return WorkflowOrchestrator(
        store=InMemorySessionStore(), source=source, sink=sink, clock=lambda: NOW,
        bitbucket_web_url="https://bitbucket.org/acme", **kwargs,
    )


class TestCodeHistory:
    """Tests for commits and pull request diffs flowing through the workflow."""

    @pytest.mark.asyncio
    async def test_notable_commits_and_diffs(self, sink):
        orchestrator = code_history_orchestrator(sink)
        session = await orchestrator.trigger("alice", "hr")

        report = await orchestrator.execute_scan_phase(session.session_id)
        interview = await orchestrator.execute_interview_phase(session.session_id)
        result = await orchestrator.execute_archive_phase(session.session_id, ANSWERS)

        assert [c.hash for c in report.notable_commits] == ["abc12345ff"]
        assert report.diff_contexts[0].pr_id == "451"

        commit_questions = [q for q in interview.questions if q.type == "COMMIT"]
        assert commit_questions
        assert all("abc12345" in q.text for q in commit_questions)
        assert any(q.focus == "change_scope" for q in interview.questions)

        assert result.knowledge_artifact.related_commits == ("abc12345ff",)
        document = sink.documents[result.archive_location.location_id]
        assert "https://bitbucket.org/acme/ledger/commits/abc12345ff" in [
            link.url for link in document.artifact_links
        ]

    @pytest.mark.asyncio
    async def test_history_outage_recorded(self, sink):
        """A failing commit listing leaves the scan complete with an error entry."""
        orchestrator = code_history_orchestrator(sink, source=HistoryOutageSource(activity()))
        session = await orchestrator.trigger("alice", "hr")

        report = await orchestrator.execute_scan_phase(session.session_id)

        stored = orchestrator.get_session(session.session_id)
        assert stored.state == WorkflowState.SCAN_COMPLETE
        assert [e.code for e in stored.errors] == ["CODE_HISTORY_UNAVAILABLE"]
        assert report.notable_commits == ()
        assert report.risk_level == RiskLevel.HIGH


class TestArtifactLinking:
    """Tests for back-linking archived knowledge to its source artifacts."""

    @pytest.mark.asyncio
    async def test_only_linked_artifacts_reported(self, sink):
        linker = AsyncMock()
        linker.link.return_value = ("PAY-0", "451")
        orchestrator = code_history_orchestrator(sink, linker=linker)

        session = await orchestrator.execute_complete_workflow(
            {"employeeId": "alice", "triggeredBy": "hr"}, ANSWERS
        )

        location, links = linker.link.call_args.args
        assert location.location_id in sink.documents
        assert {link.id for link in links} >= {"PAY-0", "451", "abc12345ff"}
        assert session.archive_results.archive_location.linked_artifacts == ("PAY-0", "451")
        assert session.progress["artifacts_linked"] == 2


class TestPhaseOrdering:
    """Tests for out-of-order and concurrent phase calls."""

    @pytest.mark.asyncio
    async def test_interview_before_scan(self, orchestrator):
        session = await orchestrator.trigger("alice", "hr")

        with pytest.raises(PhaseOrderError):
            await orchestrator.execute_interview_phase(session.session_id)

        stored = orchestrator.get_session(session.session_id)
        assert stored.state == WorkflowState.TRIGGERED
        assert stored.errors == ()

    @pytest.mark.asyncio
    async def test_archive_before_interview(self, orchestrator):
        session = await orchestrator.trigger("alice", "hr")
        await orchestrator.execute_scan_phase(session.session_id)

        with pytest.raises(PhaseOrderError):
            await orchestrator.execute_archive_phase(session.session_id, [])

        assert orchestrator.get_session(session.session_id).state == WorkflowState.SCAN_COMPLETE

    @pytest.mark.asyncio
    async def test_scan_twice(self, orchestrator):
        session = await orchestrator.trigger("alice", "hr")
        await orchestrator.execute_scan_phase(session.session_id)

        with pytest.raises(PhaseOrderError):
            await orchestrator.execute_scan_phase(session.session_id)

    @pytest.mark.asyncio
    async def test_unknown_session(self, orchestrator):
        with pytest.raises(SessionNotFoundError):
            await orchestrator.execute_scan_phase("offboarding_0_missing")

    @pytest.mark.asyncio
    async def test_concurrent_scans_only_one_wins(self, orchestrator):
        """Two racing scans on one session: exactly one succeeds."""
        session = await orchestrator.trigger("alice", "hr")

        results = await asyncio.gather(
            orchestrator.execute_scan_phase(session.session_id),
            orchestrator.execute_scan_phase(session.session_id),
            return_exceptions=True,
        )

        errors = [r for r in results if isinstance(r, Exception)]
        assert len(errors) == 1
        assert isinstance(errors[0], PhaseOrderError)
        assert orchestrator.get_session(session.session_id).state == WorkflowState.SCAN_COMPLETE

    def test_compare_and_set_rejects_stale_state(self):
        store = InMemorySessionStore()
        session = WorkflowSession(
            session_id="s", employee_id="e", triggered_by="hr", triggered_at=NOW
        )
        store.put(session)
        scanning = session.transition(WorkflowState.SCANNING)

        assert store.compare_and_set("s", WorkflowState.TRIGGERED, scanning) is True
        assert store.compare_and_set("s", WorkflowState.TRIGGERED, scanning) is False
        assert store.compare_and_set("missing", WorkflowState.TRIGGERED, scanning) is False


class TestFailures:
    """Tests for failure recording."""

    @pytest.mark.asyncio
    async def test_sink_failure_fails_session(self, orchestrator):
        """A permission error from the archive fails the session without leaking details."""
        orchestrator.sink = AsyncMock()
        orchestrator.sink.store.side_effect = PermissionDeniedError(
            "confluence", {"status_code": 403}
        )
        session = await orchestrator.trigger("alice", "hr")
        await orchestrator.execute_scan_phase(session.session_id)
        await orchestrator.execute_interview_phase(session.session_id)

        with pytest.raises(PermissionDeniedError):
            await orchestrator.execute_archive_phase(session.session_id, ANSWERS)

        failed = orchestrator.get_session(session.session_id)
        assert failed.state == WorkflowState.FAILED
        assert failed.progress_percentage == 0
        assert len(failed.errors) == 1
        assert failed.errors[0].code == "PERMISSION_DENIED"
        assert failed.errors[0].message == PERMISSION_DENIED_MESSAGE
        assert "403" not in failed.errors[0].message

    @pytest.mark.asyncio
    async def test_failed_is_absorbing(self, orchestrator):
        orchestrator.sink = AsyncMock()
        orchestrator.sink.store.side_effect = NetworkError("confluence is unreachable")
        session = await orchestrator.trigger("alice", "hr")
        await orchestrator.execute_scan_phase(session.session_id)
        await orchestrator.execute_interview_phase(session.session_id)
        with pytest.raises(NetworkError):
            await orchestrator.execute_archive_phase(session.session_id)

        with pytest.raises(PhaseOrderError):
            await orchestrator.execute_archive_phase(session.session_id)

        failed = orchestrator.get_session(session.session_id)
        assert failed.state == WorkflowState.FAILED
        assert len(failed.errors) == 1

    @pytest.mark.asyncio
    async def test_extraction_failure_fails_session(self, orchestrator):
        classifier = MagicMock()
        classifier.classify.side_effect = RuntimeError("boom")
        orchestrator.classifier = classifier
        session = await orchestrator.trigger("alice", "hr")
        await orchestrator.execute_scan_phase(session.session_id)
        await orchestrator.execute_interview_phase(session.session_id)

        with pytest.raises(ExtractionError):
            await orchestrator.execute_archive_phase(session.session_id, ANSWERS)

        failed = orchestrator.get_session(session.session_id)
        assert failed.state == WorkflowState.FAILED
        assert failed.errors[0].code == "EXTRACTION_ERROR"

    @pytest.mark.asyncio
    async def test_complete_workflow_propagates_failure(self, orchestrator):
        orchestrator.sink = AsyncMock()
        orchestrator.sink.store.side_effect = NetworkError("confluence is unreachable")

        with pytest.raises(NetworkError):
            await orchestrator.execute_complete_workflow(
                {"employee_id": "alice", "triggered_by": "hr"}
            )

        sessions = orchestrator.list_active_sessions()
        assert [s.state for s in sessions] == [WorkflowState.FAILED]
        assert orchestrator.validate_completion(sessions[0].session_id).is_valid is False


class TestSessionStore:
    """Tests for InMemorySessionStore eviction."""

    def session(self, session_id: str, state: WorkflowState, age_days: int) -> WorkflowSession:
        return WorkflowSession(
            session_id=session_id,
            employee_id="e",
            triggered_by="hr",
            triggered_at=NOW - timedelta(days=age_days),
            state=state,
        )

    def test_evicts_old_terminal_sessions(self):
        store = InMemorySessionStore(ttl_seconds=7 * 24 * 3600)
        store.put(self.session("old-archived", WorkflowState.ARCHIVED, 10))
        store.put(self.session("old-failed", WorkflowState.FAILED, 10))
        store.put(self.session("old-running", WorkflowState.INTERVIEWING, 10))
        store.put(self.session("new-archived", WorkflowState.ARCHIVED, 1))

        evicted = store.evict_expired(NOW)

        assert evicted == 2
        assert {s.session_id for s in store.list()} == {"old-running", "new-archived"}

    def test_zero_ttl_disables_eviction(self):
        store = InMemorySessionStore(ttl_seconds=0)
        store.put(self.session("old", WorkflowState.ARCHIVED, 400))
        assert store.evict_expired(NOW) == 0
        assert len(store) == 1

    def test_list_oldest_first(self):
        store = InMemorySessionStore()
        store.put(self.session("b", WorkflowState.TRIGGERED, 1))
        store.put(self.session("a", WorkflowState.TRIGGERED, 2))
        assert [s.session_id for s in store.list()] == ["a", "b"]


class TestValidateCompletion:
    """Tests for completion validation."""

    def test_unknown_session(self, orchestrator):
        report = orchestrator.validate_completion("nope")
        assert report.is_valid is False
        assert report.errors == ["Session not found"]

    @pytest.mark.asyncio
    async def test_incomplete_session(self, orchestrator):
        session = await orchestrator.trigger("alice", "hr")
        await orchestrator.execute_scan_phase(session.session_id)

        report = orchestrator.validate_completion(session.session_id)

        assert report.is_valid is False
        assert "Workflow not completed. Current state: SCAN_COMPLETE" in report.errors
        assert "Interview results missing" in report.errors
        assert "Archive results missing" in report.errors

    @pytest.mark.asyncio
    async def test_lost_artifact_references(self, orchestrator):
        """Archived knowledge must keep the scan's artifacts."""
        import dataclasses

        session = await orchestrator.execute_complete_workflow(
            {"employee_id": "alice", "triggered_by": "hr"}
        )
        archive = session.archive_results
        broken = session.with_results(
            archive_results=dataclasses.replace(
                archive,
                knowledge_artifact=dataclasses.replace(
                    archive.knowledge_artifact, source_artifacts=()
                ),
            )
        )
        orchestrator.store.put(broken)

        report = orchestrator.validate_completion(session.session_id)

        assert report.errors == ["Artifact references not maintained from scan to archive"]

    @pytest.mark.asyncio
    async def test_validation_does_not_modify(self, orchestrator):
        session = await orchestrator.execute_complete_workflow(
            {"employee_id": "alice", "triggered_by": "hr"}
        )
        orchestrator.validate_completion(session.session_id)
        assert orchestrator.get_session(session.session_id) is session
