"""Tests for the HTTP API."""

from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock

import pytest
from httpx import ASGITransport, AsyncClient

from legacy_keeper.activity.models import ChangeRequest, Ticket
from legacy_keeper.activity.sources import StaticActivitySource
from legacy_keeper.api.workflows import get_orchestrator
from legacy_keeper.archive.sinks import InMemoryArchiveSink
from legacy_keeper.exceptions import PermissionDeniedError
from legacy_keeper.main import app
from legacy_keeper.workflow.orchestrator import WorkflowOrchestrator
from legacy_keeper.workflow.store import InMemorySessionStore

NOW = datetime(2026, 10, 18, 12, 0, tzinfo=timezone.utc)


def records() -> list:
    recent = NOW - timedelta(days=20)
    return [
        Ticket(
            id="1", key="PAY-1", author="alice", created=recent, updated=recent,
            title="Investigate intermittent settlement failures in the nightly batch",
        ),
        ChangeRequest(
            id="451", author="alice", created=recent, updated=recent,
            title="Major refactor of ledger sharding", lines_added=1500,
            files_changed=30, review_comments=25,
        ),
    ]


@pytest.fixture
def orchestrator():
    return WorkflowOrchestrator(
        store=InMemorySessionStore(),
        source=StaticActivitySource(records()),
        sink=InMemoryArchiveSink(),
        clock=lambda: NOW,
    )


@pytest.fixture
async def client(orchestrator):
    """Create an async test client wired to a test orchestrator."""
    app.dependency_overrides[get_orchestrator] = lambda: orchestrator
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()


@pytest.mark.asyncio
async def test_health(client: AsyncClient):
    """Test basic health endpoint returns ok."""
    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"


@pytest.mark.asyncio
async def test_root(client: AsyncClient):
    """Test root endpoint returns app info."""
    response = await client.get("/")
    assert response.status_code == 200
    data = response.json()
    assert "name" in data
    assert "version" in data
    assert data["docs"] == "/docs"


@pytest.mark.asyncio
async def test_health_ready_returns_services(client: AsyncClient):
    """Readiness lists every upstream service, configured or not."""
    response = await client.get("/health/ready")
    assert response.status_code == 200
    data = response.json()
    assert "status" in data
    assert set(data["services"]) == {"jira", "bitbucket", "confluence"}


@pytest.mark.asyncio
async def test_scan(client: AsyncClient):
    response = await client.post("/api/v1/scan", json={"user_id": "alice"})
    assert response.status_code == 200
    data = response.json()
    assert data["success"] is True
    assert data["summary"]["total_users_scanned"] == 1
    report = data["reports"][0]
    assert report["risk_level"] == "MEDIUM"
    assert report["undocumented_intensity_score"] == 2.0
    assert set(report["specific_artifacts"]) == {"PAY-1", "PR #451"}


@pytest.mark.asyncio
async def test_scan_source_down_still_succeeds(client: AsyncClient, orchestrator):
    orchestrator.source = AsyncMock()
    orchestrator.source.fetch_records.side_effect = PermissionDeniedError("jira")

    response = await client.post("/api/v1/scan", json={})

    assert response.status_code == 200
    data = response.json()
    assert data["success"] is True
    assert data["reports"] == []
    assert data["source_error"]


@pytest.mark.asyncio
async def test_phase_by_phase(client: AsyncClient):
    """Trigger, scan, interview and archive through the API."""
    response = await client.post(
        "/api/v1/workflows",
        json={"employee_id": "alice", "triggered_by": "hr-admin", "role": "Staff Engineer"},
    )
    assert response.status_code == 201
    session_id = response.json()["session_id"]
    assert response.json()["state"] == "TRIGGERED"

    response = await client.post(f"/api/v1/workflows/{session_id}/scan")
    assert response.status_code == 200
    assert response.json()["risk_level"] == "MEDIUM"

    response = await client.post(f"/api/v1/workflows/{session_id}/interview")
    assert response.status_code == 200
    questions = response.json()["questions"]
    assert any("PR #451" in q["text"] for q in questions)

    response = await client.post(
        f"/api/v1/workflows/{session_id}/archive",
        json={"answers": [{"question": "Why?", "answer": "Because it relies on cron.", "artifact_id": "451"}]},
    )
    assert response.status_code == 200
    assert response.json()["source_artifact_ids"] == ["PAY-1", "451"]

    response = await client.get(f"/api/v1/workflows/{session_id}")
    assert response.json()["state"] == "ARCHIVED"
    assert response.json()["progress_percentage"] == 100

    response = await client.get(f"/api/v1/workflows/{session_id}/validation")
    assert response.json() == {"is_valid": True, "errors": []}


@pytest.mark.asyncio
async def test_complete_workflow(client: AsyncClient):
    response = await client.post(
        "/api/v1/workflows/complete",
        json={"employee_id": "alice", "triggered_by": "hr-admin", "answers": []},
    )
    assert response.status_code == 200
    data = response.json()
    assert data["state"] == "ARCHIVED"
    assert data["archive_results"]["location_id"]

    response = await client.get("/api/v1/workflows")
    assert [s["session_id"] for s in response.json()] == [data["session_id"]]


@pytest.mark.asyncio
async def test_missing_employee_rejected(client: AsyncClient):
    response = await client.post("/api/v1/workflows", json={"triggered_by": "hr-admin"})
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_blank_employee_rejected(client: AsyncClient):
    response = await client.post(
        "/api/v1/workflows", json={"employee_id": "   ", "triggered_by": "hr-admin"}
    )
    assert response.status_code == 422
    assert response.json()["detail"]["code"] == "VALIDATION_ERROR"


@pytest.mark.asyncio
async def test_out_of_order_phase(client: AsyncClient):
    response = await client.post(
        "/api/v1/workflows", json={"employee_id": "alice", "triggered_by": "hr-admin"}
    )
    session_id = response.json()["session_id"]

    response = await client.post(f"/api/v1/workflows/{session_id}/interview")

    assert response.status_code == 409
    assert response.json()["detail"]["code"] == "PHASE_ORDER_ERROR"


@pytest.mark.asyncio
async def test_unknown_session(client: AsyncClient):
    response = await client.get("/api/v1/workflows/nope")
    assert response.status_code == 404

    response = await client.post("/api/v1/workflows/nope/scan")
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_archive_permission_denied(client: AsyncClient, orchestrator):
    """Permission failures return 403 with the fixed message."""
    orchestrator.sink = AsyncMock()
    orchestrator.sink.store.side_effect = PermissionDeniedError("confluence", {"status_code": 403})

    response = await client.post(
        "/api/v1/workflows/complete", json={"employee_id": "alice", "triggered_by": "hr-admin"}
    )

    assert response.status_code == 403
    detail = response.json()["detail"]
    assert detail["code"] == "PERMISSION_DENIED"
    assert "403" not in detail["message"]
