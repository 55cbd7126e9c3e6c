"""Scan and cognitive offboarding workflow endpoints."""

import logging
from functools import lru_cache

from fastapi import APIRouter, Depends, HTTPException

from legacy_keeper.activity.models import ScanQuery
from legacy_keeper.activity.scanner import scan_last_six_months
from legacy_keeper.api.schemas import (
    ArchiveRequest,
    ArchiveResponseBody,
    CompleteWorkflowRequest,
    IntensityReportItem,
    InterviewResponseBody,
    ScanRequest,
    ScanResponseBody,
    SessionResponse,
    TriggerRequest,
    ValidationResponse,
)
from legacy_keeper.exceptions import (
    LegacyKeeperError,
    NotFoundError,
    PermissionDeniedError,
    PhaseOrderError,
    SessionNotFoundError,
    ValidationError,
    user_message,
)
from legacy_keeper.workflow.orchestrator import (
    WorkflowOrchestrator,
    WorkflowParams,
    create_orchestrator,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1", tags=["workflows"])


@lru_cache
def get_orchestrator() -> WorkflowOrchestrator:
    """Process-wide orchestrator built from settings."""
    return create_orchestrator()


def _http_error(exc: LegacyKeeperError) -> HTTPException:
    if isinstance(exc, ValidationError):
        status_code = 422
    elif isinstance(exc, PhaseOrderError):
        status_code = 409
    elif isinstance(exc, NotFoundError):
        status_code = 404
    elif isinstance(exc, PermissionDeniedError):
        status_code = 403
    else:
        status_code = 502
    return HTTPException(
        status_code=status_code,
        detail={"code": exc.code, "message": user_message(exc)},
    )


@router.post("/scan", response_model=ScanResponseBody)
async def scan(
    request: ScanRequest,
    orchestrator: WorkflowOrchestrator = Depends(get_orchestrator),
) -> ScanResponseBody:
    """Score every author (or one) over the trailing six months."""
    response = await scan_last_six_months(
        orchestrator.source,
        orchestrator.scanner,
        ScanQuery(user_id=request.user_id),
        orchestrator.clock(),
    )
    return ScanResponseBody.from_response(response)


@router.post("/workflows", response_model=SessionResponse, status_code=201)
async def trigger_workflow(
    request: TriggerRequest,
    orchestrator: WorkflowOrchestrator = Depends(get_orchestrator),
) -> SessionResponse:
    """Start an offboarding session."""
    try:
        session = await orchestrator.trigger(
            request.employee_id,
            request.triggered_by,
            request.department,
            request.role,
            request.offboarding_date,
        )
    except LegacyKeeperError as e:
        raise _http_error(e)
    return SessionResponse.from_session(session)


@router.post("/workflows/complete", response_model=SessionResponse)
async def run_complete_workflow(
    request: CompleteWorkflowRequest,
    orchestrator: WorkflowOrchestrator = Depends(get_orchestrator),
) -> SessionResponse:
    """Trigger and run every phase in one request."""
    params = WorkflowParams(
        employee_id=request.employee_id,
        triggered_by=request.triggered_by,
        department=request.department,
        role=request.role,
        offboarding_date=request.offboarding_date,
    )
    try:
        session = await orchestrator.execute_complete_workflow(
            params, [a.model_dump() for a in request.answers]
        )
    except LegacyKeeperError as e:
        logger.error(f"Complete workflow failed for {request.employee_id}: {e}")
        raise _http_error(e)
    return SessionResponse.from_session(session)


@router.get("/workflows", response_model=list[SessionResponse])
async def list_workflows(
    orchestrator: WorkflowOrchestrator = Depends(get_orchestrator),
) -> list[SessionResponse]:
    """Every retained session, oldest first."""
    return [SessionResponse.from_session(s) for s in orchestrator.list_active_sessions()]


@router.get("/workflows/{session_id}", response_model=SessionResponse)
async def get_workflow(
    session_id: str,
    orchestrator: WorkflowOrchestrator = Depends(get_orchestrator),
) -> SessionResponse:
    session = orchestrator.get_session(session_id)
    if session is None:
        raise _http_error(SessionNotFoundError(session_id))
    return SessionResponse.from_session(session)


@router.post("/workflows/{session_id}/scan", response_model=IntensityReportItem)
async def run_scan_phase(
    session_id: str,
    orchestrator: WorkflowOrchestrator = Depends(get_orchestrator),
) -> IntensityReportItem:
    try:
        report = await orchestrator.execute_scan_phase(session_id)
    except LegacyKeeperError as e:
        raise _http_error(e)
    return IntensityReportItem.from_report(report)


@router.post("/workflows/{session_id}/interview", response_model=InterviewResponseBody)
async def run_interview_phase(
    session_id: str,
    orchestrator: WorkflowOrchestrator = Depends(get_orchestrator),
) -> InterviewResponseBody:
    try:
        result = await orchestrator.execute_interview_phase(session_id)
    except LegacyKeeperError as e:
        raise _http_error(e)
    return InterviewResponseBody.from_result(result)


@router.post("/workflows/{session_id}/archive", response_model=ArchiveResponseBody)
async def run_archive_phase(
    session_id: str,
    request: ArchiveRequest,
    orchestrator: WorkflowOrchestrator = Depends(get_orchestrator),
) -> ArchiveResponseBody:
    try:
        result = await orchestrator.execute_archive_phase(
            session_id, [a.model_dump() for a in request.answers]
        )
    except LegacyKeeperError as e:
        raise _http_error(e)
    return ArchiveResponseBody.from_result(result)


@router.get("/workflows/{session_id}/validation", response_model=ValidationResponse)
async def validate_workflow(
    session_id: str,
    orchestrator: WorkflowOrchestrator = Depends(get_orchestrator),
) -> ValidationResponse:
    """Check that a session completed with its artifact links intact."""
    return ValidationResponse.from_report(orchestrator.validate_completion(session_id))
