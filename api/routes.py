# ============================================================================
# API ROUTES
# ============================================================================
# STATUS: Core - FastAPI route definitions
# PURPOSE: HTTP endpoints for workflows, executions and job resumption
# ============================================================================
"""
API Routes

FastAPI routes for the workflow scheduler.

Workflow writes go through WorkflowService so the lifecycle hooks run
exactly as they do for any other writer.
"""

import logging
import uuid
from typing import Optional

from fastapi import APIRouter, HTTPException, Query

from core.contracts import JobStatus
from core.models import Workflow
from orchestrator.scheduler import ExecutionNotFoundError
from .schemas import (
    AcceptedResponse,
    ErrorResponse,
    ExecutionResponse,
    JobResume,
    TriggerRequest,
    WorkflowCreate,
    WorkflowListResponse,
    WorkflowResponse,
    WorkflowRevisionCreate,
    WorkflowUpdate,
)

logger = logging.getLogger(__name__)

router = APIRouter()


# ============================================================================
# DEPENDENCY INJECTION
# ============================================================================
# These will be set by the main app at startup

_workflow_service = None
_scheduler = None
_triggers = None
_execution_repo = None
_job_repo = None


def set_services(workflow_service, scheduler, triggers, execution_repo, job_repo):
    """Set service instances for dependency injection."""
    global _workflow_service, _scheduler, _triggers, _execution_repo, _job_repo
    _workflow_service = workflow_service
    _scheduler = scheduler
    _triggers = triggers
    _execution_repo = execution_repo
    _job_repo = job_repo


def get_workflow_service():
    if _workflow_service is None:
        raise HTTPException(500, "Services not initialized")
    return _workflow_service


def get_scheduler():
    if _scheduler is None:
        raise HTTPException(500, "Scheduler not initialized")
    return _scheduler


async def _load_workflow(workflow_id: int) -> Workflow:
    workflow = await get_workflow_service().get(workflow_id)
    if workflow is None:
        raise HTTPException(404, f"Workflow not found: {workflow_id}")
    return workflow


# ============================================================================
# SCHEDULER STATUS
# ============================================================================

@router.get("/scheduler", tags=["Scheduler"])
async def get_scheduler_status():
    """
    Get scheduler state and counters.

    Returns the execution in flight, queue depths, and counts of
    executions created, duplicates skipped, processed runs and errors.
    """
    scheduler = get_scheduler()
    stats = scheduler.status()

    return {
        "status": "busy" if stats["executing"] is not None else "idle",
        "executing": stats["executing"],
        "pending": stats["pending"],
        "queued_events": stats["queued_events"],
        "uptime_seconds": stats["uptime_seconds"],
        "triggers": _triggers.types() if _triggers is not None else [],
        "metrics": {
            "executions_created": stats["executions_created"],
            "duplicates_skipped": stats["duplicates_skipped"],
            "processed": stats["processed"],
            "errors": stats["errors"],
        },
    }


# ============================================================================
# WORKFLOWS
# ============================================================================

@router.get("/workflows", response_model=WorkflowListResponse, tags=["Workflows"])
async def list_workflows(
    key: Optional[str] = Query(None, description="Only versions of this key"),
    enabled: Optional[bool] = Query(None, description="Filter by enabled flag"),
    limit: int = Query(100, ge=1, le=1000),
):
    """
    List workflow versions.
    """
    workflows = await get_workflow_service().list(key=key, enabled=enabled, limit=limit)
    return WorkflowListResponse(
        workflows=[WorkflowResponse.model_validate(w) for w in workflows],
        total=len(workflows),
    )


@router.post(
    "/workflows",
    response_model=WorkflowResponse,
    status_code=201,
    tags=["Workflows"],
    responses={
        201: {"description": "Workflow created"},
        400: {"model": ErrorResponse, "description": "Unknown trigger type"},
    },
)
async def create_workflow(request: WorkflowCreate):
    """
    Create a workflow version.

    Without a key a new logical workflow is started. Enabling it demotes
    the currently enabled version of the same key.
    """
    if _triggers is not None and request.type not in _triggers:
        raise HTTPException(400, f"Unknown trigger type: {request.type}")

    workflow = Workflow(
        key=request.key or uuid.uuid4().hex[:12],
        title=request.title,
        type=request.type,
        config=request.config,
        enabled=request.enabled,
        use_transaction=request.use_transaction,
    )
    await get_workflow_service().save(workflow)
    logger.info(f"Created workflow {workflow.id} (key={workflow.key})")
    return WorkflowResponse.model_validate(workflow)


@router.get(
    "/workflows/{workflow_id}",
    response_model=WorkflowResponse,
    tags=["Workflows"],
    responses={404: {"model": ErrorResponse, "description": "Workflow not found"}},
)
async def get_workflow(workflow_id: int):
    """
    Get a workflow version.
    """
    workflow = await _load_workflow(workflow_id)
    return WorkflowResponse.model_validate(workflow)


@router.patch(
    "/workflows/{workflow_id}",
    response_model=WorkflowResponse,
    tags=["Workflows"],
    responses={404: {"model": ErrorResponse, "description": "Workflow not found"}},
)
async def update_workflow(workflow_id: int, request: WorkflowUpdate):
    """
    Update a workflow version.

    Changing config of an enabled workflow re-registers its trigger;
    toggling enabled turns the trigger on or off.
    """
    workflow = await _load_workflow(workflow_id)
    values = request.model_dump(exclude_unset=True)
    if values:
        await get_workflow_service().update(workflow, values)
    return WorkflowResponse.model_validate(workflow)


@router.delete(
    "/workflows/{workflow_id}",
    status_code=204,
    tags=["Workflows"],
    responses={404: {"model": ErrorResponse, "description": "Workflow not found"}},
)
async def delete_workflow(workflow_id: int):
    """
    Delete a workflow version with its executions and jobs.
    """
    workflow = await _load_workflow(workflow_id)
    if not await get_workflow_service().destroy(workflow):
        raise HTTPException(404, f"Workflow not found: {workflow_id}")
    return None


@router.post(
    "/workflows/{workflow_id}/revision",
    response_model=WorkflowResponse,
    status_code=201,
    tags=["Workflows"],
    responses={404: {"model": ErrorResponse, "description": "Workflow not found"}},
)
async def create_revision(workflow_id: int, request: Optional[WorkflowRevisionCreate] = None):
    """
    Copy a workflow version into a new, disabled version of the same key.
    """
    workflow = await _load_workflow(workflow_id)
    values = request.model_dump(exclude_unset=True) if request else {}
    revision = await get_workflow_service().revision(workflow, values)
    return WorkflowResponse.model_validate(revision)


@router.post(
    "/workflows/{workflow_id}/trigger",
    response_model=AcceptedResponse,
    status_code=202,
    tags=["Workflows"],
    responses={
        404: {"model": ErrorResponse, "description": "Workflow not found"},
        409: {"model": ErrorResponse, "description": "Workflow disabled"},
    },
)
async def trigger_workflow(workflow_id: int, request: TriggerRequest):
    """
    Fire a workflow by hand.

    The execution is created asynchronously; poll GET /scheduler or the
    execution endpoints to follow it.
    """
    workflow = await _load_workflow(workflow_id)
    if not workflow.enabled:
        raise HTTPException(409, f"Workflow {workflow_id} is disabled")

    options = {}
    if request.execution_id is not None:
        options["context"] = {"execution_id": request.execution_id}

    get_scheduler().trigger(workflow, request.context, options)
    return AcceptedResponse(message=f"Workflow {workflow_id} triggered")


# ============================================================================
# EXECUTIONS
# ============================================================================

@router.get(
    "/executions/{execution_id}",
    response_model=ExecutionResponse,
    tags=["Executions"],
    responses={404: {"model": ErrorResponse, "description": "Execution not found"}},
)
async def get_execution(execution_id: int):
    """
    Get an execution.
    """
    if _execution_repo is None:
        raise HTTPException(500, "Services not initialized")
    execution = await _execution_repo.get(execution_id)
    if execution is None:
        raise HTTPException(404, f"Execution not found: {execution_id}")
    return ExecutionResponse.model_validate(execution)


# ============================================================================
# JOBS
# ============================================================================

@router.post(
    "/jobs/{job_id}/resume",
    response_model=AcceptedResponse,
    status_code=202,
    tags=["Jobs"],
    responses={
        404: {"model": ErrorResponse, "description": "Job not found"},
        409: {"model": ErrorResponse, "description": "Job already consumed"},
    },
)
async def resume_job(job_id: int, request: JobResume):
    """
    Complete a suspended job and hand its execution back to the scheduler.
    """
    if _job_repo is None:
        raise HTTPException(500, "Services not initialized")
    scheduler = get_scheduler()

    job = await _job_repo.get(job_id)
    if job is None:
        raise HTTPException(404, f"Job not found: {job_id}")
    if job.status != JobStatus.PENDING:
        raise HTTPException(409, f"Job {job_id} already {job.status.value}")

    if not await _job_repo.update_status(job.id, request.status, request.result):
        raise HTTPException(409, f"Job {job_id} already consumed")
    job.status = request.status
    job.result = request.result

    try:
        await scheduler.resume(job)
    except ExecutionNotFoundError:
        raise HTTPException(404, f"Execution not found: {job.execution_id}")

    logger.info(f"Job {job_id} resumed with status {request.status.value}")
    return AcceptedResponse(message=f"Job {job_id} resumed")
