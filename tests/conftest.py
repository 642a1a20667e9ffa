# ============================================================================
# TEST FIXTURES
# ============================================================================
# STATUS: Tests - Shared in-memory collaborators
# PURPOSE: Run services, scheduler and lifecycle without PostgreSQL
# ============================================================================
"""
Shared Test Fixtures

In-memory stand-ins for the pool and the three repositories. They keep
the semantics the SQL versions rely on:

- rows are copied in and out, so callers never share instances with storage
- at most one current row per key (the partial unique index)
- update_fields() only touches the named columns
- find_oldest_created() orders by created_at, then id
- mark_started() only succeeds from CREATED
"""

import asyncio
import copy
import itertools
from contextlib import asynccontextmanager
from datetime import datetime, timedelta, timezone
from typing import Any, Awaitable, Callable, Dict, List, Optional

import pytest

from core.contracts import ExecutionStatus, JobStatus
from core.hooks import HookBus
from core.models import Execution, Job, Workflow
from orchestrator.lifecycle import WorkflowLifecycleManager
from orchestrator.scheduler import WorkflowScheduler
from services import WorkflowService
from triggers import TriggerRegistry


_EPOCH = datetime(2026, 1, 1, tzinfo=timezone.utc)


class UniqueViolation(Exception):
    """Two current rows for one key."""


# ============================================================================
# POOL
# ============================================================================

class FakeConnection:
    def __init__(self):
        self.transactions = 0

    @asynccontextmanager
    async def transaction(self):
        self.transactions += 1
        yield self


class FakePool:
    def __init__(self):
        self.conn = FakeConnection()
        self.connections = 0

    @asynccontextmanager
    async def connection(self):
        self.connections += 1
        yield self.conn


# ============================================================================
# REPOSITORIES
# ============================================================================

class MemoryWorkflowRepository:
    def __init__(self):
        self.rows: Dict[int, Dict[str, Any]] = {}
        self._ids = itertools.count(1)

    def add(self, workflow: Workflow) -> Workflow:
        """Insert synchronously, bypassing hooks (seeding)."""
        workflow.id = next(self._ids)
        workflow.created_at = workflow.updated_at = _EPOCH
        self._store(workflow.model_dump())
        workflow.mark_persisted()
        return workflow

    def row(self, workflow_id: int) -> Dict[str, Any]:
        return self.rows[workflow_id]

    def _store(self, row: Dict[str, Any]) -> None:
        if row["current"]:
            for other in self.rows.values():
                if other["id"] != row["id"] and other["key"] == row["key"] and other["current"]:
                    raise UniqueViolation(f"key {row['key']} already current in {other['id']}")
        self.rows[row["id"]] = copy.deepcopy(row)

    def _load(self, row: Dict[str, Any]) -> Workflow:
        workflow = Workflow(**copy.deepcopy(row))
        workflow.mark_persisted()
        return workflow

    async def create(self, workflow, conn=None):
        workflow.id = next(self._ids)
        workflow.created_at = workflow.updated_at = datetime.now(timezone.utc)
        self._store(workflow.model_dump())
        return workflow

    async def get(self, workflow_id, conn=None):
        row = self.rows.get(workflow_id)
        return self._load(row) if row else None

    async def update(self, workflow, conn=None):
        return await self.update_fields(workflow, Workflow.__tracked_fields__, conn=conn)

    async def update_fields(self, workflow, fields, conn=None):
        row = self.rows.get(workflow.id)
        if row is None:
            return False
        candidate = dict(row)
        for name in fields:
            candidate[name] = copy.deepcopy(getattr(workflow, name))
        candidate["updated_at"] = datetime.now(timezone.utc)
        self._store(candidate)
        workflow.updated_at = candidate["updated_at"]
        return True

    async def delete(self, workflow_id, conn=None):
        return self.rows.pop(workflow_id, None) is not None

    async def list(self, key=None, enabled=None, limit=100, conn=None):
        rows = [
            row for _, row in sorted(self.rows.items())
            if (key is None or row["key"] == key)
            and (enabled is None or row["enabled"] == enabled)
        ]
        return [self._load(row) for row in rows[:limit]]

    async def list_enabled(self, conn=None):
        return await self.list(enabled=True, limit=len(self.rows) or 1)

    async def count_by_key(self, key, conn=None):
        return sum(1 for row in self.rows.values() if row["key"] == key)

    async def find_current_sibling(self, key, exclude_id, conn=None):
        for _, row in sorted(self.rows.items()):
            if row["key"] == key and row["current"] is True and row["id"] != exclude_id:
                return self._load(row)
        return None

    async def set_all_executed(self, key, all_executed, conn=None):
        updated = []
        for _, row in sorted(self.rows.items()):
            if row["key"] == key:
                row["all_executed"] = all_executed
                updated.append(self._load(row))
        return updated


class MemoryExecutionRepository:
    def __init__(self):
        self.rows: Dict[int, Execution] = {}
        self._ids = itertools.count(1)
        self._clock = itertools.count(1)
        # Awaited once during the next find_oldest_created(), after its result is chosen
        self.after_scan: Optional[Callable[[], Awaitable[None]]] = None
        self.scans = 0

    def _now(self) -> datetime:
        return _EPOCH + timedelta(seconds=next(self._clock))

    def add(self, execution: Execution, created_at: Optional[datetime] = None) -> Execution:
        """Insert synchronously (seeding)."""
        execution.id = next(self._ids)
        execution.created_at = created_at or self._now()
        self.rows[execution.id] = execution.model_copy(update={"workflow": None})
        return execution

    def _copy(self, execution: Execution) -> Execution:
        return execution.model_copy(deep=True)

    async def create(self, execution, conn=None):
        execution.id = next(self._ids)
        execution.created_at = execution.updated_at = self._now()
        self.rows[execution.id] = execution.model_copy(update={"workflow": None}, deep=True)
        return execution

    async def get(self, execution_id, conn=None):
        row = self.rows.get(execution_id)
        return self._copy(row) if row else None

    async def count_for_workflow(self, workflow_id, execution_id=None, conn=None):
        return sum(
            1 for row in self.rows.values()
            if row.workflow_id == workflow_id
            and (execution_id is None or row.id == execution_id)
        )

    async def count_by_key(self, key, conn=None):
        return sum(1 for row in self.rows.values() if row.key == key)

    async def find_oldest_created(self, conn=None):
        self.scans += 1
        created = sorted(
            (row for row in self.rows.values() if row.status == ExecutionStatus.CREATED),
            key=lambda row: (row.created_at, row.id),
        )
        found = self._copy(created[0]) if created else None
        if self.after_scan is not None:
            hook, self.after_scan = self.after_scan, None
            await hook()
        return found

    async def mark_started(self, execution_id, conn=None):
        row = self.rows.get(execution_id)
        if row is None or row.status != ExecutionStatus.CREATED:
            return False
        row.status = ExecutionStatus.STARTED
        return True

    async def update_status(self, execution_id, status, conn=None):
        row = self.rows.get(execution_id)
        if row is None:
            return False
        row.status = status
        return True

    def statuses(self) -> Dict[int, ExecutionStatus]:
        return {execution_id: row.status for execution_id, row in self.rows.items()}


class MemoryJobRepository:
    def __init__(self):
        self.rows: Dict[int, Job] = {}
        self._ids = itertools.count(1)

    def add(self, job: Job) -> Job:
        job.id = next(self._ids)
        self.rows[job.id] = job.model_copy(update={"execution": None})
        return job

    async def create(self, job, conn=None):
        return self.add(job)

    async def get(self, job_id, conn=None):
        row = self.rows.get(job_id)
        return row.model_copy(deep=True) if row else None

    async def update_status(self, job_id, status, result=None, conn=None):
        row = self.rows.get(job_id)
        if row is None or row.status != JobStatus.PENDING:
            return False
        row.status = status
        row.result = result
        return True


# ============================================================================
# TRIGGERS AND PROCESSORS
# ============================================================================

class RecordingTrigger:
    """Trigger that records on/off calls and which workflows are listening."""

    def __init__(self):
        self.calls: List[tuple] = []
        self.listening: Dict[int, Dict[str, Any]] = {}

    def on(self, workflow):
        self.calls.append(("on", workflow.id, dict(workflow.config)))
        self.listening[workflow.id] = dict(workflow.config)

    def off(self, workflow):
        self.calls.append(("off", workflow.id, dict(workflow.config)))
        self.listening.pop(workflow.id, None)


class ProcessorScript:
    """
    Processor factory for tests.

    Records every start/resume as (kind, execution_id, job_id), tracks how
    many processors run at once, awaits `hook(processor, job)` if set and
    then resolves the execution.
    """

    def __init__(self, execution_repo: MemoryExecutionRepository):
        self.execution_repo = execution_repo
        self.calls: List[tuple] = []
        self.hook: Optional[Callable[["ScriptedProcessor", Optional[Job]], Awaitable[None]]] = None
        self.active = 0
        self.max_active = 0
        self.created = 0

    def __call__(self, execution, scheduler):
        self.created += 1
        return ScriptedProcessor(self, execution, scheduler)


class ScriptedProcessor:
    def __init__(self, script: ProcessorScript, execution: Execution, scheduler):
        self.script = script
        self.execution = execution
        self.scheduler = scheduler

    async def start(self):
        await self._run(None)

    async def resume(self, job):
        await self._run(job)

    async def _run(self, job):
        script = self.script
        script.active += 1
        script.max_active = max(script.max_active, script.active)
        try:
            script.calls.append(
                ("resume" if job else "start", self.execution.id, job.id if job else None)
            )
            await asyncio.sleep(0)
            if script.hook is not None:
                await script.hook(self, job)
            await script.execution_repo.update_status(self.execution.id, ExecutionStatus.RESOLVED)
        finally:
            script.active -= 1


# ============================================================================
# FIXTURES
# ============================================================================

@pytest.fixture
def pool():
    return FakePool()


@pytest.fixture
def workflow_repo():
    return MemoryWorkflowRepository()


@pytest.fixture
def execution_repo():
    return MemoryExecutionRepository()


@pytest.fixture
def job_repo():
    return MemoryJobRepository()


@pytest.fixture
def hooks():
    return HookBus()


@pytest.fixture
def workflow_service(pool, workflow_repo, hooks):
    return WorkflowService(pool, workflow_repo, hooks)


@pytest.fixture
def trigger():
    return RecordingTrigger()


@pytest.fixture
def trigger_registry(trigger):
    registry = TriggerRegistry()
    registry.register("recording", trigger)
    return registry


@pytest.fixture
def lifecycle(workflow_service, trigger_registry):
    manager = WorkflowLifecycleManager(workflow_service, trigger_registry)
    manager.attach()
    return manager


@pytest.fixture
def processors(execution_repo):
    return ProcessorScript(execution_repo)


@pytest.fixture
def scheduler(workflow_service, processors, execution_repo):
    return WorkflowScheduler(workflow_service, processors, execution_repo)


@pytest.fixture
def seed_workflow(workflow_repo):
    """Insert a persisted workflow without hooks."""
    def _seed(key="k1", enabled=True, current=True, **fields):
        fields.setdefault("type", "recording")
        return workflow_repo.add(Workflow(key=key, enabled=enabled, current=current, **fields))
    return _seed


@pytest.fixture
def seed_execution(execution_repo):
    """Insert an execution row directly."""
    def _seed(workflow, status=ExecutionStatus.CREATED, created_at=None, context=None):
        execution = Execution(
            workflow_id=workflow.id,
            key=workflow.key,
            context=context if context is not None else {},
            status=status,
        )
        return execution_repo.add(execution, created_at=created_at)
    return _seed


@pytest.fixture
def seed_job(job_repo):
    def _seed(execution, status=JobStatus.PENDING, node_id="wait"):
        return job_repo.add(Job(execution_id=execution.id, status=status, node_id=node_id))
    return _seed
