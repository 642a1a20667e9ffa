# ============================================================================
# WORKFLOW SCHEDULER
# ============================================================================
# STATUS: Core - Trigger funnel and single-flight dispatch
# PURPOSE: Turn trigger firings and resumed jobs into one serialized stream
# ============================================================================
"""
Workflow Scheduler

Reconciles three sources of work into one execution at a time:

1. Trigger firings (trigger) -> event queue -> Execution rows
2. Resumed jobs (resume) -> pending queue
3. Executions left CREATED by an earlier process -> storage scan

Ordering:
- Trigger events are turned into executions in arrival order
- Pending entries run before anything found by the storage scan
- The scan takes the oldest CREATED execution first

All state lives on the scheduler instance and is only touched from the
event loop thread. Every guard check and the mutation it protects happen
without an await in between, which is what makes this single-flight.
"""

import asyncio
from collections import deque
from datetime import datetime, timezone
from typing import Any, Awaitable, Deque, Dict, Optional, Set, Tuple

from core.contracts import ExecutionStatus
from core.logging import ComponentType, get_logger, log_context
from core.models import Execution, Job, Workflow
from orchestrator.processor import ProcessorFactory
from repositories import ExecutionRepository
from services import WorkflowService

logger = get_logger(__name__, ComponentType.SCHEDULER)

PendingEntry = Tuple[Execution, Optional[Job]]
TriggerEvent = Tuple[Workflow, Any, Dict[str, Any]]


class ExecutionNotFoundError(KeyError):
    """Raised when a job refers to an execution that does not exist."""
    def __init__(self, execution_id: int):
        self.execution_id = execution_id
        super().__init__(f"Execution not found: {execution_id}")


class WorkflowScheduler:
    """
    Single-process execution scheduler.

    Holds at most one execution in flight (`executing`). Work waiting for
    the slot sits in `pending` as (execution, job) pairs; job None means
    start the execution fresh.
    """

    def __init__(
        self,
        workflow_service: WorkflowService,
        processor_factory: ProcessorFactory,
        execution_repo: Optional[ExecutionRepository] = None,
    ):
        """
        Initialize scheduler.

        Args:
            workflow_service: Workflow persistence (counters, lookups)
            processor_factory: Builds a processor per execution
            execution_repo: Repository override (defaults to one on the service pool)
        """
        self.workflow_service = workflow_service
        self.processor_factory = processor_factory
        self.execution_repo = execution_repo or ExecutionRepository(workflow_service.pool)

        # State
        self.executing: Optional[Execution] = None
        self.pending: Deque[PendingEntry] = deque()
        self.events: Deque[TriggerEvent] = deque()
        self._dispatching = False
        self._wakeup = False

        # Background drains and dispatches, kept referenced until done
        self._tasks: Set[asyncio.Task] = set()

        # Metrics
        self._started_at = datetime.now(timezone.utc)
        self._executions_created = 0
        self._duplicates_skipped = 0
        self._processed = 0
        self._errors = 0

    # =========================================================================
    # TRIGGER FUNNEL
    # =========================================================================

    def trigger(
        self,
        workflow: Workflow,
        context: Any,
        options: Optional[Dict[str, Any]] = None,
    ) -> None:
        """
        Queue a trigger firing.

        Must be called from the event loop thread; other threads hand the
        call over with loop.call_soon_threadsafe(scheduler.trigger, ...).
        A context of None means the trigger did not match and nothing is
        queued.

        Args:
            workflow: Workflow version that fired
            context: Trigger payload stored on the execution
            options: Firing options; options["context"]["execution_id"]
                     marks a firing that belongs to an existing execution

        Raises:
            RuntimeError if no event loop is running in this thread; the
            event is not queued
        """
        if context is None:
            logger.debug(f"Trigger for workflow {workflow.id} produced no context, not running")
            return

        # Raise before the queue is touched
        loop = asyncio.get_running_loop()

        self.events.append((workflow, context, options or {}))
        # Only the transition from empty schedules a drain
        if len(self.events) == 1:
            self._spawn(self._prepare(), loop)

    async def _prepare(self) -> None:
        """Drain the event queue head first, then dispatch."""
        while self.events:
            workflow, context, options = self.events[0]
            try:
                with log_context(workflow_id=workflow.id, workflow_key=workflow.key):
                    await self._prepare_event(workflow, context, options)
            except Exception as e:
                self._errors += 1
                logger.exception(f"Dropping trigger event for workflow {workflow.id}: {e}")
            finally:
                self.events.popleft()

        await self.dispatch()

    async def _prepare_event(
        self,
        workflow: Workflow,
        context: Any,
        options: Dict[str, Any],
    ) -> Optional[Execution]:
        """Create the execution for one trigger event, or skip a duplicate."""
        execution_id = (options.get("context") or {}).get("execution_id")
        if execution_id is not None:
            existing = await self.execution_repo.count_for_workflow(
                workflow.id, execution_id=execution_id
            )
            if existing:
                self._duplicates_skipped += 1
                logger.warning(
                    f"Execution {execution_id} of workflow {workflow.id} already exists, "
                    f"ignoring duplicate trigger"
                )
                return None

        execution = Execution(
            workflow_id=workflow.id,
            key=workflow.key,
            context=context,
            status=ExecutionStatus.CREATED,
            use_transaction=workflow.use_transaction,
        )

        async with self.workflow_service.transaction() as tx:
            await self.execution_repo.create(execution, conn=tx.conn)

            executed = await self.execution_repo.count_for_workflow(workflow.id, conn=tx.conn)
            await self.workflow_service.update(
                workflow, {"executed": executed}, scope=tx, hooks=False
            )

            all_executed = await self.execution_repo.count_by_key(workflow.key, conn=tx.conn)
            await self.workflow_service.update_all_executed(workflow.key, all_executed, scope=tx)

        workflow.all_executed = all_executed
        workflow.mark_persisted(["all_executed"])

        execution.workflow = workflow
        self._executions_created += 1
        logger.info(f"Created execution {execution.id} for workflow {workflow.id}")

        # Hand the first execution of an idle scheduler straight to dispatch;
        # later ones are found by the scan, oldest first
        if self.executing is None and not self.pending:
            self.pending.append((execution, None))

        return execution

    # =========================================================================
    # DISPATCH
    # =========================================================================

    async def resume(self, job: Job) -> None:
        """
        Re-enter a suspended execution at job.

        The entry waits in pending if another execution holds the slot.

        Raises:
            ExecutionNotFoundError if the job's execution does not exist
        """
        if job.execution is None:
            execution = await self.execution_repo.get(job.execution_id)
            if execution is None:
                raise ExecutionNotFoundError(job.execution_id)
            job.execution = execution

        self.pending.append((job.execution, job))
        logger.debug(f"Queued job {job.id} of execution {job.execution_id} for resume")
        self._spawn(self.dispatch())

    def schedule_dispatch(self) -> None:
        """Dispatch in the background (startup recovery)."""
        self._spawn(self.dispatch())

    async def dispatch(self) -> None:
        """
        Run work until none is left.

        The first caller owns the loop. Callers arriving while it runs only
        flag a wake-up, and the owner looks for work once more before it
        returns, so a wake-up is never lost.
        """
        if self._dispatching:
            self._wakeup = True
            return

        self._dispatching = True
        try:
            while True:
                self._wakeup = False
                entry = await self._next()
                if entry is None:
                    if self._wakeup:
                        continue
                    return
                await self._process(*entry)
        finally:
            self._dispatching = False

    async def _next(self) -> Optional[PendingEntry]:
        if self.pending:
            return self.pending.popleft()

        execution = await self.execution_repo.find_oldest_created()

        # A resume that arrived during the scan goes first; the scanned
        # row is still CREATED and will be found again.
        if self.pending:
            return self.pending.popleft()
        if execution is None:
            return None
        return execution, None

    async def _process(self, execution: Execution, job: Optional[Job] = None) -> None:
        """Run one execution (or resume it at job) while holding the slot."""
        self.executing = execution
        try:
            with log_context(
                execution_id=execution.id,
                workflow_id=execution.workflow_id,
                workflow_key=execution.key,
                job_id=job.id if job else None,
            ):
                await self._run(execution, job)
        finally:
            self.executing = None

    async def _run(self, execution: Execution, job: Optional[Job]) -> None:
        try:
            if execution.status == ExecutionStatus.CREATED:
                if not await self.execution_repo.mark_started(execution.id):
                    logger.info(f"Execution {execution.id} already started elsewhere, skipping")
                    return
                execution.status = ExecutionStatus.STARTED

            if execution.workflow is None:
                execution.workflow = await self.workflow_service.get_or_raise(execution.workflow_id)

            processor = self.processor_factory(execution, self)
            if job is not None:
                logger.info(f"Resuming execution {execution.id} at job {job.id}")
                await processor.resume(job)
            else:
                logger.info(f"Starting execution {execution.id}")
                await processor.start()
            self._processed += 1

        except Exception as e:
            self._errors += 1
            logger.exception(f"Execution {execution.id} failed: {e}")
            await self._mark_error(execution)

    async def _mark_error(self, execution: Execution) -> None:
        try:
            await self.execution_repo.update_status(execution.id, ExecutionStatus.ERROR)
            execution.status = ExecutionStatus.ERROR
        except Exception as e:
            logger.exception(f"Could not record error status for execution {execution.id}: {e}")

    # =========================================================================
    # BACKGROUND TASKS
    # =========================================================================

    def _spawn(
        self,
        coro: Awaitable[None],
        loop: Optional[asyncio.AbstractEventLoop] = None,
    ) -> asyncio.Task:
        task = (loop or asyncio.get_running_loop()).create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._task_done)
        return task

    def _task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            self._errors += 1
            logger.error(f"Scheduler task failed: {exc!r}", exc_info=exc)

    async def wait_idle(self) -> None:
        """Wait until no drain or dispatch task is running."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def cancel(self) -> None:
        """Cancel background tasks (shutdown after a timed-out wait_idle)."""
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)

    # =========================================================================
    # STATUS
    # =========================================================================

    def status(self) -> Dict[str, Any]:
        """Scheduler state and counters."""
        uptime_seconds = (datetime.now(timezone.utc) - self._started_at).total_seconds()
        return {
            "executing": self.executing.id if self.executing else None,
            "pending": len(self.pending),
            "queued_events": len(self.events),
            "dispatching": self._dispatching,
            "background_tasks": len(self._tasks),
            "uptime_seconds": uptime_seconds,
            "executions_created": self._executions_created,
            "duplicates_skipped": self._duplicates_skipped,
            "processed": self._processed,
            "errors": self._errors,
        }


__all__ = ["WorkflowScheduler", "ExecutionNotFoundError"]
