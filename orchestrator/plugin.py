# ============================================================================
# WORKFLOW PLUGIN
# ============================================================================
# STATUS: Core - Host wiring
# PURPOSE: Build the scheduler stack and expose the host lifecycle hooks
# ============================================================================
"""
Workflow Plugin

One object the host creates per process. It owns the hook bus, the
trigger registry, the workflow service, the scheduler and the lifecycle
manager, and exposes the three moments the host must call:

    await plugin.load()          schema bootstrap, hooks, trigger factories
    await plugin.before_start()  triggers on, dispatch leftovers
    await plugin.before_stop()   triggers off, wait for in-flight work

Usage:
    plugin = WorkflowPlugin(pool, processor_factory=MyProcessor)
    plugin.triggers.register("schedule", ScheduleTrigger(plugin.scheduler))
    await plugin.load()
    await plugin.before_start()
"""

import asyncio
from typing import Callable, Dict, Optional

from psycopg_pool import AsyncConnectionPool

from core.config import SchedulerDefaults, get_defaults
from core.hooks import HookBus
from core.logging import ComponentType, get_logger
from orchestrator.lifecycle import WorkflowLifecycleManager
from orchestrator.processor import ProcessorFactory, load_object
from orchestrator.scheduler import WorkflowScheduler
from repositories import ExecutionRepository, JobRepository, WorkflowRepository, ensure_schema
from services import WorkflowService
from triggers import Trigger, TriggerRegistry

logger = get_logger(__name__, ComponentType.SCHEDULER)

TriggerFactory = Callable[[WorkflowScheduler], Trigger]


class WorkflowPlugin:
    """Scheduler stack for one process."""

    def __init__(
        self,
        pool: AsyncConnectionPool,
        processor_factory: Optional[ProcessorFactory] = None,
        triggers: Optional[TriggerRegistry] = None,
        settings: Optional[SchedulerDefaults] = None,
        bootstrap_schema: Optional[bool] = None,
        workflow_repo: Optional[WorkflowRepository] = None,
        execution_repo: Optional[ExecutionRepository] = None,
        job_repo: Optional[JobRepository] = None,
    ):
        """
        Initialize plugin.

        Args:
            pool: Database connection pool
            processor_factory: Builds processors; defaults to settings.processor_factory
            triggers: Registry to use (defaults to a new one)
            settings: Scheduler settings (defaults to environment)
            bootstrap_schema: Create tables on load (defaults to AUTO_BOOTSTRAP_SCHEMA)
            workflow_repo, execution_repo, job_repo: Repository overrides
        """
        defaults = get_defaults()
        self.pool = pool
        self.settings = settings or defaults.scheduler
        self.bootstrap_schema = (
            defaults.database.auto_bootstrap_schema
            if bootstrap_schema is None else bootstrap_schema
        )

        if processor_factory is None:
            if not self.settings.processor_factory:
                raise ValueError("No processor factory given and PROCESSOR_FACTORY is not set")
            processor_factory = load_object(self.settings.processor_factory)

        self.hooks = HookBus()
        self.triggers = triggers or TriggerRegistry()

        self.workflow_repo = workflow_repo or WorkflowRepository(pool)
        self.execution_repo = execution_repo or ExecutionRepository(pool)
        self.job_repo = job_repo or JobRepository(pool)

        self.workflow_service = WorkflowService(pool, self.workflow_repo, self.hooks)
        self.scheduler = WorkflowScheduler(
            self.workflow_service, processor_factory, self.execution_repo
        )
        self.lifecycle = WorkflowLifecycleManager(self.workflow_service, self.triggers)

        self._loaded = False

    async def load(self) -> None:
        """Bootstrap schema if enabled, attach hooks and build configured triggers."""
        if self._loaded:
            return

        if self.bootstrap_schema:
            logger.info("Auto-bootstrap enabled, deploying schema...")
            await ensure_schema(self.pool)

        self.lifecycle.attach(self.hooks)
        self._register_configured_triggers(self.settings.triggers)
        self._loaded = True
        logger.info(f"Workflow plugin loaded (triggers: {', '.join(self.triggers.types()) or 'none'})")

    def _register_configured_triggers(self, paths: Dict[str, str]) -> None:
        for trigger_type, path in paths.items():
            if trigger_type in self.triggers:
                logger.debug(f"Trigger {trigger_type} already registered, ignoring {path}")
                continue
            factory: TriggerFactory = load_object(path)
            self.triggers.register(trigger_type, factory(self.scheduler))

    async def before_start(self) -> None:
        """Turn on enabled workflows and pick up executions left CREATED."""
        await self.lifecycle.before_start()
        if self.settings.recover_on_start:
            self.scheduler.schedule_dispatch()

    async def before_stop(self, timeout: Optional[float] = 30.0) -> None:
        """
        Turn off triggers, then wait for queued events and the running execution.

        Args:
            timeout: Seconds to wait before cancelling (None waits forever)
        """
        await self.lifecycle.before_stop()
        try:
            await asyncio.wait_for(self.scheduler.wait_idle(), timeout)
        except asyncio.TimeoutError:
            logger.warning(f"Scheduler still busy after {timeout}s, cancelling background tasks")
            await self.scheduler.cancel()
        self.lifecycle.detach()
        self._loaded = False


__all__ = ["WorkflowPlugin", "TriggerFactory"]
