# ============================================================================
# ORCHESTRATOR MODULE
# ============================================================================
# STATUS: Core - Scheduling and host wiring
# PURPOSE: Trigger funnel, single-flight dispatch and workflow lifecycle
# ============================================================================
"""
Orchestrator Module

Usage:
    from orchestrator import WorkflowPlugin

    plugin = WorkflowPlugin(pool, processor_factory=MyProcessor)
    await plugin.load()
    await plugin.before_start()
"""

from .processor import Processor, ProcessorFactory, load_object
from .scheduler import WorkflowScheduler, ExecutionNotFoundError
from .lifecycle import WorkflowLifecycleManager
from .plugin import WorkflowPlugin, TriggerFactory

__all__ = [
    "Processor",
    "ProcessorFactory",
    "load_object",
    "WorkflowScheduler",
    "ExecutionNotFoundError",
    "WorkflowLifecycleManager",
    "WorkflowPlugin",
    "TriggerFactory",
]
