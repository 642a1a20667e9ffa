# ============================================================================
# PROCESSOR CONTRACT
# ============================================================================
# STATUS: Core - Boundary to the instruction engine
# PURPOSE: Define how the scheduler starts and resumes an execution
# ============================================================================
"""
Processor Contract

The processor interprets a workflow's instructions for one execution.
It is supplied by the host; the scheduler only knows this contract:

    factory(execution, scheduler) -> processor
    await processor.start()       run a fresh execution
    await processor.resume(job)   re-enter at a suspended job

Either call returns once the execution suspends (waiting on a Job) or
reaches a terminal status. The processor persists those statuses itself.
It receives the scheduler so it can call scheduler.resume() and
scheduler.trigger() for delayed steps and sub-workflows.
"""

import importlib
from typing import TYPE_CHECKING, Any, Callable, Protocol, runtime_checkable

from core.models import Execution, Job

if TYPE_CHECKING:
    from orchestrator.scheduler import WorkflowScheduler


@runtime_checkable
class Processor(Protocol):
    """Capability set of an instruction processor."""

    async def start(self) -> None:
        ...

    async def resume(self, job: Job) -> None:
        ...


ProcessorFactory = Callable[[Execution, "WorkflowScheduler"], Processor]


def load_object(path: str) -> Any:
    """
    Resolve a "package.module:attribute" path.

    Raises:
        ValueError if the path is malformed
        ImportError / AttributeError if it does not resolve
    """
    module_name, sep, attribute = path.partition(":")
    if not sep or not module_name or not attribute:
        raise ValueError(f"Expected 'module:attribute', got {path!r}")
    module = importlib.import_module(module_name)
    target = module
    for part in attribute.split("."):
        target = getattr(target, part)
    return target


__all__ = ["Processor", "ProcessorFactory", "load_object"]
