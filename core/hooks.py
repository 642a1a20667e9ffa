# ============================================================================
# HOOK BUS
# ============================================================================
# STATUS: Core - Persistence notification channels
# PURPOSE: Named listener lists for workflow persistence events
# EXPORTS: HookBus, HookListener, WORKFLOW_* event names
# DEPENDENCIES: asyncio
# ============================================================================
"""
Hook Bus

Listeners are registered per event name and run in registration order.
Both sync and async listeners are supported.

Workflow persistence uses two independent channels:

    save hook set       workflows.beforeSave / afterSave / afterDestroy
                        Fired by WorkflowService.save() and destroy().
                        Suppressed by writes made with hooks=False.

    change channel      workflows.changed
                        Fired after commit for every workflow row write,
                        including hook-suppressed writes and counter
                        fan-out. Observers that only need to know "this
                        row is different now" (caches) listen here.

Usage:
    bus = HookBus()
    bus.on(WORKFLOW_AFTER_SAVE, lambda workflow: ...)
    await bus.emit(WORKFLOW_AFTER_SAVE, workflow)
"""

import inspect
import logging
from typing import Any, Awaitable, Callable, Dict, List, Union

logger = logging.getLogger(__name__)

WORKFLOW_BEFORE_SAVE = "workflows.beforeSave"
WORKFLOW_AFTER_SAVE = "workflows.afterSave"
WORKFLOW_AFTER_DESTROY = "workflows.afterDestroy"
WORKFLOW_CHANGED = "workflows.changed"

HookListener = Callable[..., Union[None, Awaitable[None]]]


class HookBus:
    """Registry of listeners keyed by event name."""

    def __init__(self):
        self._listeners: Dict[str, List[HookListener]] = {}

    def on(self, event: str, listener: HookListener) -> None:
        """Register a listener. Registering the same listener twice is a no-op."""
        listeners = self._listeners.setdefault(event, [])
        if listener in listeners:
            return
        listeners.append(listener)
        logger.debug(f"Registered listener for {event}: {getattr(listener, '__qualname__', listener)}")

    def off(self, event: str, listener: HookListener) -> None:
        """Remove a listener if present."""
        listeners = self._listeners.get(event, [])
        if listener in listeners:
            listeners.remove(listener)

    def listeners(self, event: str) -> List[HookListener]:
        return list(self._listeners.get(event, []))

    async def emit(self, event: str, *args: Any) -> None:
        """
        Run every listener for an event, in order.

        Exceptions propagate to the caller; a failing beforeSave listener
        therefore aborts the save.
        """
        for listener in self.listeners(event):
            result = listener(*args)
            if inspect.isawaitable(result):
                await result

    def clear(self) -> None:
        self._listeners.clear()


__all__ = [
    "HookBus",
    "HookListener",
    "WORKFLOW_BEFORE_SAVE",
    "WORKFLOW_AFTER_SAVE",
    "WORKFLOW_AFTER_DESTROY",
    "WORKFLOW_CHANGED",
]
