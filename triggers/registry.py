# ============================================================================
# TRIGGER REGISTRY
# ============================================================================
# STATUS: Core - Trigger registration and lookup
# PURPOSE: Register and discover trigger implementations by type
# ============================================================================
"""
Trigger Registry

A trigger decides when a workflow fires. Each implementation is
registered under the string discriminator stored in Workflow.type.

Design:
- Triggers satisfy the Trigger protocol (on/off), no base class required
- One registry instance per plugin, so test instances do not share state
- Fail-fast on duplicate registration

A trigger's on() starts listening according to workflow.config and calls
WorkflowScheduler.trigger(workflow, context, options) whenever it fires.
Both on() and off() must be idempotent: the lifecycle manager may toggle
the same workflow from a save hook and from the startup scan.
"""

import logging
from typing import Dict, List, Optional, Protocol, runtime_checkable

from core.models import Workflow

logger = logging.getLogger(__name__)


@runtime_checkable
class Trigger(Protocol):
    """Capability set every trigger implementation provides."""

    def on(self, workflow: Workflow) -> None:
        """Begin listening for workflow according to workflow.config."""
        ...

    def off(self, workflow: Workflow) -> None:
        """Stop listening; no-op if not listening."""
        ...


# ============================================================================
# EXCEPTIONS
# ============================================================================

class TriggerError(Exception):
    """Base exception for trigger registry errors."""
    pass


class TriggerNotFoundError(TriggerError):
    """Raised when no trigger is registered for a type."""
    def __init__(self, trigger_type: str):
        self.trigger_type = trigger_type
        super().__init__(f"Trigger not found: {trigger_type}")


class DuplicateTriggerError(TriggerError):
    """Raised when a trigger type is already registered."""
    def __init__(self, trigger_type: str):
        self.trigger_type = trigger_type
        super().__init__(f"Trigger already registered: {trigger_type}")


# ============================================================================
# REGISTRY
# ============================================================================

class TriggerRegistry:
    """Trigger implementations keyed by workflow type."""

    def __init__(self):
        self._triggers: Dict[str, Trigger] = {}

    def register(self, trigger_type: str, trigger: Trigger) -> None:
        """
        Register a trigger implementation.

        Raises:
            DuplicateTriggerError if the type is taken
            TypeError if trigger lacks on/off
        """
        if trigger_type in self._triggers:
            raise DuplicateTriggerError(trigger_type)
        if not isinstance(trigger, Trigger):
            raise TypeError(f"Trigger for {trigger_type} must implement on() and off()")

        self._triggers[trigger_type] = trigger
        logger.debug(f"Registered trigger: {trigger_type} ({type(trigger).__name__})")

    def unregister(self, trigger_type: str) -> Optional[Trigger]:
        return self._triggers.pop(trigger_type, None)

    def get(self, trigger_type: str) -> Optional[Trigger]:
        return self._triggers.get(trigger_type)

    def get_or_raise(self, trigger_type: str) -> Trigger:
        trigger = self._triggers.get(trigger_type)
        if trigger is None:
            raise TriggerNotFoundError(trigger_type)
        return trigger

    def types(self) -> List[str]:
        return sorted(self._triggers)

    def clear(self) -> None:
        """Primarily for testing."""
        self._triggers.clear()

    def __contains__(self, trigger_type: str) -> bool:
        return trigger_type in self._triggers

    def __len__(self) -> int:
        return len(self._triggers)


__all__ = [
    "Trigger",
    "TriggerRegistry",
    "TriggerError",
    "TriggerNotFoundError",
    "DuplicateTriggerError",
]
