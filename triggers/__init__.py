# ============================================================================
# TRIGGERS MODULE
# ============================================================================
# STATUS: Core - Trigger capability and registry
# PURPOSE: Look up the trigger implementation for a workflow type
# ============================================================================
"""
Triggers Module

Concrete triggers (timers, record changes, webhooks) live with the host
application and are registered per type:

    from triggers import TriggerRegistry

    registry = TriggerRegistry()
    registry.register("schedule", ScheduleTrigger(scheduler))
"""

from .registry import (
    Trigger,
    TriggerRegistry,
    TriggerError,
    TriggerNotFoundError,
    DuplicateTriggerError,
)

__all__ = [
    "Trigger",
    "TriggerRegistry",
    "TriggerError",
    "TriggerNotFoundError",
    "DuplicateTriggerError",
]
