# ============================================================================
# CONFIGURATION MODULE
# ============================================================================
# STATUS: Core - Configuration and defaults
# PURPOSE: Centralized configuration management
# ============================================================================
"""
Configuration Module

Provides centralized configuration and defaults for the workflow scheduler.
"""

from core.config.defaults import (
    DatabaseDefaults,
    SchedulerDefaults,
    Defaults,
    get_defaults,
    reset_defaults,
)

__all__ = [
    "DatabaseDefaults",
    "SchedulerDefaults",
    "Defaults",
    "get_defaults",
    "reset_defaults",
]
