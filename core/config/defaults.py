# ============================================================================
# CONFIGURATION DEFAULTS
# ============================================================================
# STATUS: Core - Default configuration values
# PURPOSE: Centralized defaults for storage, scheduler and host wiring
# ============================================================================
"""
Configuration Defaults

Provides defaults for the database pool, the scheduler and the host.
These can be overridden via environment variables.

Design:
- Immutable dataclasses for defaults
- Environment variable overrides
- Type-safe access
"""

import os
from dataclasses import dataclass, field
from typing import Dict, Optional


def _env_bool(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).lower() in ("1", "true", "yes")


@dataclass(frozen=True)
class DatabaseDefaults:
    """
    Defaults for the PostgreSQL connection pool.
    """
    min_size: int = 2
    max_size: int = 10
    schema: str = "workflow"
    auto_bootstrap_schema: bool = False

    @classmethod
    def from_env(cls) -> "DatabaseDefaults":
        """Create from environment variables."""
        return cls(
            min_size=int(os.getenv("DB_POOL_MIN", "2")),
            max_size=int(os.getenv("DB_POOL_MAX", "10")),
            schema=os.getenv("DB_SCHEMA", "workflow"),
            auto_bootstrap_schema=_env_bool("AUTO_BOOTSTRAP_SCHEMA"),
        )


@dataclass(frozen=True)
class SchedulerDefaults:
    """
    Defaults for scheduler wiring.

    processor_factory and triggers are dotted "module:attr" paths resolved
    at plugin load time.
    """
    processor_factory: Optional[str] = None
    # trigger type -> "module:factory"
    triggers: Dict[str, str] = field(default_factory=dict)
    recover_on_start: bool = True

    @classmethod
    def from_env(cls) -> "SchedulerDefaults":
        """
        Create from environment variables.

        TRIGGERS format: "collection=app.triggers:CollectionTrigger,schedule=app.triggers:ScheduleTrigger"
        """
        triggers: Dict[str, str] = {}
        for item in os.getenv("TRIGGERS", "").split(","):
            item = item.strip()
            if not item:
                continue
            if "=" not in item:
                raise ValueError(f"Invalid TRIGGERS entry (expected type=module:attr): {item}")
            trigger_type, path = item.split("=", 1)
            triggers[trigger_type.strip()] = path.strip()

        return cls(
            processor_factory=os.getenv("PROCESSOR_FACTORY") or None,
            triggers=triggers,
            recover_on_start=_env_bool("RECOVER_ON_START", "true"),
        )


@dataclass(frozen=True)
class Defaults:
    """Aggregate defaults."""
    database: DatabaseDefaults = field(default_factory=DatabaseDefaults)
    scheduler: SchedulerDefaults = field(default_factory=SchedulerDefaults)
    log_level: str = "INFO"
    log_format: str = ""

    @classmethod
    def from_env(cls) -> "Defaults":
        return cls(
            database=DatabaseDefaults.from_env(),
            scheduler=SchedulerDefaults.from_env(),
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            log_format=os.getenv("LOG_FORMAT", ""),
        )


_defaults: Optional[Defaults] = None


def get_defaults() -> Defaults:
    """Get global defaults instance."""
    global _defaults
    if _defaults is None:
        _defaults = Defaults.from_env()
    return _defaults


def reset_defaults() -> None:
    """Reset defaults (for testing)."""
    global _defaults
    _defaults = None


# ============================================================================
# EXPORTS
# ============================================================================

__all__ = [
    "DatabaseDefaults",
    "SchedulerDefaults",
    "Defaults",
    "get_defaults",
    "reset_defaults",
]
