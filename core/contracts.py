# ============================================================================
# BASE CONTRACTS & ENUMS
# ============================================================================
# STATUS: Foundation - Core enums shared by scheduler, storage and API
# PURPOSE: Define execution and job status enums
# EXPORTS: ExecutionStatus, JobStatus
# DEPENDENCIES: enum
# ============================================================================
"""
Base contracts for the workflow scheduler.

Status values cross three boundaries:
- SQL (PostgreSQL VARCHAR columns)
- HTTP (API payloads)
- Python (scheduler and processor)
"""

from enum import Enum


class ExecutionStatus(str, Enum):
    """
    Execution lifecycle states.

    The scheduler owns CREATED -> STARTED. Every other transition is
    written by the processor.

    State transitions:
        CREATED -> STARTED -> RESOLVED
                           -> FAILED / ERROR / ABORTED / CANCELED / REJECTED
    """
    CREATED = "created"          # Row exists, not yet dispatched
    STARTED = "started"          # Dispatched at least once
    RESOLVED = "resolved"        # Completed successfully
    FAILED = "failed"            # An instruction failed
    ERROR = "error"              # Unhandled exception in the processor
    ABORTED = "aborted"
    CANCELED = "canceled"
    REJECTED = "rejected"

    def is_terminal(self) -> bool:
        """Check if this is a terminal state (no further transitions)."""
        return self not in (ExecutionStatus.CREATED, ExecutionStatus.STARTED)


class JobStatus(str, Enum):
    """
    Job (suspended instruction) states.

    PENDING jobs are waiting for an external event and are handed back
    to the scheduler through resume().
    """
    PENDING = "pending"
    RESOLVED = "resolved"
    FAILED = "failed"
    ERROR = "error"
    ABORTED = "aborted"
    CANCELED = "canceled"
    REJECTED = "rejected"

    def is_terminal(self) -> bool:
        return self != JobStatus.PENDING


__all__ = ["ExecutionStatus", "JobStatus"]
