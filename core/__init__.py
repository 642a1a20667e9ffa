# ============================================================================
# CORE MODULE
# ============================================================================
# STATUS: Core module initialization
# PURPOSE: Export core contracts and models
# ============================================================================

from core.contracts import ExecutionStatus, JobStatus
from core.models import Execution, Job, Workflow

__all__ = [
    # Enums
    "ExecutionStatus",
    "JobStatus",
    # Models
    "Workflow",
    "Execution",
    "Job",
]
