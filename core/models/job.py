# ============================================================================
# JOB MODEL
# ============================================================================
# STATUS: Core model - Suspended instruction checkpoint
# PURPOSE: Resumable unit of work inside an execution
# EXPORTS: Job
# DEPENDENCIES: pydantic
# ============================================================================
"""
Job Model

A Job is created by the processor when an instruction suspends while
waiting for an external event. The completion handler for that event
hands the job to WorkflowScheduler.resume(), which re-enters the
execution at this job.
"""

from datetime import datetime
from typing import Any, ClassVar, Optional

from pydantic import BaseModel, Field

from core.contracts import JobStatus
from core.models.execution import Execution


class Job(BaseModel):
    """
    A suspended instruction.

    Maps to: jobs table
    """

    __sql_table__: ClassVar[str] = "jobs"

    id: Optional[int] = None
    execution_id: int
    node_id: Optional[str] = Field(
        default=None,
        max_length=64,
        description="Instruction identifier inside the workflow"
    )
    status: JobStatus = Field(default=JobStatus.PENDING)
    result: Any = None

    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    # Resolved lazily by the scheduler
    execution: Optional[Execution] = Field(default=None, exclude=True, repr=False)


__all__ = ["Job"]
