# ============================================================================
# EXECUTION MODEL
# ============================================================================
# STATUS: Core model - One run of a workflow
# PURPOSE: Persisted record created per trigger firing
# EXPORTS: Execution
# DEPENDENCIES: pydantic
# ============================================================================
"""
Execution Model

An Execution is one concrete run of a workflow version, created by a
trigger firing. `use_transaction` is copied from the workflow when the
row is created and never changes afterwards.
"""

from datetime import datetime
from typing import Any, ClassVar, Optional

from pydantic import BaseModel, Field

from core.contracts import ExecutionStatus
from core.models.workflow import Workflow


class Execution(BaseModel):
    """
    A workflow run.

    Maps to: executions table

    Lifecycle:
        1. Created with status=CREATED by the trigger funnel
        2. STARTED when the scheduler first dispatches it
        3. Terminal status written by the processor
    """

    __sql_table__: ClassVar[str] = "executions"

    id: Optional[int] = None
    workflow_id: int
    key: str = Field(..., max_length=64)
    context: Any = Field(default=None, description="Trigger payload, arbitrary shape")
    status: ExecutionStatus = Field(default=ExecutionStatus.CREATED)
    use_transaction: bool = False

    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    # Loaded workflow, attached in memory only
    workflow: Optional[Workflow] = Field(default=None, exclude=True, repr=False)


__all__ = ["Execution"]
