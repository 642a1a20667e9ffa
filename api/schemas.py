# ============================================================================
# API SCHEMAS
# ============================================================================
# STATUS: Core - Request/Response schemas
# PURPOSE: Pydantic models for API validation
# ============================================================================
"""
API Schemas

Request and response models for the API.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator

from core.contracts import ExecutionStatus, JobStatus


# ============================================================================
# REQUEST SCHEMAS
# ============================================================================

class WorkflowCreate(BaseModel):
    """Request to create a workflow version."""
    key: Optional[str] = Field(
        None,
        max_length=64,
        description="Key of the logical workflow (generated when omitted)"
    )
    title: Optional[str] = Field(None, max_length=255)
    type: str = Field(..., max_length=64, description="Trigger type")
    config: Dict[str, Any] = Field(
        default_factory=dict,
        description="Trigger configuration"
    )
    enabled: bool = False
    use_transaction: bool = False

    model_config = {
        "json_schema_extra": {
            "example": {
                "key": "nightly-report",
                "title": "Nightly report",
                "type": "schedule",
                "config": {"cron": "0 2 * * *"},
                "enabled": True,
            }
        }
    }


class WorkflowUpdate(BaseModel):
    """Partial update of a workflow version. Omitted fields keep their value."""
    title: Optional[str] = Field(None, max_length=255)
    config: Optional[Dict[str, Any]] = None
    enabled: Optional[bool] = None
    use_transaction: Optional[bool] = None

    @field_validator("config", "enabled", "use_transaction")
    @classmethod
    def not_null(cls, v):
        """These columns may be omitted but not cleared."""
        if v is None:
            raise ValueError("may be omitted but not set to null")
        return v


class WorkflowRevisionCreate(BaseModel):
    """Overrides for a new version copied from an existing one."""
    title: Optional[str] = Field(None, max_length=255)
    config: Optional[Dict[str, Any]] = None

    @field_validator("config")
    @classmethod
    def not_null(cls, v):
        if v is None:
            raise ValueError("may be omitted but not set to null")
        return v


class TriggerRequest(BaseModel):
    """Manual firing of a workflow."""
    context: Dict[str, Any] = Field(
        default_factory=dict,
        description="Payload stored on the execution"
    )
    execution_id: Optional[int] = Field(
        None,
        description="Existing execution this firing belongs to (deduplicated)"
    )


class JobResume(BaseModel):
    """Completion of a suspended job."""
    status: JobStatus = Field(JobStatus.RESOLVED, description="Status to record on the job")
    result: Any = None


# ============================================================================
# RESPONSE SCHEMAS
# ============================================================================

class WorkflowResponse(BaseModel):
    """Workflow version."""
    id: int
    key: str
    title: Optional[str]
    type: str
    config: Dict[str, Any]
    enabled: bool
    current: Optional[bool]
    executed: int
    all_executed: int
    use_transaction: bool
    created_at: Optional[datetime]
    updated_at: Optional[datetime]

    model_config = {"from_attributes": True}


class WorkflowListResponse(BaseModel):
    """List of workflow versions."""
    workflows: List[WorkflowResponse]
    total: int


class ExecutionResponse(BaseModel):
    """Execution record."""
    id: int
    workflow_id: int
    key: str
    context: Any
    status: ExecutionStatus
    use_transaction: bool
    created_at: Optional[datetime]
    updated_at: Optional[datetime]

    model_config = {"from_attributes": True}


class AcceptedResponse(BaseModel):
    """Work accepted for asynchronous processing."""
    accepted: bool = True
    message: str


class ErrorResponse(BaseModel):
    """Error response."""
    detail: str
