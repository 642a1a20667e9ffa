# ============================================================================
# API MODULE
# ============================================================================
# STATUS: Core - FastAPI routes
# PURPOSE: HTTP API for workflows, executions and job resumption
# ============================================================================
"""
API Module

FastAPI routes for the workflow scheduler.
"""

from .routes import router, set_services
from .schemas import (
    WorkflowCreate,
    WorkflowUpdate,
    WorkflowResponse,
    ExecutionResponse,
    JobResume,
)

__all__ = [
    "router",
    "set_services",
    "WorkflowCreate",
    "WorkflowUpdate",
    "WorkflowResponse",
    "ExecutionResponse",
    "JobResume",
]
