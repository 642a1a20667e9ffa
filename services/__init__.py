# ============================================================================
# SERVICES MODULE
# ============================================================================
# STATUS: Core - Business logic layer
# PURPOSE: Workflow persistence service
# ============================================================================
"""
Services Module

Business logic between the HTTP/scheduler layers and repositories.

Usage:
    from services import WorkflowService

    workflow_service = WorkflowService(pool)
    workflow = await workflow_service.save(Workflow(key="k1", type="manual"))
"""

from .workflow_service import WorkflowService, WorkflowNotFoundError, TransactionScope

__all__ = [
    "WorkflowService",
    "WorkflowNotFoundError",
    "TransactionScope",
]
