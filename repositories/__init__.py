# ============================================================================
# REPOSITORIES MODULE
# ============================================================================
# STATUS: Core - Database access layer
# PURPOSE: CRUD operations for workflows, executions and jobs
# ============================================================================
"""
Repositories Module

Provides database access for scheduler entities.
Uses psycopg3 async with connection pooling.

Usage:
    from repositories import WorkflowRepository, get_pool

    pool = await get_pool()
    workflow_repo = WorkflowRepository(pool)
    workflow = await workflow_repo.get(workflow_id)
"""

from .database import get_pool, init_pool, close_pool
from .workflow_repo import WorkflowRepository
from .execution_repo import ExecutionRepository
from .job_repo import JobRepository
from .schema import ensure_schema

__all__ = [
    "get_pool",
    "init_pool",
    "close_pool",
    "WorkflowRepository",
    "ExecutionRepository",
    "JobRepository",
    "ensure_schema",
]
