# ============================================================================
# MODELS MODULE
# ============================================================================
# STATUS: Model exports
# PURPOSE: Central export point for all Pydantic models
# ============================================================================
"""
Models Module - Central Export Point

Pydantic models for workflows, executions and jobs.
Each model names its table via a __sql_table__ ClassVar.
"""

from core.models.workflow import Workflow
from core.models.execution import Execution
from core.models.job import Job

__all__ = [
    "Workflow",
    "Execution",
    "Job",
]
