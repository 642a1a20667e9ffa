# ============================================================================
# WORKFLOW SCHEDULER - MAIN APPLICATION
# ============================================================================
# STATUS: Core - FastAPI application entry point
# PURPOSE: Host process for the scheduler plugin and its HTTP API
# ============================================================================
"""
Workflow Scheduler Main Application

FastAPI application that:
1. Opens the database pool and loads the scheduler plugin
2. Turns on triggers of enabled workflows and recovers leftover executions
3. Provides HTTP API for workflows, executions and job resumption

The processor factory and trigger factories are resolved from
PROCESSOR_FACTORY and TRIGGERS (see core/config/defaults.py).

Usage:
    uvicorn main:app --host 0.0.0.0 --port 8000
"""

import os
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.responses import JSONResponse

from __version__ import __version__, BUILD_DATE
from core.config import get_defaults
from repositories.database import init_pool, close_pool
from orchestrator import WorkflowPlugin
from api.routes import router, set_services

# Configure logging using our structured logging system
from core.logging import configure_logging, get_logger

_defaults = get_defaults()
configure_logging(
    level=_defaults.log_level,
    json_output=_defaults.log_format.lower() == "json",
)
logger = get_logger(__name__)

# Global instances
_plugin: Optional[WorkflowPlugin] = None
_ready = False


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.

    Initializes the plugin on startup, drains it on shutdown.
    """
    global _plugin, _ready

    logger.info(f"Starting Workflow Scheduler v{__version__} (Build {BUILD_DATE})")

    # Initialize database pool
    pool = await init_pool(
        min_size=_defaults.database.min_size,
        max_size=_defaults.database.max_size,
    )
    logger.info("Database pool initialized")

    _plugin = WorkflowPlugin(pool)
    await _plugin.load()

    # Set services for API routes
    set_services(
        workflow_service=_plugin.workflow_service,
        scheduler=_plugin.scheduler,
        triggers=_plugin.triggers,
        execution_repo=_plugin.execution_repo,
        job_repo=_plugin.job_repo,
    )

    await _plugin.before_start()
    _ready = True
    logger.info("Scheduler started")

    yield

    # Shutdown
    logger.info("Shutting down Workflow Scheduler...")
    _ready = False
    await _plugin.before_stop()
    await close_pool()
    _plugin = None
    logger.info("Workflow Scheduler stopped")


# Create FastAPI app
app = FastAPI(
    title="Workflow Scheduler",
    description="Single-process workflow execution scheduler",
    version=__version__,
    lifespan=lifespan,
)

# Include API routes
app.include_router(router, prefix="/api/v1")


# Root endpoint
@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "service": "Workflow Scheduler",
        "version": __version__,
        "build_date": BUILD_DATE,
        "status": "running",
        "docs": "/docs",
    }


@app.get("/livez", tags=["Health"])
async def livez():
    """Process alive."""
    return {"status": "ok"}


@app.get("/readyz", tags=["Health"])
async def readyz():
    """Plugin loaded and triggers started."""
    if not _ready or _plugin is None:
        return JSONResponse(status_code=503, content={"status": "starting"})
    return {"status": "ready", "scheduler": _plugin.scheduler.status()}


# ============================================================================
# MAIN ENTRY POINT
# ============================================================================

if __name__ == "__main__":
    import uvicorn

    host = os.environ.get("HOST", "0.0.0.0")
    port = int(os.environ.get("PORT", "8000"))

    uvicorn.run(
        "main:app",
        host=host,
        port=port,
        reload=os.environ.get("RELOAD", "false").lower() == "true",
    )
