# ============================================================================
# JOB REPOSITORY
# ============================================================================
# STATUS: Core - Job CRUD operations
# PURPOSE: Database access for jobs table
# ============================================================================
"""
Job Repository

CRUD operations for suspended-instruction jobs. Jobs are created by the
processor; the scheduler only reads them and the resume endpoint writes
their result.
"""

import logging
from typing import Any, Dict, Optional

from psycopg import AsyncConnection, sql
from psycopg.rows import dict_row
from psycopg.types.json import Json
from psycopg_pool import AsyncConnectionPool

from core.contracts import JobStatus
from core.models import Job
from .database import TABLE_JOBS, borrow

logger = logging.getLogger(__name__)


class JobRepository:
    """Repository for Job entities."""

    def __init__(self, pool: AsyncConnectionPool):
        self.pool = pool

    async def create(self, job: Job, conn: Optional[AsyncConnection] = None) -> Job:
        """Insert a new job; populates id and timestamps."""
        async with borrow(self.pool, conn) as c:
            cur = c.cursor(row_factory=dict_row)
            await cur.execute(
                sql.SQL("""
                INSERT INTO {} (execution_id, node_id, status, result)
                VALUES (%(execution_id)s, %(node_id)s, %(status)s, %(result)s)
                RETURNING id, created_at, updated_at
                """).format(TABLE_JOBS),
                {
                    "execution_id": job.execution_id,
                    "node_id": job.node_id,
                    "status": job.status.value,
                    "result": Json(job.result) if job.result is not None else None,
                },
            )
            row = await cur.fetchone()
            job.id = row["id"]
            job.created_at = row["created_at"]
            job.updated_at = row["updated_at"]
            return job

    async def get(self, job_id: int, conn: Optional[AsyncConnection] = None) -> Optional[Job]:
        """Get a job by ID."""
        async with borrow(self.pool, conn) as c:
            cur = c.cursor(row_factory=dict_row)
            await cur.execute(
                sql.SQL("SELECT * FROM {} WHERE id = %s").format(TABLE_JOBS),
                (job_id,),
            )
            row = await cur.fetchone()
            return self._row_to_job(row) if row else None

    async def update_status(
        self,
        job_id: int,
        status: JobStatus,
        result: Any = None,
        conn: Optional[AsyncConnection] = None,
    ) -> bool:
        """
        Complete a pending job with status and result.

        Only a PENDING job transitions, so a job is consumed at most once.

        Returns:
            True if this call consumed the job
        """
        async with borrow(self.pool, conn) as c:
            outcome = await c.execute(
                sql.SQL("""
                UPDATE {} SET status = %s, result = %s, updated_at = now()
                WHERE id = %s AND status = %s
                """).format(TABLE_JOBS),
                (
                    status.value,
                    Json(result) if result is not None else None,
                    job_id,
                    JobStatus.PENDING.value,
                ),
            )
            return outcome.rowcount > 0

    @staticmethod
    def _row_to_job(row: Dict[str, Any]) -> Job:
        """Convert database row to Job model."""
        return Job(
            id=row["id"],
            execution_id=row["execution_id"],
            node_id=row.get("node_id"),
            status=JobStatus(row["status"]),
            result=row.get("result"),
            created_at=row.get("created_at"),
            updated_at=row.get("updated_at"),
        )


__all__ = ["JobRepository"]
