# ============================================================================
# EXECUTION REPOSITORY
# ============================================================================
# STATUS: Core - Execution CRUD operations
# PURPOSE: Database access for executions table
# ============================================================================
"""
Execution Repository

CRUD operations for executions, plus the two queries the scheduler
depends on:

- find_oldest_created(): crash recovery and backlog scan, oldest first
- mark_started(): conditional CREATED -> STARTED so an execution is only
  ever taken once
"""

import logging
from typing import Any, Dict, Optional

from psycopg import AsyncConnection, sql
from psycopg.rows import dict_row
from psycopg.types.json import Json
from psycopg_pool import AsyncConnectionPool

from core.contracts import ExecutionStatus
from core.models import Execution
from .database import TABLE_EXECUTIONS, borrow

logger = logging.getLogger(__name__)


class ExecutionRepository:
    """Repository for Execution entities."""

    def __init__(self, pool: AsyncConnectionPool):
        self.pool = pool

    async def create(self, execution: Execution, conn: Optional[AsyncConnection] = None) -> Execution:
        """
        Insert a new execution.

        Populates id, created_at and updated_at on the passed instance.
        """
        async with borrow(self.pool, conn) as c:
            cur = c.cursor(row_factory=dict_row)
            await cur.execute(
                sql.SQL("""
                INSERT INTO {} (workflow_id, key, context, status, use_transaction)
                VALUES (%(workflow_id)s, %(key)s, %(context)s, %(status)s, %(use_transaction)s)
                RETURNING id, created_at, updated_at
                """).format(TABLE_EXECUTIONS),
                {
                    "workflow_id": execution.workflow_id,
                    "key": execution.key,
                    "context": Json(execution.context) if execution.context is not None else None,
                    "status": execution.status.value,
                    "use_transaction": execution.use_transaction,
                },
            )
            row = await cur.fetchone()
            execution.id = row["id"]
            execution.created_at = row["created_at"]
            execution.updated_at = row["updated_at"]
            logger.debug(f"Created execution {execution.id} for workflow {execution.workflow_id}")
            return execution

    async def get(self, execution_id: int, conn: Optional[AsyncConnection] = None) -> Optional[Execution]:
        """Get an execution by ID."""
        async with borrow(self.pool, conn) as c:
            cur = c.cursor(row_factory=dict_row)
            await cur.execute(
                sql.SQL("SELECT * FROM {} WHERE id = %s").format(TABLE_EXECUTIONS),
                (execution_id,),
            )
            row = await cur.fetchone()
            return self._row_to_execution(row) if row else None

    async def count_for_workflow(
        self,
        workflow_id: int,
        execution_id: Optional[int] = None,
        conn: Optional[AsyncConnection] = None,
    ) -> int:
        """
        Count executions of one workflow version.

        Args:
            workflow_id: Workflow version
            execution_id: If given, only count the execution with this id
        """
        query = sql.SQL("SELECT count(*) FROM {} WHERE workflow_id = %s").format(TABLE_EXECUTIONS)
        params: list = [workflow_id]
        if execution_id is not None:
            query = query + sql.SQL(" AND id = %s")
            params.append(execution_id)

        async with borrow(self.pool, conn) as c:
            result = await c.execute(query, params)
            row = await result.fetchone()
            return row[0]

    async def count_by_key(self, key: str, conn: Optional[AsyncConnection] = None) -> int:
        """Count executions across all versions of a workflow key."""
        async with borrow(self.pool, conn) as c:
            result = await c.execute(
                sql.SQL("SELECT count(*) FROM {} WHERE key = %s").format(TABLE_EXECUTIONS),
                (key,),
            )
            row = await result.fetchone()
            return row[0]

    async def find_oldest_created(self, conn: Optional[AsyncConnection] = None) -> Optional[Execution]:
        """Oldest execution still in CREATED status, or None."""
        async with borrow(self.pool, conn) as c:
            cur = c.cursor(row_factory=dict_row)
            await cur.execute(
                sql.SQL("""
                SELECT * FROM {}
                WHERE status = %s
                ORDER BY created_at ASC, id ASC
                LIMIT 1
                """).format(TABLE_EXECUTIONS),
                (ExecutionStatus.CREATED.value,),
            )
            row = await cur.fetchone()
            return self._row_to_execution(row) if row else None

    async def mark_started(self, execution_id: int, conn: Optional[AsyncConnection] = None) -> bool:
        """
        Transition CREATED -> STARTED.

        Returns:
            False if the execution was no longer CREATED
        """
        async with borrow(self.pool, conn) as c:
            result = await c.execute(
                sql.SQL("""
                UPDATE {} SET status = %s, updated_at = now()
                WHERE id = %s AND status = %s
                """).format(TABLE_EXECUTIONS),
                (ExecutionStatus.STARTED.value, execution_id, ExecutionStatus.CREATED.value),
            )
            return result.rowcount > 0

    async def update_status(
        self,
        execution_id: int,
        status: ExecutionStatus,
        conn: Optional[AsyncConnection] = None,
    ) -> bool:
        """Unconditionally set the status of an execution."""
        async with borrow(self.pool, conn) as c:
            result = await c.execute(
                sql.SQL("UPDATE {} SET status = %s, updated_at = now() WHERE id = %s").format(TABLE_EXECUTIONS),
                (status.value, execution_id),
            )
            if result.rowcount == 0:
                logger.warning(f"Status update of execution {execution_id} matched no rows")
                return False
            logger.debug(f"Execution {execution_id} status={status.value}")
            return True

    @staticmethod
    def _row_to_execution(row: Dict[str, Any]) -> Execution:
        """Convert database row to Execution model."""
        return Execution(
            id=row["id"],
            workflow_id=row["workflow_id"],
            key=row["key"],
            context=row.get("context"),
            status=ExecutionStatus(row["status"]),
            use_transaction=row.get("use_transaction", False),
            created_at=row.get("created_at"),
            updated_at=row.get("updated_at"),
        )


__all__ = ["ExecutionRepository"]
