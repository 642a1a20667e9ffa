# ============================================================================
# WORKFLOW REPOSITORY
# ============================================================================
# STATUS: Core - Workflow CRUD operations
# PURPOSE: Database access for workflows table
# ============================================================================
"""
Workflow Repository

CRUD operations for workflow versions. Hooks are not this layer's
concern: WorkflowService decides which notifications a write fires.

Every method accepts an optional connection so it can run inside a
caller's transaction.
"""

import logging
from typing import Any, Dict, List, Optional

from psycopg import AsyncConnection, sql
from psycopg.rows import dict_row
from psycopg.types.json import Json
from psycopg_pool import AsyncConnectionPool

from core.models import Workflow
from .database import TABLE_WORKFLOWS, borrow

logger = logging.getLogger(__name__)

# Columns written by update()
_MUTABLE_COLUMNS = [
    "key", "title", "type", "config", "enabled", "current",
    "executed", "all_executed", "use_transaction",
]


class WorkflowRepository:
    """Repository for Workflow entities."""

    def __init__(self, pool: AsyncConnectionPool):
        self.pool = pool

    async def create(self, workflow: Workflow, conn: Optional[AsyncConnection] = None) -> Workflow:
        """
        Insert a new workflow version.

        Populates id, created_at and updated_at on the passed instance.
        """
        async with borrow(self.pool, conn) as c:
            cur = c.cursor(row_factory=dict_row)
            await cur.execute(
                sql.SQL("""
                INSERT INTO {} (
                    key, title, type, config, enabled, current,
                    executed, all_executed, use_transaction
                ) VALUES (
                    %(key)s, %(title)s, %(type)s, %(config)s, %(enabled)s,
                    %(current)s, %(executed)s, %(all_executed)s,
                    %(use_transaction)s
                )
                RETURNING id, created_at, updated_at
                """).format(TABLE_WORKFLOWS),
                self._params(workflow),
            )
            row = await cur.fetchone()
            workflow.id = row["id"]
            workflow.created_at = row["created_at"]
            workflow.updated_at = row["updated_at"]
            logger.info(f"Created workflow {workflow.id} (key={workflow.key}, type={workflow.type})")
            return workflow

    async def get(self, workflow_id: int, conn: Optional[AsyncConnection] = None) -> Optional[Workflow]:
        """Get a workflow by ID."""
        async with borrow(self.pool, conn) as c:
            cur = c.cursor(row_factory=dict_row)
            await cur.execute(
                sql.SQL("SELECT * FROM {} WHERE id = %s").format(TABLE_WORKFLOWS),
                (workflow_id,),
            )
            row = await cur.fetchone()
            return self._row_to_workflow(row) if row else None

    async def update(self, workflow: Workflow, conn: Optional[AsyncConnection] = None) -> bool:
        """
        Write all mutable columns of an existing workflow.

        Returns:
            True if a row was updated
        """
        return await self.update_fields(workflow, _MUTABLE_COLUMNS, conn=conn)

    async def update_fields(
        self,
        workflow: Workflow,
        fields: List[str],
        conn: Optional[AsyncConnection] = None,
    ) -> bool:
        """
        Write only the named columns of an existing workflow.

        Columns not named keep their stored value, so a stale in-memory
        copy cannot overwrite concurrent changes to them.

        Returns:
            True if a row was updated
        """
        unknown = set(fields) - set(_MUTABLE_COLUMNS)
        if unknown:
            raise ValueError(f"Not updatable: {sorted(unknown)}")
        assignments = sql.SQL(", ").join(
            sql.SQL("{} = {}").format(sql.Identifier(column), sql.Placeholder(column))
            for column in fields
        )
        async with borrow(self.pool, conn) as c:
            cur = c.cursor(row_factory=dict_row)
            await cur.execute(
                sql.SQL("""
                UPDATE {} SET {}, updated_at = now()
                WHERE id = %(id)s
                RETURNING updated_at
                """).format(TABLE_WORKFLOWS, assignments),
                {**{k: v for k, v in self._params(workflow).items() if k in fields}, "id": workflow.id},
            )
            row = await cur.fetchone()
            if row is None:
                logger.warning(f"Update of workflow {workflow.id} matched no rows")
                return False
            workflow.updated_at = row["updated_at"]
            return True

    async def delete(self, workflow_id: int, conn: Optional[AsyncConnection] = None) -> bool:
        """Delete a workflow; executions and jobs cascade."""
        async with borrow(self.pool, conn) as c:
            result = await c.execute(
                sql.SQL("DELETE FROM {} WHERE id = %s").format(TABLE_WORKFLOWS),
                (workflow_id,),
            )
            return result.rowcount > 0

    async def list(
        self,
        key: Optional[str] = None,
        enabled: Optional[bool] = None,
        limit: int = 100,
        conn: Optional[AsyncConnection] = None,
    ) -> List[Workflow]:
        """List workflows, optionally filtered by key and enabled flag."""
        conditions = []
        params: List[Any] = []
        if key is not None:
            conditions.append(sql.SQL("key = %s"))
            params.append(key)
        if enabled is not None:
            conditions.append(sql.SQL("enabled = %s"))
            params.append(enabled)
        where = (
            sql.SQL("WHERE ") + sql.SQL(" AND ").join(conditions)
            if conditions else sql.SQL("")
        )
        params.append(limit)

        async with borrow(self.pool, conn) as c:
            cur = c.cursor(row_factory=dict_row)
            await cur.execute(
                sql.SQL("SELECT * FROM {} {} ORDER BY id LIMIT %s").format(TABLE_WORKFLOWS, where),
                params,
            )
            rows = await cur.fetchall()
            return [self._row_to_workflow(row) for row in rows]

    async def list_enabled(self, conn: Optional[AsyncConnection] = None) -> List[Workflow]:
        """All enabled workflows, unpaginated."""
        async with borrow(self.pool, conn) as c:
            cur = c.cursor(row_factory=dict_row)
            await cur.execute(
                sql.SQL("SELECT * FROM {} WHERE enabled ORDER BY id").format(TABLE_WORKFLOWS),
            )
            rows = await cur.fetchall()
            return [self._row_to_workflow(row) for row in rows]

    async def count_by_key(self, key: str, conn: Optional[AsyncConnection] = None) -> int:
        """Count versions sharing a key."""
        async with borrow(self.pool, conn) as c:
            result = await c.execute(
                sql.SQL("SELECT count(*) FROM {} WHERE key = %s").format(TABLE_WORKFLOWS),
                (key,),
            )
            row = await result.fetchone()
            return row[0]

    async def find_current_sibling(
        self,
        key: str,
        exclude_id: Optional[int],
        conn: Optional[AsyncConnection] = None,
    ) -> Optional[Workflow]:
        """Find the current version of a key other than exclude_id."""
        async with borrow(self.pool, conn) as c:
            cur = c.cursor(row_factory=dict_row)
            await cur.execute(
                sql.SQL("""
                SELECT * FROM {}
                WHERE key = %s AND current = TRUE AND id IS DISTINCT FROM %s
                LIMIT 1
                """).format(TABLE_WORKFLOWS),
                (key, exclude_id),
            )
            row = await cur.fetchone()
            return self._row_to_workflow(row) if row else None

    async def set_all_executed(
        self,
        key: str,
        all_executed: int,
        conn: Optional[AsyncConnection] = None,
    ) -> List[Workflow]:
        """
        Write all_executed on every version of a key in one statement.

        Returns:
            The updated rows
        """
        async with borrow(self.pool, conn) as c:
            cur = c.cursor(row_factory=dict_row)
            await cur.execute(
                sql.SQL("""
                UPDATE {} SET all_executed = %s, updated_at = now()
                WHERE key = %s
                RETURNING *
                """).format(TABLE_WORKFLOWS),
                (all_executed, key),
            )
            rows = await cur.fetchall()
            return [self._row_to_workflow(row) for row in rows]

    @staticmethod
    def _params(workflow: Workflow) -> Dict[str, Any]:
        return {
            "key": workflow.key,
            "title": workflow.title,
            "type": workflow.type,
            "config": Json(workflow.config or {}),
            "enabled": workflow.enabled,
            "current": workflow.current,
            "executed": workflow.executed,
            "all_executed": workflow.all_executed,
            "use_transaction": workflow.use_transaction,
        }

    @staticmethod
    def _row_to_workflow(row: Dict[str, Any]) -> Workflow:
        """Convert database row to a persisted Workflow."""
        workflow = Workflow(
            id=row["id"],
            key=row["key"],
            title=row.get("title"),
            type=row["type"],
            config=row.get("config") or {},
            enabled=row["enabled"],
            current=row.get("current"),
            executed=row.get("executed", 0),
            all_executed=row.get("all_executed", 0),
            use_transaction=row.get("use_transaction", False),
            created_at=row.get("created_at"),
            updated_at=row.get("updated_at"),
        )
        workflow.mark_persisted()
        return workflow


__all__ = ["WorkflowRepository"]
