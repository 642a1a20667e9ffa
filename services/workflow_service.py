# ============================================================================
# WORKFLOW SERVICE
# ============================================================================
# STATUS: Core - Workflow persistence with hooks
# PURPOSE: Save/destroy workflow versions and fire persistence hooks
# ============================================================================
"""
Workflow Service

Owns every write to the workflows table so it can decide which hooks a
write fires:

    save(hooks=True)     beforeSave (in transaction) -> write -> commit
                         -> afterSave -> snapshot refresh -> changed
    save(hooks=False)    write -> commit -> snapshot refresh -> changed
    update(hooks=False)  write named columns -> commit -> partial snapshot
                         refresh -> changed
    update_all_executed  one UPDATE for the whole key -> commit
                         -> changed per row
    destroy              delete -> commit -> afterDestroy -> changed

Writes that are part of a larger unit of work pass the caller's
TransactionScope; their after-commit notifications are deferred until
that outer transaction commits.
"""

import inspect
import logging
from contextlib import asynccontextmanager
from functools import partial
from typing import Any, Awaitable, Callable, Dict, List, Optional, Union

from psycopg import AsyncConnection
from psycopg_pool import AsyncConnectionPool

from core.hooks import (
    HookBus,
    WORKFLOW_AFTER_DESTROY,
    WORKFLOW_AFTER_SAVE,
    WORKFLOW_BEFORE_SAVE,
    WORKFLOW_CHANGED,
)
from core.models import Workflow
from repositories import WorkflowRepository

logger = logging.getLogger(__name__)

AfterCommit = Callable[[], Union[None, Awaitable[None]]]


class WorkflowNotFoundError(KeyError):
    """Raised when a workflow id does not exist."""
    def __init__(self, workflow_id: int):
        self.workflow_id = workflow_id
        super().__init__(f"Workflow not found: {workflow_id}")


class TransactionScope:
    """
    An open transaction plus callbacks to run once it commits.
    """

    def __init__(self, conn: AsyncConnection):
        self.conn = conn
        self._after_commit: List[AfterCommit] = []

    def after_commit(self, callback: AfterCommit) -> None:
        self._after_commit.append(callback)

    async def run_after_commit(self) -> None:
        callbacks, self._after_commit = self._after_commit, []
        for callback in callbacks:
            result = callback()
            if inspect.isawaitable(result):
                await result


class WorkflowService:
    """Service for workflow persistence."""

    def __init__(
        self,
        pool: AsyncConnectionPool,
        workflow_repo: Optional[WorkflowRepository] = None,
        hooks: Optional[HookBus] = None,
    ):
        """
        Initialize workflow service.

        Args:
            pool: Database connection pool
            workflow_repo: Repository override (defaults to one on pool)
            hooks: Hook bus shared with listeners (defaults to a new bus)
        """
        self.pool = pool
        self.workflow_repo = workflow_repo or WorkflowRepository(pool)
        self.hooks = hooks or HookBus()

    # =========================================================================
    # TRANSACTIONS
    # =========================================================================

    @asynccontextmanager
    async def transaction(self, scope: Optional[TransactionScope] = None):
        """
        Open a transaction, or join the given one.

        After-commit callbacks of a joined scope run when its owner commits.
        """
        if scope is not None:
            yield scope
            return

        async with self.pool.connection() as conn:
            async with conn.transaction():
                tx = TransactionScope(conn)
                yield tx
        await tx.run_after_commit()

    # =========================================================================
    # READS
    # =========================================================================

    async def get(self, workflow_id: int, scope: Optional[TransactionScope] = None) -> Optional[Workflow]:
        return await self.workflow_repo.get(workflow_id, conn=scope.conn if scope else None)

    async def get_or_raise(self, workflow_id: int) -> Workflow:
        workflow = await self.get(workflow_id)
        if workflow is None:
            raise WorkflowNotFoundError(workflow_id)
        return workflow

    async def list(
        self,
        key: Optional[str] = None,
        enabled: Optional[bool] = None,
        limit: int = 100,
    ) -> List[Workflow]:
        return await self.workflow_repo.list(key=key, enabled=enabled, limit=limit)

    async def list_enabled(self) -> List[Workflow]:
        return await self.workflow_repo.list_enabled()

    # =========================================================================
    # WRITES
    # =========================================================================

    async def save(
        self,
        workflow: Workflow,
        scope: Optional[TransactionScope] = None,
        hooks: bool = True,
    ) -> Workflow:
        """
        Insert or update a workflow version.

        Args:
            workflow: Workflow to persist (id None means insert)
            scope: Join an open transaction instead of opening one
            hooks: False skips beforeSave/afterSave; changed still fires

        Returns:
            The same workflow instance with id/timestamps populated
        """
        async with self.transaction(scope) as tx:
            if hooks:
                await self.hooks.emit(WORKFLOW_BEFORE_SAVE, workflow, tx)

            if workflow.id is None:
                await self.workflow_repo.create(workflow, conn=tx.conn)
            else:
                await self.workflow_repo.update(workflow, conn=tx.conn)

            tx.after_commit(partial(self._after_save, workflow, hooks))

        return workflow

    async def update(
        self,
        workflow: Workflow,
        values: Dict[str, Any],
        scope: Optional[TransactionScope] = None,
        hooks: bool = True,
    ) -> Workflow:
        """
        Apply field values, then persist them.

        With hooks the whole row is saved through save(). Without hooks only
        the given columns are written and only their snapshot entries are
        refreshed, so other pending changes on the instance stay pending.
        """
        for name, value in values.items():
            setattr(workflow, name, value)
        if hooks or workflow.id is None:
            return await self.save(workflow, scope=scope, hooks=hooks)

        fields = list(values)
        async with self.transaction(scope) as tx:
            await self.workflow_repo.update_fields(workflow, fields, conn=tx.conn)
            tx.after_commit(partial(self._after_partial_update, workflow, fields))
        return workflow

    async def update_all_executed(
        self,
        key: str,
        all_executed: int,
        scope: TransactionScope,
    ) -> List[Workflow]:
        """
        Write all_executed on every version of a key.

        Fires changed for each updated row once the scope commits; the
        save hook set is not involved.
        """
        rows = await self.workflow_repo.set_all_executed(key, all_executed, conn=scope.conn)
        for row in rows:
            scope.after_commit(partial(self.hooks.emit, WORKFLOW_CHANGED, row))
        return rows

    async def destroy(self, workflow: Workflow) -> bool:
        """Delete a workflow version; executions and jobs cascade."""
        async with self.transaction() as tx:
            deleted = await self.workflow_repo.delete(workflow.id, conn=tx.conn)
            if deleted:
                tx.after_commit(partial(self._after_destroy, workflow))

        if deleted:
            logger.info(f"Destroyed workflow {workflow.id} (key={workflow.key})")
        return deleted

    async def revision(self, workflow: Workflow, values: Optional[Dict[str, Any]] = None) -> Workflow:
        """
        Create a new, disabled version of the same key.

        Copies type, title, config and use_transaction from the source
        version; values override any of them.
        """
        fields = {
            "key": workflow.key,
            "title": workflow.title,
            "type": workflow.type,
            "config": dict(workflow.config),
            "use_transaction": workflow.use_transaction,
            "enabled": False,
        }
        fields.update(values or {})
        revision = Workflow(**fields)
        await self.save(revision)
        logger.info(f"Created revision {revision.id} of workflow {workflow.id} (key={workflow.key})")
        return revision

    # =========================================================================
    # AFTER COMMIT
    # =========================================================================

    async def _after_save(self, workflow: Workflow, hooks: bool) -> None:
        if hooks:
            await self.hooks.emit(WORKFLOW_AFTER_SAVE, workflow)
        workflow.mark_persisted()
        await self.hooks.emit(WORKFLOW_CHANGED, workflow)

    async def _after_partial_update(self, workflow: Workflow, fields: List[str]) -> None:
        workflow.mark_persisted(fields)
        await self.hooks.emit(WORKFLOW_CHANGED, workflow)

    async def _after_destroy(self, workflow: Workflow) -> None:
        await self.hooks.emit(WORKFLOW_AFTER_DESTROY, workflow)
        await self.hooks.emit(WORKFLOW_CHANGED, workflow)


__all__ = ["WorkflowService", "WorkflowNotFoundError", "TransactionScope"]
