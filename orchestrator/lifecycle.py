# ============================================================================
# WORKFLOW LIFECYCLE MANAGER
# ============================================================================
# STATUS: Core - Persistence hooks and trigger (de)registration
# PURPOSE: Keep one current version per key and triggers in sync with rows
# ============================================================================
"""
Workflow Lifecycle Manager

Listens on the workflow save hook set:

    beforeSave   pick `current`, demote the previously enabled sibling
    afterSave    toggle the workflow's trigger to match `enabled`
    afterDestroy turn the workflow's trigger off

Demotion writes the sibling with hooks suppressed, so this manager never
re-enters itself; observers on the changed channel still see the write.
"""

from typing import Optional

from core.hooks import (
    HookBus,
    WORKFLOW_AFTER_DESTROY,
    WORKFLOW_AFTER_SAVE,
    WORKFLOW_BEFORE_SAVE,
)
from core.logging import ComponentType, get_logger
from core.models import Workflow
from services import TransactionScope, WorkflowService
from triggers import TriggerRegistry

logger = get_logger(__name__, ComponentType.LIFECYCLE)


class WorkflowLifecycleManager:
    """Maintains the current-version invariant and trigger registration."""

    def __init__(self, workflow_service: WorkflowService, triggers: TriggerRegistry):
        self.workflow_service = workflow_service
        self.triggers = triggers
        self._attached: Optional[HookBus] = None

    @property
    def workflow_repo(self):
        return self.workflow_service.workflow_repo

    def attach(self, hooks: Optional[HookBus] = None) -> None:
        """Register the save hook listeners (idempotent)."""
        hooks = hooks or self.workflow_service.hooks
        hooks.on(WORKFLOW_BEFORE_SAVE, self.before_save)
        hooks.on(WORKFLOW_AFTER_SAVE, self.after_save)
        hooks.on(WORKFLOW_AFTER_DESTROY, self.after_destroy)
        self._attached = hooks

    def detach(self) -> None:
        if self._attached is None:
            return
        self._attached.off(WORKFLOW_BEFORE_SAVE, self.before_save)
        self._attached.off(WORKFLOW_AFTER_SAVE, self.after_save)
        self._attached.off(WORKFLOW_AFTER_DESTROY, self.after_destroy)
        self._attached = None

    # =========================================================================
    # HOOKS
    # =========================================================================

    async def before_save(self, workflow: Workflow, scope: TransactionScope) -> None:
        """
        Decide `current` and demote the sibling an enable replaces.

        Runs inside the saving transaction: if the demotion fails the save
        rolls back with it.
        """
        if workflow.enabled:
            workflow.current = True
        elif not workflow.current:
            siblings = await self.workflow_repo.count_by_key(workflow.key, conn=scope.conn)
            if not siblings:
                # First version of a key is current even while disabled
                workflow.current = True

        if not (workflow.changed("enabled") and workflow.enabled):
            return

        previous = await self.workflow_repo.find_current_sibling(
            workflow.key, workflow.id, conn=scope.conn
        )
        if previous is None:
            return

        await self.workflow_service.update(
            previous,
            {"enabled": False, "current": None},
            scope=scope,
            hooks=False,
        )
        logger.info(
            f"Demoted workflow {previous.id} (key={previous.key}) in favour of "
            f"{workflow.id if workflow.id is not None else 'new version'}"
        )
        self.toggle(previous, enable=False)

    async def after_save(self, workflow: Workflow) -> None:
        self.toggle(workflow)

    async def after_destroy(self, workflow: Workflow) -> None:
        self.toggle(workflow, enable=False)

    # =========================================================================
    # TRIGGERS
    # =========================================================================

    def toggle(self, workflow: Workflow, enable: Optional[bool] = None) -> None:
        """
        Register or unregister the workflow's trigger.

        Args:
            workflow: Workflow whose trigger to switch
            enable: Override for workflow.enabled
        """
        trigger = self.triggers.get(workflow.type)
        if trigger is None:
            logger.warning(
                f"No trigger registered for type {workflow.type!r} "
                f"(workflow {workflow.id}), skipping toggle"
            )
            return

        enabled = workflow.enabled if enable is None else enable
        if enabled:
            # Tear down a listener registered under the old config first
            if "config" in workflow.previous():
                trigger.off(workflow.with_previous())
            trigger.on(workflow)
            logger.debug(f"Trigger on for workflow {workflow.id} ({workflow.type})")
        else:
            trigger.off(workflow)
            logger.debug(f"Trigger off for workflow {workflow.id} ({workflow.type})")

    async def before_start(self) -> int:
        """Turn on the triggers of every enabled workflow."""
        workflows = await self.workflow_service.list_enabled()
        for workflow in workflows:
            self.toggle(workflow)
        logger.info(f"Started triggers for {len(workflows)} enabled workflows")
        return len(workflows)

    async def before_stop(self) -> int:
        """Turn off the triggers of every enabled workflow."""
        workflows = await self.workflow_service.list_enabled()
        for workflow in workflows:
            self.toggle(workflow, enable=False)
        logger.info(f"Stopped triggers for {len(workflows)} enabled workflows")
        return len(workflows)


__all__ = ["WorkflowLifecycleManager"]
