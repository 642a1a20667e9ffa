# ============================================================================
# WORKFLOW MODEL
# ============================================================================
# STATUS: Core model - Versioned workflow definition row
# PURPOSE: Trigger configuration plus version/current bookkeeping per key
# EXPORTS: Workflow
# DEPENDENCIES: pydantic
# ============================================================================
"""
Workflow Model

A Workflow is one version of a keyed automation definition. All versions
of the same logical workflow share a `key`; at most one of them is
`current` at a time and only the current version may be enabled.

`current` is tri-state on purpose: demoted versions store NULL rather than
FALSE so that the partial unique index `(key) WHERE current` holds.

Rows track which fields changed since they were loaded or last saved, so
persistence hooks can see both the new and the previous trigger config.
"""

from datetime import datetime
from typing import Any, ClassVar, Dict, Iterable, List, Optional

from pydantic import BaseModel, Field, PrivateAttr


class Workflow(BaseModel):
    """
    A workflow version.

    Maps to: workflows table
    """

    __sql_table__: ClassVar[str] = "workflows"
    # Fields whose changes are tracked for hooks
    __tracked_fields__: ClassVar[List[str]] = [
        "key", "title", "type", "config", "enabled", "current",
        "executed", "all_executed", "use_transaction",
    ]

    id: Optional[int] = Field(default=None, description="Serial primary key")
    key: str = Field(..., max_length=64, description="Logical identity shared across versions")
    title: Optional[str] = Field(default=None, max_length=255)
    type: str = Field(..., max_length=64, description="Trigger type discriminator")
    config: Dict[str, Any] = Field(
        default_factory=dict,
        description="Trigger-specific configuration (opaque to the scheduler)"
    )
    enabled: bool = False
    current: Optional[bool] = None

    # Counters
    executed: int = Field(default=0, ge=0, description="Executions of this version")
    all_executed: int = Field(default=0, ge=0, description="Executions across all versions of key")

    use_transaction: bool = False

    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    _snapshot: Optional[Dict[str, Any]] = PrivateAttr(default=None)

    @property
    def is_persisted(self) -> bool:
        return self._snapshot is not None

    def mark_persisted(self, fields: Optional[Iterable[str]] = None) -> None:
        """
        Refresh the snapshot.

        Args:
            fields: Only refresh these fields (after a partial write).
                    Ignored for a workflow that has no snapshot yet.
        """
        if fields is None or self._snapshot is None:
            fields = self.__tracked_fields__
        snapshot = dict(self._snapshot or {})
        for name in fields:
            snapshot[name] = _copy(getattr(self, name))
        self._snapshot = snapshot

    def changed(self, field: Optional[str] = None) -> bool:
        """
        Check whether a field (or any tracked field) differs from the snapshot.

        A workflow that was never persisted reports every field as changed.
        """
        if self._snapshot is None:
            return True
        if field is not None:
            return self._snapshot.get(field) != getattr(self, field)
        return any(
            self._snapshot.get(name) != getattr(self, name)
            for name in self.__tracked_fields__
        )

    def previous(self) -> Dict[str, Any]:
        """Snapshot values of the fields that changed since the snapshot."""
        if self._snapshot is None:
            return {}
        return {
            name: value
            for name, value in self._snapshot.items()
            if value != getattr(self, name)
        }

    def with_previous(self) -> "Workflow":
        """Copy of this workflow with changed fields reverted to their previous values."""
        return self.model_copy(update={name: _copy(value) for name, value in self.previous().items()})


def _copy(value: Any) -> Any:
    if isinstance(value, dict):
        return {k: _copy(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_copy(v) for v in value]
    return value


__all__ = ["Workflow"]
