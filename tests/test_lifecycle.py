# ============================================================================
# LIFECYCLE TESTS
# ============================================================================
# STATUS: Tests - Current-version invariant and trigger toggling
# PURPOSE: Verify save/destroy hooks keep one current version per key
# ============================================================================
"""
Lifecycle Tests

Covers:
1. First version of a key is current even while disabled
2. Enabling a new version demotes the previous one (enabled=False, current=None)
3. Trigger on/off follows enabled, config edits re-register
4. Destroy turns the trigger off
5. before_start / before_stop
6. Unregistered trigger types are skipped

Run with:
    pytest tests/test_lifecycle.py -v
"""

import asyncio
import logging

import pytest

from core.hooks import WORKFLOW_CHANGED
from core.models import Workflow


def _current_rows(workflow_repo, key):
    return [row["id"] for row in workflow_repo.rows.values() if row["key"] == key and row["current"]]


# ============================================================================
# BEFORE SAVE
# ============================================================================

class TestCurrentVersion:
    """Tests for before_save()."""

    def test_first_disabled_version_becomes_current(self, lifecycle, workflow_service, workflow_repo):
        workflow = Workflow(key="k1", type="recording", enabled=False)
        asyncio.run(workflow_service.save(workflow))

        assert workflow.current is True
        assert workflow_repo.row(workflow.id)["current"] is True

    def test_second_disabled_version_is_not_current(self, lifecycle, workflow_service, workflow_repo):
        first = Workflow(key="k1", type="recording")
        second = Workflow(key="k1", type="recording")

        async def run():
            await workflow_service.save(first)
            await workflow_service.save(second)

        asyncio.run(run())

        assert first.current is True
        assert second.current is None
        assert _current_rows(workflow_repo, "k1") == [first.id]

    def test_enabled_version_is_forced_current(self, lifecycle, workflow_service):
        workflow = Workflow(key="k1", type="recording", enabled=True, current=None)
        asyncio.run(workflow_service.save(workflow))
        assert workflow.current is True

    def test_version_scenario(self, lifecycle, workflow_service, workflow_repo, trigger):
        """Disabled W -> enable W -> new enabled W2 demotes W."""
        w1 = Workflow(key="k1", type="recording", enabled=False)

        async def run():
            await workflow_service.save(w1)
            assert w1.current is True

            await workflow_service.update(w1, {"enabled": True})
            assert w1.current is True
            assert trigger.listening == {w1.id: {}}

            w2 = Workflow(key="k1", type="recording", enabled=True)
            await workflow_service.save(w2)
            return w2

        w2 = asyncio.run(run())

        row1 = workflow_repo.row(w1.id)
        assert row1["enabled"] is False
        assert row1["current"] is None
        row2 = workflow_repo.row(w2.id)
        assert row2["enabled"] is True
        assert row2["current"] is True
        assert _current_rows(workflow_repo, "k1") == [w2.id]
        assert trigger.listening == {w2.id: {}}

    def test_enabling_old_version_demotes_current(self, lifecycle, workflow_service, workflow_repo, trigger):
        w1 = Workflow(key="k1", type="recording", enabled=True)
        w2 = Workflow(key="k1", type="recording", enabled=False)

        async def run():
            await workflow_service.save(w1)
            await workflow_service.save(w2)
            assert w2.current is None
            await workflow_service.update(w2, {"enabled": True})

        asyncio.run(run())

        assert _current_rows(workflow_repo, "k1") == [w2.id]
        assert workflow_repo.row(w1.id)["enabled"] is False
        assert trigger.listening == {w2.id: {}}

    def test_at_most_one_current_across_toggles(self, lifecycle, workflow_service, workflow_repo):
        versions = [Workflow(key="k1", type="recording") for _ in range(3)]

        async def run():
            for workflow in versions:
                await workflow_service.save(workflow)
            for index in [0, 2, 1, 2, 0, 1]:
                fresh = await workflow_service.get(versions[index].id)
                await workflow_service.update(fresh, {"enabled": True})
                assert len(_current_rows(workflow_repo, "k1")) == 1

        asyncio.run(run())
        assert _current_rows(workflow_repo, "k1") == [versions[1].id]
        assert [row["enabled"] for row in workflow_repo.rows.values()] == [False, True, False]

    def test_resaving_enabled_workflow_does_not_demote(self, lifecycle, workflow_service, workflow_repo, trigger):
        w1 = Workflow(key="k1", type="recording", enabled=True)

        async def run():
            await workflow_service.save(w1)
            await workflow_service.update(w1, {"title": "renamed"})

        asyncio.run(run())

        assert workflow_repo.row(w1.id)["enabled"] is True
        assert workflow_repo.row(w1.id)["title"] == "renamed"
        assert [call[0] for call in trigger.calls] == ["on", "on"]

    def test_demotion_notifies_changed_channel(self, lifecycle, workflow_service, hooks):
        w1 = Workflow(key="k1", type="recording", enabled=True)
        changed = []

        async def run():
            await workflow_service.save(w1)
            hooks.on(WORKFLOW_CHANGED, lambda w: changed.append((w.id, w.enabled)))
            await workflow_service.save(Workflow(key="k1", type="recording", enabled=True))

        asyncio.run(run())
        assert changed == [(w1.id, False), (2, True)]

    def test_failed_demotion_rolls_back_save(self, lifecycle, workflow_service, workflow_repo, trigger):
        w1 = Workflow(key="k1", type="recording", enabled=True)
        asyncio.run(workflow_service.save(w1))
        trigger.calls.clear()

        async def broken(*args, **kwargs):
            raise RuntimeError("lock timeout")

        workflow_repo.update_fields = broken
        w2 = Workflow(key="k1", type="recording", enabled=True)

        with pytest.raises(RuntimeError):
            asyncio.run(workflow_service.save(w2))

        assert w2.id is None
        assert trigger.calls == []


# ============================================================================
# TOGGLE
# ============================================================================

class TestToggle:
    """Tests for toggle() and the after-save/after-destroy hooks."""

    def test_disabled_save_turns_trigger_off(self, lifecycle, workflow_service, trigger):
        workflow = Workflow(key="k1", type="recording", enabled=False)
        asyncio.run(workflow_service.save(workflow))
        assert trigger.calls == [("off", workflow.id, {})]

    def test_config_change_reregisters_with_old_config_first(self, lifecycle, workflow_service, trigger):
        workflow = Workflow(key="k1", type="recording", enabled=True, config={"cron": "0 * * * *"})

        async def run():
            await workflow_service.save(workflow)
            await workflow_service.update(workflow, {"config": {"cron": "*/5 * * * *"}})

        asyncio.run(run())

        assert trigger.calls == [
            ("on", workflow.id, {"cron": "0 * * * *"}),
            ("off", workflow.id, {"cron": "0 * * * *"}),
            ("on", workflow.id, {"cron": "*/5 * * * *"}),
        ]
        assert trigger.listening == {workflow.id: {"cron": "*/5 * * * *"}}
        assert not workflow.changed()

    def test_disable_turns_trigger_off(self, lifecycle, workflow_service, trigger):
        workflow = Workflow(key="k1", type="recording", enabled=True)

        async def run():
            await workflow_service.save(workflow)
            await workflow_service.update(workflow, {"enabled": False})

        asyncio.run(run())

        assert trigger.calls[-1] == ("off", workflow.id, {})
        assert trigger.listening == {}
        # Disabling keeps the version current
        assert workflow.current is True

    def test_destroy_turns_trigger_off(self, lifecycle, workflow_service, workflow_repo, trigger):
        workflow = Workflow(key="k1", type="recording", enabled=True)

        async def run():
            await workflow_service.save(workflow)
            return await workflow_service.destroy(workflow)

        assert asyncio.run(run()) is True
        assert workflow.id not in workflow_repo.rows
        assert trigger.calls[-1] == ("off", workflow.id, {})
        assert trigger.listening == {}

    def test_explicit_enable_override(self, lifecycle, trigger):
        workflow = Workflow(id=5, key="k1", type="recording", enabled=False)
        workflow.mark_persisted()

        lifecycle.toggle(workflow, enable=True)
        assert trigger.calls == [("on", 5, {})]

    def test_unknown_type_is_skipped(self, lifecycle, workflow_service, trigger, caplog):
        workflow = Workflow(key="k1", type="webhook", enabled=True)

        with caplog.at_level(logging.WARNING):
            asyncio.run(workflow_service.save(workflow))

        assert workflow.id is not None
        assert trigger.calls == []
        assert "No trigger registered for type 'webhook'" in caplog.text


# ============================================================================
# START / STOP
# ============================================================================

class TestStartStop:
    """Tests for before_start() and before_stop()."""

    def test_before_start_turns_on_enabled(self, lifecycle, seed_workflow, trigger):
        enabled = seed_workflow(key="a", enabled=True)
        seed_workflow(key="b", enabled=False)
        other = seed_workflow(key="c", enabled=True)

        count = asyncio.run(lifecycle.before_start())

        assert count == 2
        assert trigger.calls == [("on", enabled.id, {}), ("on", other.id, {})]

    def test_before_stop_turns_off_enabled(self, lifecycle, seed_workflow, trigger):
        enabled = seed_workflow(key="a", enabled=True)
        seed_workflow(key="b", enabled=False)

        async def run():
            await lifecycle.before_start()
            await lifecycle.before_stop()

        asyncio.run(run())

        assert trigger.calls == [("on", enabled.id, {}), ("off", enabled.id, {})]
        assert trigger.listening == {}

    def test_attach_is_idempotent(self, lifecycle, workflow_service, trigger):
        lifecycle.attach()
        workflow = Workflow(key="k1", type="recording", enabled=True)
        asyncio.run(workflow_service.save(workflow))
        assert trigger.calls == [("on", workflow.id, {})]

    def test_detach_stops_reacting(self, lifecycle, workflow_service, trigger):
        lifecycle.detach()
        workflow = Workflow(key="k1", type="recording", enabled=True)
        asyncio.run(workflow_service.save(workflow))

        assert trigger.calls == []
        assert workflow.current is None
