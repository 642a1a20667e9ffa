# ============================================================================
# CONFIGURATION TESTS
# ============================================================================
# STATUS: Tests - Environment-driven defaults
# PURPOSE: Verify env parsing for database and scheduler settings
# ============================================================================
"""
Configuration Tests

Run with:
    pytest tests/test_config.py -v
"""

import pytest

from core.config import DatabaseDefaults, SchedulerDefaults, get_defaults, reset_defaults
from repositories.database import get_connection_string


@pytest.fixture(autouse=True)
def fresh_defaults():
    reset_defaults()
    yield
    reset_defaults()


class TestDatabaseDefaults:
    def test_defaults(self, monkeypatch):
        for name in ("DB_POOL_MIN", "DB_POOL_MAX", "DB_SCHEMA", "AUTO_BOOTSTRAP_SCHEMA"):
            monkeypatch.delenv(name, raising=False)

        defaults = DatabaseDefaults.from_env()
        assert defaults.min_size == 2
        assert defaults.max_size == 10
        assert defaults.schema == "workflow"
        assert defaults.auto_bootstrap_schema is False

    def test_env_overrides(self, monkeypatch):
        monkeypatch.setenv("DB_POOL_MIN", "1")
        monkeypatch.setenv("DB_POOL_MAX", "4")
        monkeypatch.setenv("DB_SCHEMA", "automation")
        monkeypatch.setenv("AUTO_BOOTSTRAP_SCHEMA", "true")

        defaults = DatabaseDefaults.from_env()
        assert (defaults.min_size, defaults.max_size) == (1, 4)
        assert defaults.schema == "automation"
        assert defaults.auto_bootstrap_schema is True

    def test_connection_string_prefers_database_url(self, monkeypatch):
        monkeypatch.setenv("DATABASE_URL", "postgresql://u:p@db:5432/app")
        assert get_connection_string() == "postgresql://u:p@db:5432/app"

    def test_connection_string_from_components(self, monkeypatch):
        monkeypatch.delenv("DATABASE_URL", raising=False)
        monkeypatch.setenv("POSTGRES_HOST", "db")
        monkeypatch.setenv("POSTGRES_PORT", "6543")
        monkeypatch.setenv("POSTGRES_DB", "scheduler")
        monkeypatch.setenv("POSTGRES_USER", "svc")
        monkeypatch.setenv("POSTGRES_PASSWORD", "secret")
        monkeypatch.delenv("POSTGRES_SSLMODE", raising=False)

        assert get_connection_string() == "postgresql://svc:secret@db:6543/scheduler?sslmode=prefer"


class TestSchedulerDefaults:
    def test_triggers_parsed(self, monkeypatch):
        monkeypatch.setenv(
            "TRIGGERS",
            "schedule=app.triggers:ScheduleTrigger, collection = app.triggers:CollectionTrigger,",
        )
        monkeypatch.setenv("PROCESSOR_FACTORY", "app.processor:Processor")

        defaults = SchedulerDefaults.from_env()
        assert defaults.triggers == {
            "schedule": "app.triggers:ScheduleTrigger",
            "collection": "app.triggers:CollectionTrigger",
        }
        assert defaults.processor_factory == "app.processor:Processor"
        assert defaults.recover_on_start is True

    def test_invalid_trigger_entry(self, monkeypatch):
        monkeypatch.setenv("TRIGGERS", "app.triggers:ScheduleTrigger")
        with pytest.raises(ValueError):
            SchedulerDefaults.from_env()

    def test_empty(self, monkeypatch):
        monkeypatch.delenv("TRIGGERS", raising=False)
        monkeypatch.delenv("PROCESSOR_FACTORY", raising=False)
        monkeypatch.setenv("RECOVER_ON_START", "false")

        defaults = SchedulerDefaults.from_env()
        assert defaults.triggers == {}
        assert defaults.processor_factory is None
        assert defaults.recover_on_start is False

    def test_get_defaults_is_cached(self, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "DEBUG")
        first = get_defaults()
        monkeypatch.setenv("LOG_LEVEL", "ERROR")
        assert get_defaults() is first
        assert first.log_level == "DEBUG"
