# ============================================================================
# SCHEMA BOOTSTRAP
# ============================================================================
# STATUS: Core - Idempotent DDL for scheduler tables
# PURPOSE: Create schema, tables and indexes if missing
# ============================================================================
"""
Schema Bootstrap

Idempotent DDL for the workflows, executions and jobs tables. Safe to run
on every start (everything is IF NOT EXISTS).

The partial unique index on workflows(key) WHERE current is what makes
demoted versions store current = NULL instead of FALSE.

Usage:
    from repositories.schema import ensure_schema

    await ensure_schema(pool)
"""

import logging
from typing import List

from psycopg import sql
from psycopg_pool import AsyncConnectionPool

from .database import SCHEMA, TABLE_EXECUTIONS, TABLE_JOBS, TABLE_WORKFLOWS

logger = logging.getLogger(__name__)


def build_statements() -> List[sql.Composed]:
    """Return the DDL statements in execution order."""
    return [
        sql.SQL("CREATE SCHEMA IF NOT EXISTS {}").format(sql.Identifier(SCHEMA)),
        sql.SQL("""
        CREATE TABLE IF NOT EXISTS {} (
            id BIGSERIAL PRIMARY KEY,
            key VARCHAR(64) NOT NULL,
            title VARCHAR(255),
            type VARCHAR(64) NOT NULL,
            config JSONB NOT NULL DEFAULT '{{}}'::jsonb,
            enabled BOOLEAN NOT NULL DEFAULT FALSE,
            current BOOLEAN,
            executed INTEGER NOT NULL DEFAULT 0,
            all_executed INTEGER NOT NULL DEFAULT 0,
            use_transaction BOOLEAN NOT NULL DEFAULT FALSE,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT now()
        )
        """).format(TABLE_WORKFLOWS),
        sql.SQL(
            "CREATE UNIQUE INDEX IF NOT EXISTS {} ON {} (key) WHERE current"
        ).format(sql.Identifier("uq_workflows_current_key"), TABLE_WORKFLOWS),
        sql.SQL(
            "CREATE INDEX IF NOT EXISTS {} ON {} (enabled)"
        ).format(sql.Identifier("idx_workflows_enabled"), TABLE_WORKFLOWS),
        sql.SQL("""
        CREATE TABLE IF NOT EXISTS {} (
            id BIGSERIAL PRIMARY KEY,
            workflow_id BIGINT NOT NULL REFERENCES {} (id) ON DELETE CASCADE,
            key VARCHAR(64) NOT NULL,
            context JSONB,
            status VARCHAR(32) NOT NULL DEFAULT 'created',
            use_transaction BOOLEAN NOT NULL DEFAULT FALSE,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT now()
        )
        """).format(TABLE_EXECUTIONS, TABLE_WORKFLOWS),
        sql.SQL(
            "CREATE INDEX IF NOT EXISTS {} ON {} (status, created_at, id)"
        ).format(sql.Identifier("idx_executions_status_created"), TABLE_EXECUTIONS),
        sql.SQL(
            "CREATE INDEX IF NOT EXISTS {} ON {} (key)"
        ).format(sql.Identifier("idx_executions_key"), TABLE_EXECUTIONS),
        sql.SQL("""
        CREATE TABLE IF NOT EXISTS {} (
            id BIGSERIAL PRIMARY KEY,
            execution_id BIGINT NOT NULL REFERENCES {} (id) ON DELETE CASCADE,
            node_id VARCHAR(64),
            status VARCHAR(32) NOT NULL DEFAULT 'pending',
            result JSONB,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT now()
        )
        """).format(TABLE_JOBS, TABLE_EXECUTIONS),
        sql.SQL(
            "CREATE INDEX IF NOT EXISTS {} ON {} (execution_id)"
        ).format(sql.Identifier("idx_jobs_execution"), TABLE_JOBS),
    ]


async def ensure_schema(pool: AsyncConnectionPool) -> int:
    """
    Run all DDL statements in one transaction.

    Returns:
        Number of statements executed
    """
    statements = build_statements()
    async with pool.connection() as conn:
        async with conn.transaction():
            for statement in statements:
                await conn.execute(statement)
    logger.info(f"Schema {SCHEMA} ensured ({len(statements)} statements)")
    return len(statements)


__all__ = ["build_statements", "ensure_schema"]
