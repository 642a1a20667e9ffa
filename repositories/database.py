# ============================================================================
# DATABASE CONNECTION POOL
# ============================================================================
# STATUS: Core - Async PostgreSQL connection management
# PURPOSE: Provide connection pooling for psycopg3 async
# ============================================================================
"""
Database Connection Pool

Manages async PostgreSQL connections using psycopg3 and psycopg_pool.
Singleton pattern ensures one pool per application.

Connection settings come from DATABASE_URL or the individual POSTGRES_*
variables.

Usage:
    from repositories.database import get_pool

    pool = await get_pool()
    async with pool.connection() as conn:
        result = await conn.execute("SELECT 1")
"""

import logging
import os
from contextlib import asynccontextmanager
from typing import Optional

from psycopg import AsyncConnection, sql
from psycopg_pool import AsyncConnectionPool

from core.config import DatabaseDefaults

logger = logging.getLogger(__name__)

# Global pool instance
_pool: Optional[AsyncConnectionPool] = None


def get_connection_string() -> str:
    """
    Get database connection string from environment.

    Priority:
    1. DATABASE_URL environment variable
    2. Individual POSTGRES_* components

    Returns:
        PostgreSQL connection string
    """
    if url := os.environ.get("DATABASE_URL"):
        return url

    host = os.environ.get("POSTGRES_HOST", "localhost")
    port = os.environ.get("POSTGRES_PORT", "5432")
    name = os.environ.get("POSTGRES_DB", "postgres")
    user = os.environ.get("POSTGRES_USER", "postgres")
    password = os.environ.get("POSTGRES_PASSWORD", "")
    sslmode = os.environ.get("POSTGRES_SSLMODE", "prefer")

    return f"postgresql://{user}:{password}@{host}:{port}/{name}?sslmode={sslmode}"


async def init_pool(
    min_size: int = 2,
    max_size: int = 10,
    connection_string: Optional[str] = None,
) -> AsyncConnectionPool:
    """
    Initialize the global connection pool.

    Args:
        min_size: Minimum connections to maintain
        max_size: Maximum connections allowed
        connection_string: Override connection string (defaults to env)

    Returns:
        AsyncConnectionPool instance
    """
    global _pool

    if _pool is not None:
        logger.warning("Pool already initialized, returning existing pool")
        return _pool

    conninfo = connection_string or get_connection_string()

    # Mask password in logs
    safe_conninfo = conninfo.split("@")[-1] if "@" in conninfo else conninfo
    logger.info(f"Initializing connection pool: {safe_conninfo}")

    _pool = AsyncConnectionPool(
        conninfo=conninfo,
        min_size=min_size,
        max_size=max_size,
        open=False,
    )

    await _pool.open()
    logger.info(f"Connection pool opened (min={min_size}, max={max_size})")

    return _pool


async def get_pool() -> AsyncConnectionPool:
    """Get the global connection pool, initializing if needed."""
    global _pool

    if _pool is None:
        await init_pool()

    return _pool


async def close_pool() -> None:
    """Close the global connection pool."""
    global _pool

    if _pool is not None:
        await _pool.close()
        _pool = None
        logger.info("Connection pool closed")


@asynccontextmanager
async def borrow(pool: AsyncConnectionPool, conn: Optional[AsyncConnection] = None):
    """
    Yield the caller's connection if given, else borrow one from the pool.

    Repositories use this so every method can either join an open
    transaction or run standalone.
    """
    if conn is not None:
        yield conn
        return
    async with pool.connection() as pooled:
        yield pooled


# ============================================================================
# SCHEMA CONSTANTS
# ============================================================================

SCHEMA = DatabaseDefaults.from_env().schema

# Table identifiers — use with psycopg sql.SQL().format() for injection-safe queries
TABLE_WORKFLOWS = sql.Identifier(SCHEMA, "workflows")
TABLE_EXECUTIONS = sql.Identifier(SCHEMA, "executions")
TABLE_JOBS = sql.Identifier(SCHEMA, "jobs")
