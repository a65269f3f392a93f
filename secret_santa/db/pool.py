"""
PostgreSQL connection pool manager using psycopg_pool.
Shared by the API process and the notification worker.
"""

import asyncio
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any

import psycopg
from psycopg import sql
from psycopg.rows import dict_row
from psycopg_pool import AsyncConnectionPool

from secret_santa.config import settings
from secret_santa.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)


class DatabasePoolManager:
    """
    Database connection pool manager with explicit lifecycle.

    initialize() on startup, close() on shutdown; connection() and
    transaction() hand out pooled connections in between.
    """

    def __init__(self, conninfo: str | None = None):
        self.conninfo = conninfo or settings.DATABASE_URL
        self.pool: AsyncConnectionPool | None = None
        self._initialized = False
        self._closed = False

    @property
    def is_initialized(self) -> bool:
        return self._initialized and not self._closed

    async def initialize(self) -> None:
        """Open the pool and verify that connections work."""
        if self._initialized:
            logger.warning("Database pool already initialized")
            return

        if self._closed:
            raise RuntimeError("Cannot reinitialize closed pool")

        pool_config = settings.get_db_pool_config()

        try:
            logger.info("Initializing database connection pool")

            self.pool = AsyncConnectionPool(
                conninfo=self.conninfo,
                open=False,
                check=AsyncConnectionPool.check_connection,
                configure=self._configure_connection,
                **pool_config,
            )
            await self.pool.open()
            await self.pool.wait()

            self._initialized = True

            async with self.connection() as conn:
                await conn.execute("SELECT 1")

            logger.info(
                "Database pool initialized successfully",
                min_size=pool_config["min_size"],
                max_size=pool_config["max_size"],
                timeout=pool_config["timeout"],
            )

        except Exception as e:
            logger.error("Failed to initialize database pool", error=str(e))
            self._initialized = False
            if self.pool:
                try:
                    await self.pool.close()
                except Exception as close_error:
                    logger.warning("Error discarding half-open pool", error=str(close_error))
                self.pool = None
            raise RuntimeError(f"Database pool initialization failed: {e}") from e

    async def _configure_connection(self, conn: psycopg.AsyncConnection) -> None:
        """Configure each new connection from the pool."""
        conn.row_factory = dict_row
        await conn.set_autocommit(True)

        app_name = f"secret-santa-{settings.environment}"
        await conn.execute(sql.SQL("SET application_name = {}").format(sql.Literal(app_name)))
        await conn.execute("SET timezone = 'UTC'")

    async def close(self) -> None:
        """Close the connection pool gracefully."""
        if not self._initialized or self._closed:
            return

        try:
            logger.info("Closing database connection pool")
            if self.pool:
                await asyncio.wait_for(self.pool.close(), timeout=30.0)
            logger.info("Database pool closed successfully")

        except TimeoutError:
            logger.warning("Database pool close timed out, forcing shutdown")
        finally:
            self._initialized = False
            self._closed = True

    @asynccontextmanager
    async def connection(self) -> AsyncGenerator[psycopg.AsyncConnection, None]:
        """
        Get a connection from the pool.

        Usage:
            async with db_pool.connection() as conn:
                await conn.execute("SELECT 1")
        """
        if not self._initialized:
            raise RuntimeError("Database pool not initialized. Call initialize() first.")

        if self._closed:
            raise RuntimeError("Database pool is closed")

        async with self.pool.connection() as conn:
            yield conn

    @asynccontextmanager
    async def transaction(self) -> AsyncGenerator[psycopg.AsyncConnection, None]:
        """
        Get a connection with automatic transaction management.

        Commits on success, rolls back on exception.
        """
        async with self.connection() as conn:
            async with conn.transaction():
                yield conn

    def health_check(self) -> dict[str, Any]:
        """Report pool state and psycopg_pool statistics."""
        if not self.is_initialized:
            return {"healthy": False, "service": "database_pool", "error": "Pool not available"}

        stats = self.pool.get_stats()
        return {
            "healthy": stats.get("requests_waiting", 0) == 0,
            "service": "database_pool",
            "pool_size": stats.get("pool_size", 0),
            "pool_available": stats.get("pool_available", 0),
            "requests_waiting": stats.get("requests_waiting", 0),
        }


# Global pool instance
db_pool = DatabasePoolManager()


def get_db_connection():
    """Get database connection from pool."""
    return db_pool.connection()


def get_db_transaction():
    """Get database connection with transaction."""
    return db_pool.transaction()
