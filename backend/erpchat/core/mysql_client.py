"""
MySQL Client with Connection Pooling
Provides read-only access to the ERP database over a bounded aiomysql pool
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence

import aiomysql
import pymysql

from erpchat.core.config_manager import AppSettings
from erpchat.core.exceptions import DatabaseException

logger = logging.getLogger(__name__)


class MySQLClient:
    """
    MySQL client with async connection pooling.

    Constructed once by the composition root and injected into every
    component; callers queue on the pool when all connections are in use.
    """

    def __init__(self, config: AppSettings):
        self._config = config
        self._pool: Optional[aiomysql.Pool] = None
        self._initialized = False
        self._lock = asyncio.Lock()

    @property
    def database(self) -> str:
        """ERP schema name used to qualify table names"""
        return self._config.MYSQL_DATABASE

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    async def initialize(self):
        """Initialize connection pool"""
        if self._initialized:
            return

        async with self._lock:
            if self._initialized:
                return

            cfg = self._config
            try:
                self._pool = await aiomysql.create_pool(
                    host=cfg.MYSQL_HOST,
                    port=cfg.MYSQL_PORT,
                    user=cfg.MYSQL_USER,
                    password=cfg.MYSQL_PASSWORD,
                    db=cfg.MYSQL_DATABASE,
                    minsize=cfg.MYSQL_POOL_MIN_SIZE,
                    maxsize=cfg.MYSQL_POOL_MAX_SIZE,
                    connect_timeout=cfg.MYSQL_CONNECT_TIMEOUT,
                    autocommit=True,
                    charset="utf8mb4",
                    init_command="SET SESSION TRANSACTION READ ONLY",
                )
                self._initialized = True
                logger.info(
                    f"MySQL connection pool initialized "
                    f"(min={cfg.MYSQL_POOL_MIN_SIZE}, max={cfg.MYSQL_POOL_MAX_SIZE}, db={cfg.MYSQL_DATABASE})"
                )
            except (pymysql.err.MySQLError, OSError) as e:
                logger.error(f"Failed to initialize MySQL pool: {e}")
                raise DatabaseException(
                    f"MySQL pool initialization failed: {e}",
                    details={"host": cfg.MYSQL_HOST, "database": cfg.MYSQL_DATABASE}
                )

    @asynccontextmanager
    async def connection(self):
        """Borrow a connection from the pool"""
        if not self._initialized or not self._pool:
            raise DatabaseException("MySQL client not initialized")

        async with self._pool.acquire() as conn:
            yield conn

    async def fetch_all(self, sql: str, params: Optional[Sequence[Any]] = None) -> List[Dict[str, Any]]:
        """
        Execute a statement and return every row as a dictionary.

        Args:
            sql: SQL text with %s placeholders
            params: Values bound to the placeholders

        Returns:
            Rows keyed by column label

        Raises:
            DatabaseException: On any driver or connection failure
        """
        # pymysql only %-formats when args is not None; LIKE patterns in
        # parameterless SQL must reach the server untouched
        args = tuple(params) if params else None
        try:
            async with self.connection() as conn:
                async with conn.cursor(aiomysql.DictCursor) as cur:
                    await cur.execute(sql, args)
                    rows = await cur.fetchall()
                    return list(rows)
        except pymysql.err.MySQLError as e:
            logger.error(f"MySQL query failed: {e}")
            raise DatabaseException(str(e), details={"sql": sql[:200]})
        except OSError as e:
            logger.error(f"MySQL connection failed: {e}")
            raise DatabaseException(f"Connection failed: {e}")

    async def health_check(self) -> Dict[str, Any]:
        """Check MySQL connection health"""
        if not self._initialized:
            return {
                "status": "not_initialized",
                "healthy": False
            }

        start_time = datetime.now(timezone.utc)
        try:
            rows = await self.fetch_all("SELECT 1 AS health_check")
        except DatabaseException as e:
            logger.error(f"MySQL health check failed: {e.message}")
            return {
                "status": "unhealthy",
                "healthy": False,
                "error": e.message
            }

        if rows and rows[0].get("health_check") == 1:
            latency = (datetime.now(timezone.utc) - start_time).total_seconds() * 1000
            return {
                "status": "healthy",
                "healthy": True,
                "latency_ms": latency,
                "pool": {
                    "min_size": self._config.MYSQL_POOL_MIN_SIZE,
                    "max_size": self._config.MYSQL_POOL_MAX_SIZE,
                },
            }
        return {
            "status": "unhealthy",
            "healthy": False,
            "error": "Health check query failed"
        }

    async def close(self):
        """Close connection pool"""
        if self._pool:
            self._pool.close()
            await self._pool.wait_closed()
            self._pool = None
            self._initialized = False
            logger.info("MySQL connection pool closed")
