"""PostgreSQL connection pool"""
import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

import psycopg
from psycopg.rows import dict_row
from psycopg_pool import AsyncConnectionPool

from shame_game.config import DATABASE_URL, DB_POOL_MAX_SIZE, DB_POOL_MIN_SIZE
from shame_game.exceptions import ConnectionError

logger = logging.getLogger(__name__)


class Database:
    """Owns the async pool used by PostgresStore"""

    def __init__(
        self,
        connection_string: str = DATABASE_URL,
        min_size: int = DB_POOL_MIN_SIZE,
        max_size: int = DB_POOL_MAX_SIZE
    ):
        self.connection_string = connection_string
        self.min_size = min_size
        self.max_size = max_size
        self._pool: Optional[AsyncConnectionPool] = None

    @property
    def is_open(self) -> bool:
        return self._pool is not None

    async def init_pool(self) -> None:
        if self._pool is not None:
            return
        logger.info(f"Opening database pool (min={self.min_size}, max={self.max_size})")
        pool = AsyncConnectionPool(
            self.connection_string,
            min_size=self.min_size,
            max_size=self.max_size,
            kwargs={"row_factory": dict_row},
            open=False
        )
        await pool.open()
        self._pool = pool

    async def close_pool(self) -> None:
        if self._pool is None:
            return
        logger.info("Closing database pool")
        await self._pool.close()
        self._pool = None

    @asynccontextmanager
    async def connection(self) -> AsyncGenerator[psycopg.AsyncConnection, None]:
        """Borrow a connection whose cursors return dict rows"""
        if self._pool is None:
            raise ConnectionError("Database pool is not open", operation="connection")

        async with self._pool.connection() as conn:
            yield conn


# Shared instance used when no Database is passed to PostgresStore
db = Database()
