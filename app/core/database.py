# app/core/database.py

import asyncpg
from typing import AsyncGenerator, Optional

from app.core.config import settings


class Database:
    """
    Central asyncpg connection pool wrapper.

    - connect() / disconnect() manage the pool lifecycle.
    - get_connection() yields a connection inside a request-scoped transaction.
    - ping() is used by /health and startup checks.
    """

    def __init__(self) -> None:
        self.pool: Optional[asyncpg.Pool] = None

    async def connect(self) -> None:
        if self.pool is not None:
            return

        self.pool = await asyncpg.create_pool(
            host=settings.DATABASE_HOST,
            port=settings.DATABASE_PORT,
            user=settings.DATABASE_USER,
            password=settings.DATABASE_PASSWORD,
            database=settings.DATABASE_NAME,
            min_size=settings.DATABASE_POOL_MIN_SIZE,
            max_size=settings.DATABASE_POOL_SIZE,
        )

    async def disconnect(self) -> None:
        if self.pool is not None:
            await self.pool.close()
            self.pool = None

    async def ping(self) -> bool:
        """
        Lightweight health check used by /health and startup.

        Returns True if the database responds to a simple query.
        """
        try:
            if self.pool is None:
                await self.connect()
            async with self.pool.acquire() as conn:
                await conn.execute("SELECT 1")
            return True
        except Exception:
            return False

    async def get_connection(self) -> AsyncGenerator[asyncpg.Connection, None]:
        """
        Acquire a connection and open a transaction that lives for the
        whole request.

        Row locks (SELECT ... FOR UPDATE) and advisory locks taken by the
        group store are released when this transaction ends.
        """
        if self.pool is None:
            await self.connect()

        async with self.pool.acquire() as conn:
            async with conn.transaction():
                yield conn


db = Database()
