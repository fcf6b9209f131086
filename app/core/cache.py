# app/core/cache.py

import json
import redis.asyncio as redis
from typing import Any, Optional

from app.core.config import settings


class Cache:
    """
    Redis cache wrapper.

    - connect() / close() manage the client lifecycle.
    - ping() used by /health and startup checks.
    - get / set for raw values, get_json / set_json for
      media metadata.
    """

    def __init__(self) -> None:
        self.redis: Optional[redis.Redis] = None

    async def connect(self) -> None:
        if self.redis is not None:
            return

        self.redis = redis.from_url(
            settings.REDIS_URL,
            decode_responses=True,
        )

    async def close(self) -> None:
        if self.redis is not None:
            await self.redis.close()
            self.redis = None

    async def ping(self) -> bool:
        """
        Lightweight health check used by /health and startup.
        """
        try:
            if self.redis is None:
                await self.connect()
            return bool(await self.redis.ping())
        except Exception:
            return False

    async def get(self, key: str):
        if self.redis is None:
            await self.connect()
        return await self.redis.get(key)

    async def set(self, key: str, value: str, ttl: int = 3600) -> None:
        if self.redis is None:
            await self.connect()
        await self.redis.set(key, value, ex=ttl)

    async def get_json(self, key: str) -> Optional[Any]:
        raw = await self.get(key)
        if raw is None:
            return None
        return json.loads(raw)

    async def set_json(self, key: str, value: Any, ttl: int = 3600) -> None:
        await self.set(key, json.dumps(value), ttl=ttl)


cache = Cache()
