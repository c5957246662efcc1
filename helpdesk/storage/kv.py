"""
Remote key-value store.

One JSON document per collection, stored in a Redis-compatible
server (Vercel KV / Upstash expose the same protocol via KV_URL).
"""

import json
from typing import Any, Optional

from redis.asyncio import Redis


class RemoteStore:
    """Thin JSON wrapper around an async Redis client."""

    def __init__(self, client: Redis, prefix: str = ""):
        self.client = client
        self.prefix = prefix

    @classmethod
    def from_url(cls, url: str, prefix: str = "") -> "RemoteStore":
        return cls(Redis.from_url(url, decode_responses=True), prefix=prefix)

    def ns(self, key: str) -> str:
        """Apply the namespace prefix to a key."""
        return f"{self.prefix}{key}"

    async def get(self, key: str) -> Optional[Any]:
        raw = await self.client.get(self.ns(key))
        if raw is None:
            return None
        return json.loads(raw)

    async def set(self, key: str, value: Any) -> None:
        await self.client.set(self.ns(key), json.dumps(value, ensure_ascii=False))

    async def close(self) -> None:
        await self.client.aclose()
