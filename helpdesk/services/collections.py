"""
Synced collections: persist, then broadcast.

Every write replaces the whole stored document and pushes the new
document to all clients as "<name>:updated". The lock serializes
read-modify-write cycles inside this process. Callers broadcast while
holding it, so pushes for one collection go out in write order.
"""

import asyncio
from typing import Any, Optional

from ..storage import CollectionStore
from .broadcast import Broadcaster


class SyncedCollection:

    def __init__(
        self,
        name: str,
        store: CollectionStore,
        broadcaster: Optional[Broadcaster] = None
    ):
        self.name = name
        self.store = store
        self.broadcaster = broadcaster
        self.lock = asyncio.Lock()

    @property
    def event(self) -> str:
        return f"{self.name}:updated"

    async def load(self) -> Any:
        return await self.store.read()

    async def replace(self, data: Any) -> None:
        await self.store.write(data)
        if self.broadcaster is not None:
            await self.broadcaster.broadcast(self.event, data)
