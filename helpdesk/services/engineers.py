"""
Helpdesk Engineer Service

Roster of support staff with an explicit default assignee.

Rules:
1. default_engineer_id always names a roster member (or is None)
2. The first engineer added to an empty roster becomes the default
3. Removing the default hands the default to the first remaining engineer
"""

from typing import Optional

from ..logging_utils import get_logger
from ..models.ticket import Engineer, EngineerRoster
from .collections import SyncedCollection

logger = get_logger(__name__)


class EngineerError(Exception):
    """Raised when roster operations fail."""
    pass


class EngineerNotFoundError(EngineerError):
    pass


def normalize_roster(data) -> dict:
    """Stored roster in current wire form (legacy bare lists converted)."""
    return EngineerRoster.model_validate(data).model_dump(mode="json")


class EngineerService:

    def __init__(self, collection: SyncedCollection):
        self.collection = collection

    async def get_roster(self) -> EngineerRoster:
        return EngineerRoster.model_validate(await self.collection.load())

    async def _save(self, roster: EngineerRoster) -> None:
        await self.collection.replace(roster.model_dump(mode="json"))

    async def replace_roster(self, roster: EngineerRoster) -> EngineerRoster:
        async with self.collection.lock:
            await self._save(roster)
        return roster

    async def default_engineer(self) -> Optional[Engineer]:
        return (await self.get_roster()).default_engineer

    async def add(self, name: str) -> Engineer:
        name = name.strip()
        if not name:
            raise EngineerError("Engineer name is required")

        engineer = Engineer(name=name)
        async with self.collection.lock:
            roster = await self.get_roster()
            roster.engineers.append(engineer)
            if roster.default_engineer_id is None and len(roster.engineers) == 1:
                roster.default_engineer_id = engineer.id
            await self._save(roster)

        logger.info("engineer %s added", engineer.name)
        return engineer

    async def remove(self, engineer_id: str) -> EngineerRoster:
        async with self.collection.lock:
            roster = await self.get_roster()
            if roster.find(engineer_id) is None:
                raise EngineerNotFoundError(f"Engineer {engineer_id} not found")

            remaining = [e for e in roster.engineers if e.id != engineer_id]
            default_id = roster.default_engineer_id
            if default_id == engineer_id:
                default_id = remaining[0].id if remaining else None

            roster = EngineerRoster(engineers=remaining, default_engineer_id=default_id)
            await self._save(roster)

        logger.info("engineer %s removed", engineer_id)
        return roster

    async def set_default(self, engineer_id: Optional[str]) -> EngineerRoster:
        """Make engineer_id the default assignee (None clears it)."""
        async with self.collection.lock:
            roster = await self.get_roster()
            if engineer_id is not None and roster.find(engineer_id) is None:
                raise EngineerNotFoundError(f"Engineer {engineer_id} not found")
            roster.default_engineer_id = engineer_id
            await self._save(roster)
        return roster
