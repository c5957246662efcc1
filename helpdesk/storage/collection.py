"""
Helpdesk Collection Store

Dual-backend persistence for one collection document.

Read:  remote store -> local file -> built-in default
Write: remote store (failure logged) + local file (always attempted)

Storage failures never propagate; reads always return something.
"""

from typing import Any, Callable, Optional

from ..logging_utils import get_logger
from .kv import RemoteStore
from .local import LocalFileStore

logger = get_logger(__name__)


class CollectionStore:
    """
    Persistence for a single named collection (tickets / engineers / contacts).

    The stored value is the collection's wire format (JSON-compatible).
    ``validate`` turns a stored document into that wire format, or raises
    ValueError when the document has the wrong shape. A rejected document
    counts as a failed source and the next one is tried.
    """

    def __init__(
        self,
        key: str,
        local: LocalFileStore,
        remote: Optional[RemoteStore] = None,
        default: Callable[[], Any] = list,
        validate: Optional[Callable[[Any], Any]] = None
    ):
        self.key = key
        self.local = local
        self.remote = remote
        self.default = default
        self.validate = validate

    def _accept(self, data: Any, source: str) -> Any:
        """Validated document, or None when ``source`` holds a bad shape."""
        if self.validate is None:
            return data
        try:
            return self.validate(data)
        except (ValueError, TypeError) as exc:
            logger.error("ignoring malformed %s from %s: %s", self.key, source, exc)
            return None

    async def read(self) -> Any:
        """
        Load the collection, degrading through weaker sources.
        """
        if self.remote is not None:
            try:
                data = await self.remote.get(self.key)
                if data is not None:
                    data = self._accept(data, "remote store")
                    if data is not None:
                        return data
            except Exception as exc:  # remote unreachable or corrupt
                logger.error("failed to get %s from remote store: %s", self.key, exc)

        path = self.local.path_for(self.key)
        try:
            data = self.local.read(self.key)
            if data is not None:
                data = self._accept(data, path)
                if data is not None:
                    return data
        except (OSError, ValueError) as exc:
            logger.error("failed to load %s: %s", path, exc)

        return self.default()

    async def write(self, data: Any) -> None:
        """
        Persist a full replacement document to every backend.
        """
        if self.remote is not None:
            try:
                await self.remote.set(self.key, data)
            except Exception as exc:
                logger.error("failed to set %s in remote store: %s", self.key, exc)

        try:
            self.local.write(self.key, data)
        except OSError as exc:
            # Local mirror is optional once a remote store is attached
            if self.remote is None:
                logger.error("failed to save %s: %s", self.local.path_for(self.key), exc)
            else:
                logger.debug("local mirror for %s not written: %s", self.key, exc)

    async def seed(self) -> bool:
        """
        Write the default document if no backend holds the collection yet.

        Returns True when seeding happened.
        """
        if self.remote is not None:
            try:
                if await self.remote.get(self.key) is not None:
                    return False
            except Exception as exc:
                # Remote state unknown, leave it alone
                logger.error("failed to check %s in remote store: %s", self.key, exc)
                return False

        if self.local.exists(self.key):
            return False

        logger.info("seeding %s with defaults", self.key)
        await self.write(self.default())
        return True
