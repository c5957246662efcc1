"""
Helpdesk Storage

Remote key-value store with a local JSON file mirror.
"""

from .kv import RemoteStore
from .local import LocalFileStore
from .collection import CollectionStore

__all__ = ["RemoteStore", "LocalFileStore", "CollectionStore"]
