"""
Helpdesk Client

REST client, local cache and real-time sync agent.
"""

from .cache import ClientCache, NewTicketNotice, detect_new_tickets
from .sync import HelpdeskClient, SyncAgent, SyncError

__all__ = [
    "ClientCache", "NewTicketNotice", "detect_new_tickets",
    "HelpdeskClient", "SyncAgent", "SyncError",
]
