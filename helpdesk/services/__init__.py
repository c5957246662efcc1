"""
Helpdesk Services

Business logic for tickets, roster, directory, reports and sync.
"""

from .broadcast import Broadcaster
from .collections import SyncedCollection
from .tickets import (
    TicketService,
    TicketError,
    TicketNotFoundError,
    TicketConflictError,
    TicketValidationError,
    normalize_tickets,
)
from .engineers import EngineerService, EngineerError, EngineerNotFoundError, normalize_roster
from .contacts import (
    ContactService,
    ContactError,
    ContactNotFoundError,
    ImportResult,
    parse_contact_import,
    normalize_contacts,
)
from .queue import filter_and_sort, search_history, pending_count
from .reports import (
    daily_report,
    monthly_report,
    average_resolution_minutes,
    summary_stats,
)

__all__ = [
    # Sync plumbing
    "Broadcaster", "SyncedCollection",

    # Tickets
    "TicketService", "TicketError", "TicketNotFoundError",
    "TicketConflictError", "TicketValidationError", "normalize_tickets",

    # Roster / directory
    "EngineerService", "EngineerError", "EngineerNotFoundError", "normalize_roster",
    "ContactService", "ContactError", "ContactNotFoundError", "ImportResult", "parse_contact_import",
    "normalize_contacts",

    # Queue ordering
    "filter_and_sort", "search_history", "pending_count",

    # Reports
    "daily_report", "monthly_report", "average_resolution_minutes", "summary_stats",
]
