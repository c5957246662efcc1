"""
Helpdesk Models

Tickets, engineer roster, contact directory.
"""

from .ticket import (
    # Enums
    Urgency,
    TicketStatus,
    URGENCY_RANK,

    # Core models
    Ticket,

    # Supporting models
    Engineer,
    EngineerRoster,
    Contact,
    AppConfig,

    # Helpers
    utcnow,
    new_id,
)

__all__ = [
    "Urgency", "TicketStatus", "URGENCY_RANK",
    "Ticket",
    "Engineer", "EngineerRoster", "Contact", "AppConfig",
    "utcnow", "new_id",
]
