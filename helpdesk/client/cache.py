"""
Client-side cache of server collections.

Invalidation is replace-on-event: every "<kind>:updated" message (or a
poll result) swaps the whole collection. New tickets are detected by
diffing id sets, not by comparing lengths.
"""

import threading
from dataclasses import dataclass, field
from typing import Iterable, List, Optional

from pydantic import TypeAdapter

from ..models.ticket import AppConfig, Contact, EngineerRoster, Ticket, Urgency

_tickets_adapter = TypeAdapter(List[Ticket])
_contacts_adapter = TypeAdapter(List[Contact])

TICKETS_EVENT = "tickets:updated"
ENGINEERS_EVENT = "engineers:updated"
CONTACTS_EVENT = "contacts:updated"


@dataclass
class NewTicketNotice:
    """Tickets that appeared since the previous snapshot."""
    tickets: List[Ticket] = field(default_factory=list)

    @property
    def ticket_ids(self) -> List[str]:
        return [t.id for t in self.tickets]

    @property
    def has_high_urgency(self) -> bool:
        return any(t.urgency == Urgency.HIGH for t in self.tickets)

    def __bool__(self) -> bool:
        return bool(self.tickets)


def detect_new_tickets(previous: Iterable[Ticket], current: Iterable[Ticket]) -> NewTicketNotice:
    """Tickets in ``current`` whose id was not in ``previous``."""
    seen = {t.id for t in previous}
    return NewTicketNotice(tickets=[t for t in current if t.id not in seen])


class ClientCache:
    """
    Disposable mirror of the server state.

    Thread-safe: the WebSocket listener and the poller both write here.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self.tickets: List[Ticket] = []
        self.roster: EngineerRoster = EngineerRoster()
        self.contacts: List[Contact] = []
        self.config: Optional[AppConfig] = None
        self.primed = False  # True once a first ticket snapshot has landed

    def replace_tickets(self, tickets: List[Ticket]) -> NewTicketNotice:
        """
        Swap in a fresh ticket list.

        The very first snapshot never counts as "new".
        """
        with self._lock:
            notice = detect_new_tickets(self.tickets, tickets) if self.primed else NewTicketNotice()
            self.tickets = list(tickets)
            self.primed = True
        return notice

    def replace_roster(self, roster: EngineerRoster) -> None:
        with self._lock:
            self.roster = roster

    def replace_contacts(self, contacts: List[Contact]) -> None:
        with self._lock:
            self.contacts = list(contacts)

    def set_config(self, config: AppConfig) -> None:
        with self._lock:
            self.config = config

    def apply(self, event: str, payload) -> NewTicketNotice:
        """
        Apply a push event from the server.

        Unknown events are ignored.
        """
        if event == TICKETS_EVENT:
            return self.replace_tickets(_tickets_adapter.validate_python(payload))
        if event == ENGINEERS_EVENT:
            self.replace_roster(EngineerRoster.model_validate(payload))
        elif event == CONTACTS_EVENT:
            self.replace_contacts(_contacts_adapter.validate_python(payload))
        return NewTicketNotice()
