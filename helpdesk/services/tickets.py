"""
Helpdesk Ticket Service

Per-record operations on top of the whole-collection store.

Every change is a read-modify-write of the ticket collection under the
collection lock, followed by persist + broadcast of the new collection.
Updates are conditional: a caller that sends the revision it last saw
gets a conflict instead of silently overwriting someone else's edit.
"""

from typing import List, Optional

from pydantic import TypeAdapter

from ..logging_utils import get_logger
from ..models.ticket import Ticket, TicketStatus, Urgency, utcnow, new_id
from .collections import SyncedCollection

logger = get_logger(__name__)

_tickets_adapter = TypeAdapter(List[Ticket])


class TicketError(Exception):
    """Base class for ticket operation failures."""
    pass


class TicketNotFoundError(TicketError):
    pass


class TicketConflictError(TicketError):
    """Raised when a conditional write loses against a newer revision."""
    pass


class TicketValidationError(TicketError):
    pass


def dump_tickets(tickets: List[Ticket]) -> list:
    return _tickets_adapter.dump_python(tickets, mode="json")


def normalize_tickets(data) -> list:
    """Stored ticket document in current wire form (legacy records converted)."""
    return dump_tickets(_tickets_adapter.validate_python(data))


class TicketService:
    """
    Ticket lifecycle.

    Status flow (conventional, not enforced):
    PENDING -> IN_PROGRESS -> COMPLETED

    Completion rules:
    - completion_time is stamped on the first move to COMPLETED
    - an existing completion_time is kept on re-save
    - leaving COMPLETED clears completion_time
    - completing requires a signature (new or already on file)
      when require_signature is on
    """

    def __init__(
        self,
        collection: SyncedCollection,
        engineer_service=None,
        require_signature: bool = True
    ):
        self.collection = collection
        self.engineers = engineer_service
        self.require_signature = require_signature

    async def list(self) -> List[Ticket]:
        data = await self.collection.load()
        return _tickets_adapter.validate_python(data)

    async def get(self, ticket_id: str) -> Ticket:
        for ticket in await self.list():
            if ticket.id == ticket_id:
                return ticket
        raise TicketNotFoundError(f"Ticket {ticket_id} not found")

    async def _save(self, tickets: List[Ticket]) -> None:
        await self.collection.replace(dump_tickets(tickets))

    async def create(
        self,
        name: str,
        department: str,
        requirement: str,
        urgency: Urgency = Urgency.MEDIUM,
        phone: str = ""
    ) -> Ticket:
        """
        File a new request.

        id and request_time are assigned here and never change.
        """
        name, department, requirement = name.strip(), department.strip(), requirement.strip()
        if not name or not department or not requirement:
            raise TicketValidationError("name, department and requirement are required")

        ticket = Ticket(
            id=new_id(),
            name=name,
            department=department,
            phone=phone.strip(),
            requirement=requirement,
            urgency=urgency,
            request_time=utcnow(),
            status=TicketStatus.PENDING,
        )

        async with self.collection.lock:
            tickets = await self.list()
            tickets.append(ticket)
            await self._save(tickets)

        logger.info("ticket %s created (%s, %s)", ticket.id, ticket.department, ticket.urgency.value)
        return ticket

    async def update(
        self,
        ticket_id: str,
        status: Optional[TicketStatus] = None,
        process_note: Optional[str] = None,
        assigned_engineer: Optional[str] = None,
        signature: Optional[str] = None,
        expected_revision: Optional[int] = None
    ) -> Ticket:
        """
        Apply triage / completion changes to one ticket.

        Args:
            ticket_id: Ticket to change
            status: New status (None = unchanged)
            process_note: Handling notes (None = unchanged)
            assigned_engineer: Engineer name (None = unchanged, default engineer if never set,
                "" = unassigned)
            signature: New sign-off image (None = keep the one on file)
            expected_revision: Revision the caller edited; mismatch = conflict
        """
        async with self.collection.lock:
            tickets = await self.list()
            index = self._index_of(tickets, ticket_id)
            current = tickets[index]

            if expected_revision is not None and expected_revision != current.revision:
                raise TicketConflictError(
                    f"Ticket {ticket_id} is at revision {current.revision}, "
                    f"update was based on revision {expected_revision}"
                )

            changes = {"revision": current.revision + 1}
            if status is not None:
                changes["status"] = status
            if process_note is not None:
                changes["process_note"] = process_note
            if assigned_engineer is not None:
                changes["assigned_engineer"] = assigned_engineer
            if signature is not None:
                changes["signature"] = signature

            updated = current.model_copy(update=changes)

            if updated.assigned_engineer is None:
                updated.assigned_engineer = await self._default_engineer_name()

            if updated.status == TicketStatus.COMPLETED:
                if self.require_signature and not updated.signature:
                    raise TicketValidationError("A signature is required to complete a ticket")
                updated.completion_time = current.completion_time or utcnow()
            else:
                updated.completion_time = None

            tickets[index] = updated
            await self._save(tickets)

        logger.info(
            "ticket %s updated to %s (rev %d)",
            ticket_id, updated.status.value, updated.revision
        )
        return updated

    async def delete(self, ticket_id: str) -> None:
        async with self.collection.lock:
            tickets = await self.list()
            index = self._index_of(tickets, ticket_id)
            del tickets[index]
            await self._save(tickets)
        logger.info("ticket %s deleted", ticket_id)

    async def replace(self, tickets: List[Ticket]) -> List[Ticket]:
        """
        Collection-replace write (last writer wins).
        """
        ids = [t.id for t in tickets]
        if len(ids) != len(set(ids)):
            raise TicketValidationError("ticket ids must be unique")
        async with self.collection.lock:
            await self._save(tickets)
        return tickets

    # =========================================================================
    # Helpers
    # =========================================================================

    def _index_of(self, tickets: List[Ticket], ticket_id: str) -> int:
        for index, ticket in enumerate(tickets):
            if ticket.id == ticket_id:
                return index
        raise TicketNotFoundError(f"Ticket {ticket_id} not found")

    async def _default_engineer_name(self) -> Optional[str]:
        if self.engineers is None:
            return None
        engineer = await self.engineers.default_engineer()
        return engineer.name if engineer else None
