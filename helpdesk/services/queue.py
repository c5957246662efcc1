"""
Helpdesk Work Queue

Ordering and filtering of the ticket list.

Queue order (stable):
1. Open tickets before completed tickets
2. Urgency descending (HIGH > MEDIUM > LOW)
3. Request time ascending (first come, first served)

Example:
A HIGH ticket filed at 10:00 sorts before a MEDIUM ticket filed at 09:00,
and both sort before any completed ticket.
"""

from typing import Iterable, List, Union

from ..models.ticket import Ticket, TicketStatus, Urgency

ALL = "all"


def queue_key(ticket: Ticket):
    return (ticket.is_completed, -ticket.urgency.rank, ticket.request_time)


def matches_query(ticket: Ticket, query: str) -> bool:
    """Case-sensitive substring match on name, requirement, department."""
    if not query:
        return True
    return (
        query in ticket.name or
        query in ticket.requirement or
        query in ticket.department
    )


def filter_and_sort(
    tickets: Iterable[Ticket],
    query: str = "",
    urgency: Union[Urgency, str] = ALL
) -> List[Ticket]:
    """
    Produce the visible, ordered work queue.

    Args:
        tickets: Full ticket collection
        query: Text to look for (empty = everything)
        urgency: "all" or a specific Urgency
    """
    if urgency != ALL:
        urgency = Urgency(urgency)

    visible = [
        t for t in tickets
        if matches_query(t, query) and (urgency == ALL or t.urgency == urgency)
    ]
    return sorted(visible, key=queue_key)


def search_history(
    tickets: Iterable[Ticket],
    query: str = "",
    active_only: bool = False
) -> List[Ticket]:
    """
    Requester-facing progress lookup.

    Case-insensitive on name and department, exact-case on phone and id.
    Newest request first.
    """
    needle = query.lower()

    def _matches(t: Ticket) -> bool:
        return (
            needle in t.name.lower() or
            needle in t.department.lower() or
            query in t.phone or
            query in t.id
        )

    found = [
        t for t in tickets
        if _matches(t) and not (active_only and t.is_completed)
    ]
    found.sort(key=lambda t: t.request_time, reverse=True)
    return found


def pending_count(tickets: Iterable[Ticket]) -> int:
    return sum(1 for t in tickets if t.status != TicketStatus.COMPLETED)
