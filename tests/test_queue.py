from helpdesk.models import TicketStatus, Urgency
from helpdesk.services.queue import filter_and_sort, pending_count, search_history

from factories import at, make_ticket


def ids(tickets):
    return [t.id for t in tickets]


def test_open_before_completed_then_urgency_then_oldest():
    tickets = [
        make_ticket("done-high", Urgency.HIGH, at(2024, 3, 1, 8), TicketStatus.COMPLETED, at(2024, 3, 1, 9)),
        make_ticket("medium-early", Urgency.MEDIUM, at(2024, 3, 1, 9)),
        make_ticket("high-late", Urgency.HIGH, at(2024, 3, 1, 10)),
        make_ticket("low", Urgency.LOW, at(2024, 3, 1, 7)),
        make_ticket("high-early", Urgency.HIGH, at(2024, 3, 1, 6), TicketStatus.IN_PROGRESS),
    ]

    assert ids(filter_and_sort(tickets)) == [
        "high-early", "high-late", "medium-early", "low", "done-high"
    ]


def test_later_high_beats_earlier_medium_but_not_after_completed():
    medium = make_ticket("m", Urgency.MEDIUM, at(2024, 3, 1, 8))
    high = make_ticket("h", Urgency.HIGH, at(2024, 3, 1, 12))
    done = make_ticket("d", Urgency.LOW, at(2024, 3, 1, 1), TicketStatus.COMPLETED, at(2024, 3, 1, 2))

    ordered = ids(filter_and_sort([done, medium, high]))

    assert ordered == ["h", "m", "d"]


def test_sort_is_stable_for_identical_keys():
    same_time = at(2024, 3, 1, 9)
    tickets = [make_ticket(f"t{i}", Urgency.LOW, same_time) for i in range(5)]

    assert ids(filter_and_sort(tickets)) == ["t0", "t1", "t2", "t3", "t4"]


def test_query_is_case_sensitive_substring_on_three_fields():
    tickets = [
        make_ticket("by-name", name="Printer Pat"),
        make_ticket("by-req", requirement="VPN keeps dropping"),
        make_ticket("by-dept", department="VPN Team"),
        make_ticket("lower", requirement="vpn at home"),
        make_ticket("by-phone", phone="VPN-1"),
    ]

    assert ids(filter_and_sort(tickets, query="VPN")) == ["by-req", "by-dept"]


def test_urgency_filter_accepts_all_or_exact():
    tickets = [
        make_ticket("h", Urgency.HIGH),
        make_ticket("l", Urgency.LOW),
    ]

    assert ids(filter_and_sort(tickets, urgency="all")) == ["h", "l"]
    assert ids(filter_and_sort(tickets, urgency=Urgency.LOW)) == ["l"]
    assert ids(filter_and_sort(tickets, urgency="high")) == ["h"]


def test_search_history_is_newest_first_and_case_insensitive():
    tickets = [
        make_ticket("old", requested=at(2024, 3, 1), name="Casey Huang"),
        make_ticket("new", requested=at(2024, 3, 5), name="casey huang"),
        make_ticket("other", requested=at(2024, 3, 3), name="Riley Tsai", department="Facilities"),
    ]

    assert ids(search_history(tickets, "CASEY")) == ["new", "old"]


def test_search_history_active_only_hides_completed():
    tickets = [
        make_ticket("open", requested=at(2024, 3, 2)),
        make_ticket("done", requested=at(2024, 3, 3), status=TicketStatus.COMPLETED, completed=at(2024, 3, 3, 10)),
    ]

    assert ids(search_history(tickets, "", active_only=True)) == ["open"]
    assert ids(search_history(tickets, "")) == ["done", "open"]


def test_pending_count():
    tickets = [
        make_ticket("a"),
        make_ticket("b", status=TicketStatus.IN_PROGRESS),
        make_ticket("c", status=TicketStatus.COMPLETED, completed=at(2024, 3, 1, 11)),
    ]
    assert pending_count(tickets) == 2
