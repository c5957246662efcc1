"""
Helpdesk Reports

Aggregations over the full ticket list for managers:
- Daily report (requested / completed / still open at end of day)
- Monthly report (totals, department breakdown, per-day trend)
- Average resolution time
- Dashboard summary

Day and month boundaries are taken in the reporting timezone.
"""

import calendar
import math
from collections import Counter
from datetime import date, datetime, time, timedelta, tzinfo
from typing import Iterable, List, Optional

from pydantic import BaseModel

from ..models.ticket import Ticket, TicketStatus, Urgency, utcnow


# =============================================================================
# REPORT MODELS
# =============================================================================

class DailyReport(BaseModel):
    day: date
    requests: List[Ticket]
    completed: List[Ticket]
    pending: List[Ticket]


class DepartmentCount(BaseModel):
    department: str
    count: int


class DayCount(BaseModel):
    day: int
    count: int


class MonthlyReport(BaseModel):
    year: int
    month: int
    total: int
    completed_count: int
    pending_count: int
    departments: List[DepartmentCount]
    daily_trend: List[DayCount]
    tickets: List[Ticket]


class DateCount(BaseModel):
    day: date
    count: int


class SummaryStats(BaseModel):
    today_completed: int
    total_completed: int
    avg_resolution_minutes: int
    last_7_days: List[DateCount]
    urgency_counts: dict


# =============================================================================
# HELPERS
# =============================================================================

def _local_date(moment: datetime, tz: tzinfo) -> date:
    return moment.astimezone(tz).date()


def _start_of(day: date, tz: tzinfo) -> datetime:
    return datetime.combine(day, time.min, tzinfo=tz)


def _completed_on(ticket: Ticket, day: date, tz: tzinfo) -> bool:
    return (
        ticket.status == TicketStatus.COMPLETED and
        ticket.completion_time is not None and
        _local_date(ticket.completion_time, tz) == day
    )


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


# =============================================================================
# REPORTS
# =============================================================================

def daily_report(tickets: Iterable[Ticket], day: date, tz: tzinfo) -> DailyReport:
    """
    Three buckets for day D:

    - requests: filed on D
    - completed: signed off on D
    - pending: filed by end of D and still open at end of D
      (never completed, or completed on a later day)
    """
    tickets = list(tickets)
    end_of_day = _start_of(day + timedelta(days=1), tz)

    requests = [t for t in tickets if _local_date(t.request_time, tz) == day]
    completed = [t for t in tickets if _completed_on(t, day, tz)]

    pending = []
    for t in tickets:
        if t.request_time >= end_of_day:
            continue
        not_completed = t.status != TicketStatus.COMPLETED
        completed_later = t.completion_time is not None and t.completion_time >= end_of_day
        if not_completed or completed_later:
            pending.append(t)

    return DailyReport(day=day, requests=requests, completed=completed, pending=pending)


def monthly_report(
    tickets: Iterable[Ticket],
    year: int,
    month: int,
    tz: tzinfo
) -> MonthlyReport:
    """
    Tickets filed in the month, with a department breakdown (largest first)
    and a request count for every day of the month.
    """
    month_tickets = []
    for t in tickets:
        local = t.request_time.astimezone(tz)
        if local.year == year and local.month == month:
            month_tickets.append(t)

    completed_count = sum(1 for t in month_tickets if t.status == TicketStatus.COMPLETED)

    # Counter keeps first-seen order; sorted() is stable for ties
    by_department = Counter(t.department for t in month_tickets)
    departments = [
        DepartmentCount(department=name, count=count)
        for name, count in sorted(by_department.items(), key=lambda kv: kv[1], reverse=True)
    ]

    days_in_month = calendar.monthrange(year, month)[1]
    by_day = Counter(t.request_time.astimezone(tz).day for t in month_tickets)
    daily_trend = [DayCount(day=d, count=by_day.get(d, 0)) for d in range(1, days_in_month + 1)]

    return MonthlyReport(
        year=year,
        month=month,
        total=len(month_tickets),
        completed_count=completed_count,
        pending_count=len(month_tickets) - completed_count,
        departments=departments,
        daily_trend=daily_trend,
        tickets=month_tickets,
    )


def average_resolution_minutes(tickets: Iterable[Ticket]) -> int:
    """
    Mean time from request to completion, in whole minutes.

    Only completed tickets with a completion time count. 0 when none do.
    """
    durations = [
        (t.completion_time - t.request_time).total_seconds()
        for t in tickets
        if t.status == TicketStatus.COMPLETED and t.completion_time is not None
    ]
    if not durations:
        return 0
    return _round_half_up(sum(durations) / len(durations) / 60)


def summary_stats(
    tickets: Iterable[Ticket],
    tz: tzinfo,
    now: Optional[datetime] = None
) -> SummaryStats:
    """Dashboard headline numbers."""
    tickets = list(tickets)
    today = _local_date(now or utcnow(), tz)

    last_7_days = []
    for offset in range(6, -1, -1):
        day = today - timedelta(days=offset)
        last_7_days.append(DateCount(
            day=day,
            count=sum(1 for t in tickets if _completed_on(t, day, tz))
        ))

    return SummaryStats(
        today_completed=last_7_days[-1].count,
        total_completed=sum(1 for t in tickets if t.status == TicketStatus.COMPLETED),
        avg_resolution_minutes=average_resolution_minutes(tickets),
        last_7_days=last_7_days,
        urgency_counts={
            u.value: sum(1 for t in tickets if t.urgency == u) for u in Urgency
        },
    )
