"""
Read-only roster views derived from the full appointment set.

Nothing here is persisted; every view is recomputed from the latest snapshot.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterable, List, Optional

from .models import Appointment, AppointmentStatus

ALL = "all"


class DateWindow(str, Enum):
    UPCOMING = "upcoming"  # date >= today
    PAST = "past"          # date < today
    ALL = "all"


@dataclass(frozen=True)
class RosterFilter:
    """
    Filter settings of the management roster.

    ``status`` and ``staff_id`` accept ``"all"`` to disable the filter.
    """
    search: str = ""
    status: str = ALL
    staff_id: str = ALL
    date_window: DateWindow = DateWindow.UPCOMING


@dataclass
class DayGroup:
    """Appointments of one calendar day, ordered by time."""
    date: str
    appointments: List[Appointment] = field(default_factory=list)


@dataclass(frozen=True)
class RosterStats:
    total: int
    pending_change_requests: int
    today: int


def filter_appointments(
    appointments: Iterable[Appointment],
    roster_filter: RosterFilter,
    today: str,
) -> List[Appointment]:
    """
    Apply text search, status, staff and date-window filters.

    The text search is a case-insensitive substring match on customer,
    service and staff names.
    """
    filtered = list(appointments)

    if roster_filter.search:
        needle = roster_filter.search.lower()
        filtered = [
            appt for appt in filtered
            if needle in appt.customer_name.lower()
            or needle in appt.service_name.lower()
            or needle in appt.staff_name.lower()
        ]

    if roster_filter.status != ALL:
        filtered = [appt for appt in filtered if appt.status.value == roster_filter.status]

    if roster_filter.staff_id != ALL:
        filtered = [appt for appt in filtered if appt.staff_id == roster_filter.staff_id]

    window = DateWindow(roster_filter.date_window)
    if window == DateWindow.UPCOMING:
        filtered = [appt for appt in filtered if appt.date >= today]
    elif window == DateWindow.PAST:
        filtered = [appt for appt in filtered if appt.date < today]

    return filtered


def group_by_date(
    appointments: Iterable[Appointment],
    date_window: DateWindow = DateWindow.UPCOMING,
) -> List[DayGroup]:
    """
    Group appointments by day.

    Days run newest first for the past window and oldest first otherwise;
    within a day appointments are ordered by time.
    """
    groups: Dict[str, DayGroup] = {}
    for appt in appointments:
        groups.setdefault(appt.date, DayGroup(date=appt.date)).appointments.append(appt)

    for group in groups.values():
        group.appointments.sort(key=lambda appt: appt.time)

    newest_first = DateWindow(date_window) == DateWindow.PAST
    return sorted(groups.values(), key=lambda group: group.date, reverse=newest_first)


def build_roster(
    appointments: Iterable[Appointment],
    roster_filter: RosterFilter,
    today: str,
) -> List[DayGroup]:
    """Filter, then group and sort, the way the management roster displays them."""
    filtered = filter_appointments(appointments, roster_filter, today)
    return group_by_date(filtered, roster_filter.date_window)


def pending_change_requests(appointments: Iterable[Appointment]) -> List[Appointment]:
    """Appointments whose customer is waiting for an answer on a change request."""
    return [
        appt for appt in appointments
        if appt.change_request is not None and appt.change_request.is_pending
    ]


def roster_stats(appointments: Iterable[Appointment], today: str) -> RosterStats:
    appointments = list(appointments)
    return RosterStats(
        total=len(appointments),
        pending_change_requests=len(pending_change_requests(appointments)),
        today=sum(
            1 for appt in appointments
            if appt.date == today and appt.status != AppointmentStatus.CANCELLED
        ),
    )


def customer_appointments(
    appointments: Iterable[Appointment],
    customer_id: Optional[str],
) -> List[Appointment]:
    """A customer's own appointments, latest date first."""
    mine = [appt for appt in appointments if appt.customer_id == customer_id]
    mine.sort(key=lambda appt: appt.date, reverse=True)
    return mine
