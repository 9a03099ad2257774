"""
Slot availability: the fixed daily time grid and occupancy checks.

Pure domain logic without any external dependencies (no store, no I/O). The
result only reflects the appointment snapshot passed in; nothing is reserved.
"""

from dataclasses import dataclass
from typing import Iterable, List, Optional

from .dates import normalize_time
from .models import Appointment, AppointmentStatus

DEFAULT_START_HOUR = 10
DEFAULT_END_HOUR = 20
DEFAULT_STEP_MINUTES = 30


def generate_daily_slots(
    start_hour: int = DEFAULT_START_HOUR,
    end_hour: int = DEFAULT_END_HOUR,
    step_minutes: int = DEFAULT_STEP_MINUTES,
) -> List[str]:
    """
    Build the ordered list of bookable times for one day.

    With the defaults this is 10:00, 10:30, ..., 19:30 (20 slots). The end
    hour itself is not a slot.
    """
    slots: List[str] = []
    minute_of_day = start_hour * 60

    while minute_of_day < end_hour * 60:
        hour, minute = divmod(minute_of_day, 60)
        slots.append(f"{hour:02d}:{minute:02d}")
        minute_of_day += step_minutes

    return slots


def is_occupied(
    staff_id: Optional[str],
    date: Optional[str],
    time: str,
    appointments: Iterable[Appointment],
) -> bool:
    """
    Check whether a non-cancelled appointment holds the (staff, date, time) slot.

    Dates are compared as exact strings, so callers pass ``YYYY-MM-DD``. An
    unset staff member or date never blocks anything.
    """
    if not staff_id or not date:
        return False

    wanted_time = normalize_time(time)

    return any(
        appt.staff_id == staff_id
        and appt.date == date
        and appt.time == wanted_time
        and appt.status != AppointmentStatus.CANCELLED
        for appt in appointments
    )


@dataclass(frozen=True)
class SlotState:
    """One cell of the availability grid."""
    time: str
    occupied: bool

    @property
    def free(self) -> bool:
        return not self.occupied


class SlotAvailability:
    """
    Computes the availability grid for a staff member on a given day.
    """

    def __init__(
        self,
        start_hour: int = DEFAULT_START_HOUR,
        end_hour: int = DEFAULT_END_HOUR,
        step_minutes: int = DEFAULT_STEP_MINUTES,
    ):
        self.start_hour = start_hour
        self.end_hour = end_hour
        self.step_minutes = step_minutes
        self._slots = generate_daily_slots(start_hour, end_hour, step_minutes)

    def daily_slots(self) -> List[str]:
        return list(self._slots)

    def is_grid_slot(self, time: str) -> bool:
        return normalize_time(time) in self._slots

    def slot_states(
        self,
        staff_id: Optional[str],
        date: Optional[str],
        appointments: Iterable[Appointment],
    ) -> List[SlotState]:
        """Return every grid slot with its occupancy for the staff member and day."""
        # Narrow once; the grid is checked against the same small subset 20 times.
        relevant = [
            appt for appt in appointments
            if appt.staff_id == staff_id and appt.date == date
        ]

        return [
            SlotState(time=slot, occupied=is_occupied(staff_id, date, slot, relevant))
            for slot in self._slots
        ]

    def free_slots(
        self,
        staff_id: Optional[str],
        date: Optional[str],
        appointments: Iterable[Appointment],
    ) -> List[str]:
        return [
            state.time
            for state in self.slot_states(staff_id, date, appointments)
            if state.free
        ]

    def is_free(
        self,
        staff_id: Optional[str],
        date: Optional[str],
        time: str,
        appointments: Iterable[Appointment],
    ) -> bool:
        return not is_occupied(staff_id, date, time, appointments)
