"""
Four-step self-service booking: service -> staff -> date/time -> confirm.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import List, Optional, Sequence

from ..domain.dates import normalize_date, normalize_time, today_string
from ..domain.exceptions import SalonBookError, SlotUnavailableError, ValidationError
from ..domain.models import Appointment, ServiceItem, User
from ..domain.slot_grid import SlotState
from .appointment_service import AppointmentService
from .snapshot_cache import AppointmentCache

logger = logging.getLogger(__name__)


class BookingStep(str, Enum):
    SERVICE = "service"
    STAFF = "staff"
    DATETIME = "datetime"
    CONFIRM = "confirm"


class BookingWizard:
    """
    Holds the customer's selections and turns them into a pending appointment.

    The time grid is derived from the live appointment cache, so it can change
    while the customer is choosing. The final booking is committed with a
    conditional create; losing a race sends the customer back to the time grid.
    """

    def __init__(
        self,
        customer: User,
        appointments: AppointmentService,
        cache: AppointmentCache,
        staff: Sequence[User],
        today: Optional[str] = None,
    ):
        self.customer = customer
        self._appointments = appointments
        self._cache = cache
        self.staff_list = [member for member in staff if member.can_take_bookings]
        self.today = today or today_string()

        self.step = BookingStep.SERVICE
        self.service: Optional[ServiceItem] = None
        self.staff: Optional[User] = None
        self.date: str = self.today
        self.time: Optional[str] = None
        self.is_busy = False

    @property
    def services(self) -> List[ServiceItem]:
        return list(self._appointments.catalog)

    def select_service(self, service_id: str) -> None:
        if not service_id:
            raise ValidationError("Please choose a service")
        self.service = self._appointments.find_service(service_id)
        self.step = BookingStep.STAFF

    def select_staff(self, staff_id: str) -> None:
        self._require(self.service, "Please choose a service first")
        if not staff_id:
            raise ValidationError("Please choose a staff member")

        member = next((m for m in self.staff_list if m.id == staff_id), None)
        if member is None:
            raise ValidationError(f"Unknown staff member '{staff_id}'")

        self.staff = member
        self.time = None
        self.step = BookingStep.DATETIME

    def select_date(self, date: str) -> None:
        """Change the day. Past days are not bookable; a chosen time is dropped."""
        normalized = normalize_date(date)
        if normalized < self.today:
            raise ValidationError(f"{normalized} is in the past")

        self.date = normalized
        self.time = None
        if self.step == BookingStep.CONFIRM:
            self.step = BookingStep.DATETIME

    def time_slots(self) -> List[SlotState]:
        """The grid for the selected staff member and day, against the latest snapshot."""
        staff_id = self.staff.id if self.staff else None
        return self._appointments.availability.slot_states(staff_id, self.date, self._cache.appointments)

    def select_time(self, time: str) -> None:
        self._require(self.staff, "Please choose a staff member first")
        if not time:
            raise ValidationError("Please choose a time")

        normalized = normalize_time(time)
        availability = self._appointments.availability
        if not availability.is_grid_slot(normalized):
            raise ValidationError(f"{normalized} is not a bookable time")
        if not availability.is_free(self.staff.id, self.date, normalized, self._cache.appointments):
            raise SlotUnavailableError(f"{normalized} on {self.date} is already taken")

        self.time = normalized
        self.step = BookingStep.CONFIRM

    def back(self) -> None:
        if self.step == BookingStep.STAFF:
            self.step = BookingStep.SERVICE
        elif self.step == BookingStep.DATETIME:
            self.step = BookingStep.STAFF
        elif self.step == BookingStep.CONFIRM:
            self.step = BookingStep.DATETIME

    def confirm(self, notes: Optional[str] = None) -> Appointment:
        """
        Create the appointment.

        Raises:
            ValidationError: If a selection is missing or a confirm is already running
            SlotUnavailableError: If someone else booked the slot in the meantime
        """
        if self.is_busy:
            raise ValidationError("Booking is already being processed")
        self._require(self.service, "Please choose a service")
        self._require(self.staff, "Please choose a staff member")
        self._require(self.time, "Please choose a time")

        self.is_busy = True
        try:
            return self._appointments.book(
                self.customer,
                self.staff,
                self.service,
                self.date,
                self.time,
                notes,
            )
        except SlotUnavailableError:
            logger.info("Slot %s %s was taken before confirmation", self.date, self.time)
            self.time = None
            self.step = BookingStep.DATETIME
            raise
        except SalonBookError:
            logger.warning("Booking failed for %s", self.customer.name, exc_info=True)
            raise
        finally:
            self.is_busy = False

    @staticmethod
    def _require(value: object, message: str) -> None:
        if not value:
            raise ValidationError(message)
