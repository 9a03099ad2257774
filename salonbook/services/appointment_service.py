"""
Application service applying the appointment lifecycle to the record store.

Each operation reads one appointment, lets ``domain.lifecycle`` compute the
field updates, and writes them back to that single record. Precondition
violations surface before anything is written.
"""

from __future__ import annotations

import logging
from typing import Callable, Iterable, List, Optional, Sequence

from ..adapters.record_store import RecordStoreProtocol
from ..domain import lifecycle
from ..domain.exceptions import RecordConflictError, RecordNotFoundError, SlotUnavailableError, ValidationError
from ..domain.models import APPOINTMENTS, Appointment, AppointmentStatus, ServiceItem, User
from ..domain.roster import customer_appointments
from ..domain.slot_grid import SlotAvailability

logger = logging.getLogger(__name__)


class AppointmentService:
    """
    Creates, negotiates and closes appointments.

    Self-service bookings go through the store's conditional create keyed by
    (staffId, date, time) over non-cancelled records, so two customers racing
    for one slot cannot both win. Direct store writes, admin entries and
    negotiation outcomes are not checked against other appointments.
    """

    def __init__(
        self,
        store: RecordStoreProtocol,
        availability: SlotAvailability,
        catalog: Sequence[ServiceItem],
    ):
        self._store = store
        self.availability = availability
        self.catalog = list(catalog)

    # =========================================================================
    # Queries
    # =========================================================================

    def get(self, appointment_id: str) -> Appointment:
        record = self._store.get_record(APPOINTMENTS, appointment_id)
        if record is None:
            raise RecordNotFoundError(f"Appointment {appointment_id} not found")
        return Appointment.from_record(record)

    def list_all(self) -> List[Appointment]:
        return [Appointment.from_record(record) for record in self._store.list_records(APPOINTMENTS)]

    def list_for_customer(self, customer_id: str) -> List[Appointment]:
        records = self._store.query_by_equality(APPOINTMENTS, "customerId", customer_id)
        return customer_appointments(
            (Appointment.from_record(record) for record in records),
            customer_id,
        )

    def find_service(self, service_id: str) -> ServiceItem:
        for service in self.catalog:
            if service.id == service_id:
                return service
        raise ValidationError(f"Unknown service '{service_id}'")

    # =========================================================================
    # Creation
    # =========================================================================

    def book(
        self,
        customer: User,
        staff: User,
        service: ServiceItem,
        date: str,
        time: str,
        notes: Optional[str] = None,
    ) -> Appointment:
        """
        Customer self-service booking (status pending).

        Raises:
            ValidationError: If the time is not on the daily grid
            SlotUnavailableError: If a non-cancelled appointment already holds the slot
        """
        appointment = lifecycle.new_booking(customer, staff, service, date, time, notes)
        if not self.availability.is_grid_slot(appointment.time):
            raise ValidationError(f"{appointment.time} is not a bookable time")

        try:
            appointment.id = self._store.create_record_unless_exists(
                APPOINTMENTS,
                appointment.to_record(),
                match={
                    "staffId": appointment.staff_id,
                    "date": appointment.date,
                    "time": appointment.time,
                },
                exclude={"status": AppointmentStatus.CANCELLED.value},
            )
        except RecordConflictError as exc:
            raise SlotUnavailableError(
                f"{appointment.staff_name} is already booked on {appointment.date} at {appointment.time}"
            ) from exc

        logger.info(
            "Booked appointment %s: %s with %s on %s %s",
            appointment.id,
            appointment.customer_name,
            appointment.staff_name,
            appointment.date,
            appointment.time,
        )
        return appointment

    def admin_book(
        self,
        customer: User,
        staff: User,
        service: ServiceItem,
        date: str,
        time: str,
        roster: Iterable[User],
        notes: Optional[str] = None,
    ) -> Appointment:
        """Admin direct entry (status confirmed). Not checked against the grid or other bookings."""
        appointment = lifecycle.new_admin_booking(customer, staff, service, date, time, roster, notes)
        appointment.id = self._store.create_record(APPOINTMENTS, appointment.to_record())
        logger.info("Admin created appointment %s for %s", appointment.id, appointment.customer_name)
        return appointment

    # =========================================================================
    # Status changes
    # =========================================================================

    def update_status(self, appointment_id: str, status: str) -> Appointment:
        return self._apply(appointment_id, lifecycle.update_status, status)

    def cancel(self, appointment_id: str) -> Appointment:
        return self._apply(appointment_id, lifecycle.cancel)

    def delete(self, appointment_id: str) -> None:
        self._store.delete_record(APPOINTMENTS, appointment_id)
        logger.info("Deleted appointment %s", appointment_id)

    def edit_details(
        self,
        appointment_id: str,
        staff: User,
        service: ServiceItem,
        date: str,
        time: str,
        roster: Iterable[User],
        notes: Optional[str] = None,
    ) -> Appointment:
        return self._apply(appointment_id, lifecycle.edit_details, staff, service, date, time, list(roster), notes)

    # =========================================================================
    # Negotiation
    # =========================================================================

    def request_change(self, appointment_id: str, new_date: str, new_time: str) -> Appointment:
        return self._apply(appointment_id, lifecycle.request_change, new_date, new_time)

    def withdraw_change_request(self, appointment_id: str) -> Appointment:
        return self._apply(appointment_id, lifecycle.withdraw_change_request)

    def approve_change_request(
        self,
        appointment_id: str,
        new_date: Optional[str],
        new_time: Optional[str],
    ) -> Appointment:
        return self._apply(appointment_id, lifecycle.approve_change_request, new_date, new_time)

    def reject_change_request(self, appointment_id: str) -> Appointment:
        return self._apply(appointment_id, lifecycle.reject_change_request)

    def propose_admin_change(self, appointment_id: str, new_date: str, new_time: str) -> Appointment:
        return self._apply(appointment_id, lifecycle.propose_admin_change, new_date, new_time)

    def accept_admin_proposal(self, appointment_id: str) -> Appointment:
        return self._apply(appointment_id, lifecycle.accept_admin_proposal)

    def reject_admin_proposal(self, appointment_id: str) -> Appointment:
        return self._apply(appointment_id, lifecycle.reject_admin_proposal)

    def _apply(
        self,
        appointment_id: str,
        operation: Callable[..., lifecycle.FieldUpdates],
        *args,
    ) -> Appointment:
        appointment = self.get(appointment_id)
        updates = operation(appointment, *args)

        if not updates:
            return appointment

        self._store.update_record(APPOINTMENTS, appointment_id, updates)
        logger.info("Appointment %s: %s", appointment_id, operation.__name__)
        return lifecycle.apply_updates(appointment, updates)
