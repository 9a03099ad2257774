"""
Appointment lifecycle and reschedule negotiation.

Every operation takes the current ``Appointment`` and returns the field
updates to write to its store record (``DELETE_FIELD`` removes a field). No
function here touches the store, and none of them re-checks slot occupancy:
approving a change or accepting a proposal moves the appointment even if
another booking now holds the target slot.

Negotiation state lives in a single ``pendingChange`` field:

    none --request_change--> customer/pending --approve--> none (moved)
                                              --reject---> customer/rejected
                                              --withdraw-> none
    none --propose_admin_change--> admin/pending --accept--> none (moved)
                                                 --reject--> admin/rejected

A new request or proposal from either side replaces whatever the field holds.
"""

import logging
from dataclasses import replace
from typing import Any, Dict, Iterable, Optional

from .dates import normalize_date, normalize_time, utc_timestamp
from .exceptions import NegotiationError, ValidationError
from .models import (
    DELETE_FIELD,
    Appointment,
    AppointmentStatus,
    ChangeStatus,
    PendingChange,
    Proposer,
    ServiceItem,
    User,
)

logger = logging.getLogger(__name__)

FieldUpdates = Dict[str, Any]

# Fields written by clients that predate the single negotiation field.
LEGACY_NEGOTIATION_FIELDS = ("changeRequest", "adminProposal")


def new_booking(
    customer: User,
    staff: User,
    service: ServiceItem,
    date: str,
    time: str,
    notes: Optional[str] = None,
) -> Appointment:
    """Self-service booking. Starts out pending until the salon confirms it."""
    return _build_appointment(customer, staff, service, date, time, AppointmentStatus.PENDING, notes)


def new_admin_booking(
    customer: User,
    staff: User,
    service: ServiceItem,
    date: str,
    time: str,
    roster: Iterable[User],
    notes: Optional[str] = None,
) -> Appointment:
    """Admin direct entry. Confirmed immediately; the staff member must be on the roster."""
    _require_on_roster(staff, roster)
    return _build_appointment(customer, staff, service, date, time, AppointmentStatus.CONFIRMED, notes)


def update_status(appointment: Appointment, status: str) -> FieldUpdates:
    """Set the status directly. Other appointments are not consulted."""
    try:
        new_status = AppointmentStatus(status)
    except ValueError as exc:
        raise ValidationError(f"Unknown appointment status '{status}'") from exc
    return {"status": new_status.value}


def cancel(appointment: Appointment) -> FieldUpdates:
    return {"status": AppointmentStatus.CANCELLED.value}


def request_change(
    appointment: Appointment,
    new_date: str,
    new_time: str,
    now: Optional[str] = None,
) -> FieldUpdates:
    """Customer asks to move the appointment; the admin decides."""
    if appointment.status == AppointmentStatus.CANCELLED:
        raise NegotiationError("A cancelled appointment cannot be rescheduled")

    return _open_negotiation(Proposer.CUSTOMER, appointment, new_date, new_time, now)


def withdraw_change_request(appointment: Appointment) -> FieldUpdates:
    """
    Customer takes back their change request.

    Returns no updates when there is nothing to withdraw, including when the
    field holds an admin proposal.
    """
    if appointment.change_request is None:
        return {}
    return _clear_negotiation()


def approve_change_request(
    appointment: Appointment,
    new_date: Optional[str],
    new_time: Optional[str],
) -> FieldUpdates:
    """Admin accepts the customer's request, moving the appointment to the given slot."""
    if appointment.change_request is None:
        raise NegotiationError(f"Appointment {appointment.id} has no change request")
    if not new_date or not new_time:
        raise NegotiationError("New date and time are required to approve a change request")

    return _move_to(normalize_date(new_date), normalize_time(new_time))


def reject_change_request(appointment: Appointment) -> FieldUpdates:
    """Admin declines. The rejected request stays visible to the customer."""
    request = appointment.change_request
    if request is None:
        raise NegotiationError(f"Appointment {appointment.id} has no change request")

    return _write_negotiation(replace(request, status=ChangeStatus.REJECTED))


def propose_admin_change(
    appointment: Appointment,
    new_date: str,
    new_time: str,
    now: Optional[str] = None,
) -> FieldUpdates:
    """Admin suggests a new slot; the customer decides."""
    return _open_negotiation(Proposer.ADMIN, appointment, new_date, new_time, now)


def accept_admin_proposal(appointment: Appointment) -> FieldUpdates:
    proposal = appointment.admin_proposal
    if proposal is None:
        raise NegotiationError(f"Appointment {appointment.id} has no admin proposal")

    return _move_to(proposal.new_date, proposal.new_time)


def reject_admin_proposal(appointment: Appointment) -> FieldUpdates:
    proposal = appointment.admin_proposal
    if proposal is None:
        raise NegotiationError(f"Appointment {appointment.id} has no admin proposal")

    return _write_negotiation(replace(proposal, status=ChangeStatus.REJECTED))


def edit_details(
    appointment: Appointment,
    staff: User,
    service: ServiceItem,
    date: str,
    time: str,
    roster: Iterable[User],
    notes: Optional[str] = None,
) -> FieldUpdates:
    """Admin force-edit of staff, slot, service and notes. Negotiation state is left alone."""
    _require_on_roster(staff, roster)

    return {
        "staffId": staff.id,
        "staffName": staff.name,
        "date": normalize_date(date),
        "time": normalize_time(time),
        "serviceId": service.id,
        "serviceName": service.name,
        "notes": notes or "",
    }


def apply_updates(appointment: Appointment, updates: FieldUpdates) -> Appointment:
    """Return the appointment as it reads after ``updates`` are written to its record."""
    record = appointment.to_record()
    record["id"] = appointment.id

    for key, value in updates.items():
        if value is DELETE_FIELD:
            record.pop(key, None)
        else:
            record[key] = value

    return Appointment.from_record(record)


def _build_appointment(
    customer: User,
    staff: User,
    service: ServiceItem,
    date: str,
    time: str,
    status: AppointmentStatus,
    notes: Optional[str],
) -> Appointment:
    return Appointment(
        id="",
        customer_id=customer.id,
        customer_name=customer.name,
        staff_id=staff.id,
        staff_name=staff.name,
        date=normalize_date(date),
        time=normalize_time(time),
        service_id=service.id,
        service_name=service.name,
        status=status,
        notes=notes or None,
    )


def _require_on_roster(staff: User, roster: Iterable[User]) -> None:
    if not any(member.id == staff.id for member in roster):
        raise ValidationError(f"'{staff.name}' is not a member of the salon staff")


def _open_negotiation(
    proposer: Proposer,
    appointment: Appointment,
    new_date: str,
    new_time: str,
    now: Optional[str],
) -> FieldUpdates:
    current = appointment.pending_change
    if current is not None and current.is_pending and current.proposed_by != proposer:
        logger.info(
            "Appointment %s: %s proposal supersedes pending %s proposal",
            appointment.id,
            proposer.value,
            current.proposed_by.value,
        )

    change = PendingChange(
        proposed_by=proposer,
        new_date=normalize_date(new_date),
        new_time=normalize_time(new_time),
        status=ChangeStatus.PENDING,
        created_at=now or utc_timestamp(),
    )
    return _write_negotiation(change)


def _move_to(new_date: str, new_time: str) -> FieldUpdates:
    updates: FieldUpdates = {
        "date": new_date,
        "time": new_time,
        "status": AppointmentStatus.CONFIRMED.value,
    }
    updates.update(_clear_negotiation())
    return updates


def _write_negotiation(change: PendingChange) -> FieldUpdates:
    updates: FieldUpdates = {"pendingChange": change.to_record()}
    for legacy_field in LEGACY_NEGOTIATION_FIELDS:
        updates[legacy_field] = DELETE_FIELD
    return updates


def _clear_negotiation() -> FieldUpdates:
    updates: FieldUpdates = {"pendingChange": DELETE_FIELD}
    for legacy_field in LEGACY_NEGOTIATION_FIELDS:
        updates[legacy_field] = DELETE_FIELD
    return updates
