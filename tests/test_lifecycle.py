"""
Tests for the appointment lifecycle and reschedule negotiation rules.
"""

import pytest

from salonbook.domain import lifecycle
from salonbook.domain.exceptions import NegotiationError, ValidationError
from salonbook.domain.models import (
    DELETE_FIELD,
    AppointmentStatus,
    ChangeStatus,
    PendingChange,
    Proposer,
)

NOW = "2025-06-01T09:00:00Z"


def _after(appointment, updates):
    return lifecycle.apply_updates(appointment, updates)


class TestCreation:
    """Tests for new bookings."""

    def test_self_service_booking_is_pending(self, customer, staff_a, haircut):
        appt = lifecycle.new_booking(customer, staff_a, haircut, "2025-06-10", "9:30", notes="")

        assert appt.status == AppointmentStatus.PENDING
        assert appt.time == "09:30"
        assert appt.customer_name == "Deniz Kaya"
        assert appt.staff_name == "Ali Usta"
        assert appt.service_name == haircut.name
        assert appt.notes is None

    def test_admin_booking_is_confirmed(self, customer, staff_a, haircut, roster_members):
        appt = lifecycle.new_admin_booking(customer, staff_a, haircut, "2025-06-10", "12:00", roster_members)

        assert appt.status == AppointmentStatus.CONFIRMED

    def test_admin_booking_requires_roster_member(self, customer, staff_a, haircut, admin_user):
        with pytest.raises(ValidationError):
            lifecycle.new_admin_booking(customer, staff_a, haircut, "2025-06-10", "12:00", [admin_user])


class TestStatus:
    """Tests for direct status changes."""

    def test_update_status(self, make_appointment):
        assert lifecycle.update_status(make_appointment(), "completed") == {"status": "completed"}

    def test_update_status_rejects_unknown(self, make_appointment):
        with pytest.raises(ValidationError):
            lifecycle.update_status(make_appointment(), "done")

    def test_cancel(self, make_appointment):
        appt = _after(make_appointment(), lifecycle.cancel(make_appointment()))

        assert appt.status == AppointmentStatus.CANCELLED


class TestCustomerChangeRequest:
    """Customer asks, admin decides."""

    def test_request_change_writes_single_field(self, make_appointment):
        updates = lifecycle.request_change(make_appointment(), "2025-06-11", "9:00", now=NOW)

        assert updates["pendingChange"] == {
            "proposedBy": "customer",
            "newDate": "2025-06-11",
            "newTime": "09:00",
            "status": "pending",
            "createdAt": NOW,
        }
        assert updates["changeRequest"] is DELETE_FIELD
        assert updates["adminProposal"] is DELETE_FIELD

    def test_cancelled_appointment_cannot_be_rescheduled(self, make_appointment):
        with pytest.raises(NegotiationError):
            lifecycle.request_change(
                make_appointment(status=AppointmentStatus.CANCELLED), "2025-06-11", "10:00"
            )

    def test_approve_moves_and_confirms(self, make_appointment):
        appt = make_appointment(status=AppointmentStatus.PENDING)
        appt = _after(appt, lifecycle.request_change(appt, "2025-06-11", "10:00", now=NOW))

        moved = _after(appt, lifecycle.approve_change_request(appt, "2025-06-11", "10:00"))

        assert moved.date == "2025-06-11"
        assert moved.time == "10:00"
        assert moved.status == AppointmentStatus.CONFIRMED
        assert moved.change_request is None
        assert "pendingChange" not in moved.to_record()

    def test_approve_uses_given_values(self, make_appointment):
        """The admin's approve call carries the slot; the request only gates it."""
        appt = make_appointment()
        appt = _after(appt, lifecycle.request_change(appt, "2025-06-11", "10:00", now=NOW))

        moved = _after(appt, lifecycle.approve_change_request(appt, "2025-06-12", "11:30"))

        assert (moved.date, moved.time) == ("2025-06-12", "11:30")

    def test_approve_without_request_fails(self, make_appointment):
        with pytest.raises(NegotiationError):
            lifecycle.approve_change_request(make_appointment(), "2025-06-11", "10:00")

    @pytest.mark.parametrize("new_date, new_time", [(None, "10:00"), ("2025-06-11", ""), (None, None)])
    def test_approve_requires_date_and_time(self, make_appointment, new_date, new_time):
        appt = make_appointment()
        appt = _after(appt, lifecycle.request_change(appt, "2025-06-11", "10:00", now=NOW))

        with pytest.raises(NegotiationError):
            lifecycle.approve_change_request(appt, new_date, new_time)

    def test_reject_keeps_slot_and_marks_request(self, make_appointment):
        appt = make_appointment()
        appt = _after(appt, lifecycle.request_change(appt, "2025-06-11", "10:00", now=NOW))

        rejected = _after(appt, lifecycle.reject_change_request(appt))

        assert (rejected.date, rejected.time) == ("2025-06-10", "14:00")
        assert rejected.change_request is not None
        assert rejected.change_request.status == ChangeStatus.REJECTED

    def test_reject_without_request_fails(self, make_appointment):
        with pytest.raises(NegotiationError):
            lifecycle.reject_change_request(make_appointment())

    def test_withdraw_clears_request(self, make_appointment):
        appt = make_appointment()
        appt = _after(appt, lifecycle.request_change(appt, "2025-06-11", "10:00", now=NOW))

        updates = lifecycle.withdraw_change_request(appt)

        assert updates["pendingChange"] is DELETE_FIELD
        assert _after(appt, updates).pending_change is None

    def test_withdraw_without_request_is_noop(self, make_appointment):
        assert lifecycle.withdraw_change_request(make_appointment()) == {}

    def test_withdraw_does_not_touch_admin_proposal(self, make_appointment):
        appt = make_appointment()
        appt = _after(appt, lifecycle.propose_admin_change(appt, "2025-06-12", "16:00", now=NOW))

        assert lifecycle.withdraw_change_request(appt) == {}


class TestAdminProposal:
    """Admin proposes, customer decides."""

    def test_accept_moves_to_proposed_slot(self, make_appointment):
        appt = make_appointment(status=AppointmentStatus.PENDING)
        appt = _after(appt, lifecycle.propose_admin_change(appt, "2025-06-12", "16:00", now=NOW))

        moved = _after(appt, lifecycle.accept_admin_proposal(appt))

        assert (moved.date, moved.time) == ("2025-06-12", "16:00")
        assert moved.status == AppointmentStatus.CONFIRMED
        assert moved.admin_proposal is None

    def test_reject_keeps_slot_and_marks_proposal(self, make_appointment):
        appt = make_appointment()
        appt = _after(appt, lifecycle.propose_admin_change(appt, "2025-06-12", "16:00", now=NOW))

        rejected = _after(appt, lifecycle.reject_admin_proposal(appt))

        assert (rejected.date, rejected.time) == ("2025-06-10", "14:00")
        assert rejected.admin_proposal.status == ChangeStatus.REJECTED

    def test_accept_without_proposal_fails(self, make_appointment):
        with pytest.raises(NegotiationError):
            lifecycle.accept_admin_proposal(make_appointment())

    def test_reject_without_proposal_fails(self, make_appointment):
        with pytest.raises(NegotiationError):
            lifecycle.reject_admin_proposal(make_appointment())


class TestSupersession:
    """Only one negotiation is open at a time."""

    def test_admin_proposal_replaces_customer_request(self, make_appointment):
        appt = make_appointment()
        appt = _after(appt, lifecycle.request_change(appt, "2025-06-11", "10:00", now=NOW))

        appt = _after(appt, lifecycle.propose_admin_change(appt, "2025-06-12", "16:00", now=NOW))

        assert appt.change_request is None
        assert appt.admin_proposal.new_date == "2025-06-12"
        with pytest.raises(NegotiationError):
            lifecycle.approve_change_request(appt, "2025-06-11", "10:00")

    def test_customer_request_replaces_admin_proposal(self, make_appointment):
        appt = make_appointment()
        appt = _after(appt, lifecycle.propose_admin_change(appt, "2025-06-12", "16:00", now=NOW))

        appt = _after(appt, lifecycle.request_change(appt, "2025-06-13", "11:00", now=NOW))

        assert appt.admin_proposal is None
        assert appt.change_request == PendingChange(
            proposed_by=Proposer.CUSTOMER,
            new_date="2025-06-13",
            new_time="11:00",
            created_at=NOW,
        )


class TestEditDetails:
    """Admin force-edit."""

    def test_edit_updates_fields(self, make_appointment, staff_b, catalog, roster_members):
        updates = lifecycle.edit_details(
            make_appointment(), staff_b, catalog[1], "2025-06-15", "9:00", roster_members, notes="VIP"
        )

        assert updates == {
            "staffId": "staff-b",
            "staffName": "Berk Demir",
            "date": "2025-06-15",
            "time": "09:00",
            "serviceId": catalog[1].id,
            "serviceName": catalog[1].name,
            "notes": "VIP",
        }

    def test_edit_leaves_negotiation_alone(self, make_appointment, staff_a, haircut, roster_members):
        appt = make_appointment()
        appt = _after(appt, lifecycle.request_change(appt, "2025-06-11", "10:00", now=NOW))

        edited = _after(appt, lifecycle.edit_details(appt, staff_a, haircut, "2025-06-10", "15:00", roster_members))

        assert edited.time == "15:00"
        assert edited.change_request is not None

    def test_edit_requires_roster_member(self, make_appointment, staff_a, haircut, admin_user):
        with pytest.raises(ValidationError):
            lifecycle.edit_details(make_appointment(), staff_a, haircut, "2025-06-10", "15:00", [admin_user])
