"""
Tests for the daily time grid, occupancy checks and date/time normalization.
"""

from datetime import date

import pytest

from salonbook.domain.dates import normalize_date, normalize_time
from salonbook.domain.exceptions import ValidationError
from salonbook.domain.models import AppointmentStatus
from salonbook.domain.slot_grid import SlotAvailability, generate_daily_slots, is_occupied


class TestGenerateDailySlots:
    """Tests for generate_daily_slots."""

    def test_default_grid_has_twenty_half_hour_slots(self):
        """The default grid runs from 10:00 to 19:30 in 30 minute steps."""
        slots = generate_daily_slots()

        assert len(slots) == 20
        assert slots[0] == "10:00"
        assert slots[1] == "10:30"
        assert slots[-1] == "19:30"
        assert "20:00" not in slots

    def test_slots_are_strictly_increasing(self):
        """Zero-padded strings sort chronologically."""
        slots = generate_daily_slots()

        assert all(earlier < later for earlier, later in zip(slots, slots[1:]))

    def test_custom_grid(self):
        """Start, end and step come from configuration."""
        assert generate_daily_slots(9, 11, 60) == ["09:00", "10:00"]
        assert generate_daily_slots(9, 10, 15) == ["09:00", "09:15", "09:30", "09:45"]


class TestIsOccupied:
    """Tests for the occupancy check."""

    def test_matching_appointment_occupies_slot(self, make_appointment):
        """Same staff, date and time blocks the slot."""
        appointments = [make_appointment()]

        assert is_occupied("staff-a", "2025-06-10", "14:00", appointments)

    def test_other_staff_date_or_time_do_not_block(self, make_appointment):
        """Only an exact (staff, date, time) match counts."""
        appointments = [make_appointment()]

        assert not is_occupied("staff-b", "2025-06-10", "14:00", appointments)
        assert not is_occupied("staff-a", "2025-06-11", "14:00", appointments)
        assert not is_occupied("staff-a", "2025-06-10", "14:30", appointments)

    @pytest.mark.parametrize("status", [
        AppointmentStatus.PENDING,
        AppointmentStatus.CONFIRMED,
        AppointmentStatus.COMPLETED,
    ])
    def test_every_non_cancelled_status_blocks(self, make_appointment, status):
        assert is_occupied("staff-a", "2025-06-10", "14:00", [make_appointment(status=status)])

    def test_cancelling_sole_occupant_frees_slot(self, make_appointment):
        """A cancelled appointment never blocks its slot."""
        appointment = make_appointment()
        assert is_occupied("staff-a", "2025-06-10", "14:00", [appointment])

        appointment.status = AppointmentStatus.CANCELLED

        assert not is_occupied("staff-a", "2025-06-10", "14:00", [appointment])

    def test_unset_staff_or_date_never_blocks(self, make_appointment):
        appointments = [make_appointment()]

        assert not is_occupied(None, "2025-06-10", "14:00", appointments)
        assert not is_occupied("staff-a", "", "14:00", appointments)

    def test_unpadded_time_matches_padded_record(self, make_appointment):
        """'9:30' and '09:30' are the same slot."""
        appointments = [make_appointment(time="09:30")]

        assert is_occupied("staff-a", "2025-06-10", "9:30", appointments)


class TestSlotAvailability:
    """Tests for SlotAvailability."""

    def test_slot_states_mark_occupied_slots(self, make_appointment):
        availability = SlotAvailability()
        appointments = [
            make_appointment(time="10:00"),
            make_appointment(time="14:00"),
            make_appointment(time="15:00", status=AppointmentStatus.CANCELLED),
            make_appointment(time="16:00", staff_id="staff-b"),
        ]

        states = availability.slot_states("staff-a", "2025-06-10", appointments)

        assert [s.time for s in states] == availability.daily_slots()
        assert {s.time for s in states if s.occupied} == {"10:00", "14:00"}

    def test_free_slots(self, make_appointment):
        availability = SlotAvailability()

        free = availability.free_slots("staff-a", "2025-06-10", [make_appointment()])

        assert len(free) == 19
        assert "14:00" not in free
        assert availability.is_free("staff-a", "2025-06-10", "14:30", [make_appointment()])

    def test_grid_membership(self):
        availability = SlotAvailability()

        assert availability.is_grid_slot("10:00")
        assert availability.is_grid_slot("9:30") is False
        assert availability.is_grid_slot("10:15") is False
        assert availability.is_grid_slot("20:00") is False


class TestNormalization:
    """Tests for the date and time helpers."""

    @pytest.mark.parametrize("raw, expected", [
        ("9:00", "09:00"),
        ("09:00", "09:00"),
        (" 14:30 ", "14:30"),
        ("0:05", "00:05"),
    ])
    def test_normalize_time(self, raw, expected):
        assert normalize_time(raw) == expected

    @pytest.mark.parametrize("raw", ["", "abc", "25:00", "12:60", "9:5", "12"])
    def test_normalize_time_rejects_invalid(self, raw):
        with pytest.raises(ValidationError):
            normalize_time(raw)

    def test_normalize_date(self):
        assert normalize_date("2025-06-10") == "2025-06-10"
        assert normalize_date(date(2025, 6, 1)) == "2025-06-01"

    def test_normalize_date_rejects_invalid(self):
        with pytest.raises(ValidationError):
            normalize_date("not-a-date")

    def test_validation_error_is_value_error(self):
        """Callers that only know ValueError still catch bad input."""
        with pytest.raises(ValueError):
            normalize_time("nope")
