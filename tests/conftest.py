"""
Shared fixtures: an in-memory store, the default catalog and a few accounts.
"""

from typing import Callable

import pytest

from salonbook.adapters.memory_store import InMemoryRecordStore
from salonbook.config import AppConfig
from salonbook.domain.models import Appointment, AppointmentStatus, User, UserRole
from salonbook.domain.slot_grid import SlotAvailability
from salonbook.services.appointment_service import AppointmentService


@pytest.fixture
def store() -> InMemoryRecordStore:
    return InMemoryRecordStore()


@pytest.fixture
def catalog():
    return AppConfig().service_catalog()


@pytest.fixture
def haircut(catalog):
    return catalog[0]


@pytest.fixture
def availability() -> SlotAvailability:
    return SlotAvailability()


@pytest.fixture
def appointment_service(store, availability, catalog) -> AppointmentService:
    return AppointmentService(store, availability, catalog)


@pytest.fixture
def staff_a() -> User:
    return User(id="staff-a", name="Ali Usta", role=UserRole.STAFF, specialty="Barber")


@pytest.fixture
def staff_b() -> User:
    return User(id="staff-b", name="Berk Demir", role=UserRole.STAFF, specialty="Colorist")


@pytest.fixture
def admin_user() -> User:
    return User(id="admin-1", name="Tarık Yalçın", role=UserRole.ADMIN, specialty="Master Stylist")


@pytest.fixture
def customer() -> User:
    return User(id="cust-1", name="Deniz Kaya", role=UserRole.CUSTOMER, phone_number="5551112233")


@pytest.fixture
def roster_members(staff_a, staff_b, admin_user):
    return [staff_a, staff_b, admin_user]


@pytest.fixture
def make_appointment() -> Callable[..., Appointment]:
    """Factory for appointments with sensible defaults."""
    counter = {"n": 0}

    def _make(**overrides) -> Appointment:
        counter["n"] += 1
        values = dict(
            id=f"appt-{counter['n']}",
            customer_id="cust-1",
            customer_name="Deniz Kaya",
            staff_id="staff-a",
            staff_name="Ali Usta",
            date="2025-06-10",
            time="14:00",
            service_id="s1",
            service_name="Premium Saç Kesimi",
            status=AppointmentStatus.CONFIRMED,
        )
        values.update(overrides)
        return Appointment(**values)

    return _make
