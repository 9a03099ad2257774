"""
Domain layer - Pure business logic without external dependencies.
"""

from .models import (
    APPOINTMENTS,
    DELETE_FIELD,
    USERS,
    Appointment,
    AppointmentStatus,
    ChangeStatus,
    HairStyleRecommendation,
    PendingChange,
    Proposer,
    ServiceItem,
    User,
    UserRole,
)
from .roster import DateWindow, DayGroup, RosterFilter, RosterStats
from .slot_grid import SlotAvailability, SlotState, generate_daily_slots, is_occupied

__all__ = [
    "APPOINTMENTS",
    "DELETE_FIELD",
    "USERS",
    "Appointment",
    "AppointmentStatus",
    "ChangeStatus",
    "DateWindow",
    "DayGroup",
    "HairStyleRecommendation",
    "PendingChange",
    "Proposer",
    "RosterFilter",
    "RosterStats",
    "ServiceItem",
    "SlotAvailability",
    "SlotState",
    "User",
    "UserRole",
    "generate_daily_slots",
    "is_occupied",
]
