"""
Service layer helpers that orchestrate adapters and domain logic.
"""

from .account_service import AccountService
from .appointment_service import AppointmentService
from .booking_wizard import BookingStep, BookingWizard
from .bootstrap import SalonApp, build_app
from .consultation_service import ConsultationService
from .snapshot_cache import AppointmentCache, SnapshotDiff

__all__ = [
    "AccountService",
    "AppointmentCache",
    "AppointmentService",
    "BookingStep",
    "BookingWizard",
    "ConsultationService",
    "SalonApp",
    "SnapshotDiff",
    "build_app",
]
