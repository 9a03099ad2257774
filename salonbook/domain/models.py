"""
Domain models for users, the service catalog and appointments.

Records in the store keep camelCase field names; the ``from_record`` and
``to_record`` helpers translate between the two representations.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Mapping, Optional

from .dates import normalize_time


class _DeleteField:
    """Sentinel telling a record store to remove a field entirely."""

    def __repr__(self) -> str:
        return "DELETE_FIELD"


DELETE_FIELD = _DeleteField()


USERS = "users"
APPOINTMENTS = "appointments"


class UserRole(str, Enum):
    ADMIN = "ADMIN"
    STAFF = "STAFF"
    CUSTOMER = "CUSTOMER"


class AppointmentStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (AppointmentStatus.COMPLETED, AppointmentStatus.CANCELLED)


class Proposer(str, Enum):
    """Which party opened a reschedule negotiation."""
    CUSTOMER = "customer"
    ADMIN = "admin"


class ChangeStatus(str, Enum):
    PENDING = "pending"
    REJECTED = "rejected"


@dataclass
class User:
    """
    A salon account: customer, staff member or the admin (salon owner).
    """
    id: str
    name: str
    role: UserRole
    phone_number: Optional[str] = None
    avatar: Optional[str] = None
    specialty: Optional[str] = None

    @property
    def can_take_bookings(self) -> bool:
        """Staff and the admin both appear in the booking staff list."""
        return self.role in (UserRole.STAFF, UserRole.ADMIN)

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> "User":
        return cls(
            id=record["id"],
            name=record.get("name", ""),
            role=UserRole(record.get("role", UserRole.CUSTOMER.value)),
            phone_number=record.get("phoneNumber"),
            avatar=record.get("avatar"),
            specialty=record.get("specialty"),
        )


@dataclass(frozen=True)
class ServiceItem:
    """A catalog entry. Static configuration, never mutated at runtime."""
    id: str
    name: str
    price: int
    duration_min: int
    image: Optional[str] = None


@dataclass(frozen=True)
class PendingChange:
    """
    An open or rejected reschedule proposal.

    One field covers both directions: a customer's change request and an
    admin's proposal are told apart by ``proposed_by``.
    """
    proposed_by: Proposer
    new_date: str
    new_time: str
    status: ChangeStatus = ChangeStatus.PENDING
    created_at: str = ""

    @property
    def is_pending(self) -> bool:
        return self.status == ChangeStatus.PENDING

    def to_record(self) -> Dict[str, Any]:
        return {
            "proposedBy": self.proposed_by.value,
            "newDate": self.new_date,
            "newTime": self.new_time,
            "status": self.status.value,
            "createdAt": self.created_at,
        }

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> "PendingChange":
        return cls(
            proposed_by=Proposer(record["proposedBy"]),
            new_date=record.get("newDate", ""),
            new_time=_normalize_stored_time(record.get("newTime", "")),
            status=ChangeStatus(record.get("status", ChangeStatus.PENDING.value)),
            created_at=record.get("createdAt", ""),
        )


@dataclass
class Appointment:
    """
    A booking of one service with one staff member in one grid slot.

    Customer and staff names are snapshots taken at booking time.
    """
    id: str
    customer_id: str
    customer_name: str
    staff_id: str
    staff_name: str
    date: str
    time: str
    service_id: str
    service_name: str
    status: AppointmentStatus = AppointmentStatus.PENDING
    notes: Optional[str] = None
    pending_change: Optional[PendingChange] = None

    @property
    def change_request(self) -> Optional[PendingChange]:
        """The customer's change request, if that is what the negotiation field holds."""
        if self.pending_change and self.pending_change.proposed_by == Proposer.CUSTOMER:
            return self.pending_change
        return None

    @property
    def admin_proposal(self) -> Optional[PendingChange]:
        """The admin's proposal, if that is what the negotiation field holds."""
        if self.pending_change and self.pending_change.proposed_by == Proposer.ADMIN:
            return self.pending_change
        return None

    def to_record(self) -> Dict[str, Any]:
        """Serialize to a store record (without the id)."""
        record: Dict[str, Any] = {
            "customerId": self.customer_id,
            "customerName": self.customer_name,
            "staffId": self.staff_id,
            "staffName": self.staff_name,
            "date": self.date,
            "time": self.time,
            "serviceId": self.service_id,
            "serviceName": self.service_name,
            "status": self.status.value,
        }
        if self.notes:
            record["notes"] = self.notes
        if self.pending_change is not None:
            record["pendingChange"] = self.pending_change.to_record()
        return record

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> "Appointment":
        return cls(
            id=record["id"],
            customer_id=record.get("customerId", ""),
            customer_name=record.get("customerName", ""),
            staff_id=record.get("staffId", ""),
            staff_name=record.get("staffName", ""),
            date=record.get("date", ""),
            time=_normalize_stored_time(record.get("time", "")),
            service_id=record.get("serviceId", ""),
            service_name=record.get("serviceName", ""),
            status=AppointmentStatus(record.get("status", AppointmentStatus.PENDING.value)),
            notes=record.get("notes"),
            pending_change=_read_pending_change(record),
        )


@dataclass
class HairStyleRecommendation:
    """One suggestion returned by the hairstyle consultant."""
    name: str
    description: str
    face_shape_match: str
    maintenance_level: str
    image_url: Optional[str] = None

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "HairStyleRecommendation":
        return cls(
            name=str(payload.get("name", "")),
            description=str(payload.get("description", "")),
            face_shape_match=str(payload.get("faceShapeMatch", "")),
            maintenance_level=str(payload.get("maintenanceLevel", "")),
            image_url=payload.get("imageUrl"),
        )


def _normalize_stored_time(value: str) -> str:
    # Older records carry unpadded hours ("9:30"); anything unparseable is kept as-is.
    if not value:
        return value
    try:
        return normalize_time(value)
    except ValueError:
        return value


def _read_pending_change(record: Mapping[str, Any]) -> Optional[PendingChange]:
    """
    Read the negotiation field, accepting the legacy two-field layout.

    Legacy records keep ``changeRequest`` (customer) and ``adminProposal``
    (admin) side by side. A pending entry beats a rejected one; between two
    pending entries the most recent wins.
    """
    if record.get("pendingChange"):
        return PendingChange.from_record(record["pendingChange"])

    candidates = []
    legacy = record.get("changeRequest")
    if legacy:
        candidates.append(PendingChange.from_record({
            **legacy,
            "proposedBy": Proposer.CUSTOMER.value,
            "createdAt": legacy.get("requestedAt", ""),
        }))
    legacy = record.get("adminProposal")
    if legacy:
        candidates.append(PendingChange.from_record({
            **legacy,
            "proposedBy": Proposer.ADMIN.value,
            "createdAt": legacy.get("proposedAt", ""),
        }))

    if not candidates:
        return None

    return max(candidates, key=lambda change: (change.is_pending, change.created_at))
