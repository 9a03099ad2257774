"""
Customer, staff and admin accounts.

Accounts are identified by phone number. Passwords are stored as passlib
hashes; records written by older clients with a plaintext ``password`` field
still log in and are rehashed on the first successful login.
"""

from __future__ import annotations

import logging
from typing import List, Literal, Optional
from urllib.parse import quote_plus

from passlib.context import CryptContext

from ..adapters.record_store import Record, RecordStoreProtocol
from ..domain.exceptions import AuthenticationError, RecordNotFoundError, ValidationError
from ..domain.models import DELETE_FIELD, USERS, User, UserRole
from ..domain.dates import utc_timestamp

logger = logging.getLogger(__name__)

pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")

Panel = Literal["customer", "admin"]


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain: str, hashed: str) -> bool:
    return pwd_context.verify(plain, hashed)


class AccountService:
    """Registration, login and the staff roster."""

    def __init__(self, store: RecordStoreProtocol, default_customer_password: str = "123456"):
        self._store = store
        self.default_customer_password = default_customer_password

    def phone_exists(self, phone_number: str) -> bool:
        return bool(self._store.query_by_equality(USERS, "phoneNumber", phone_number))

    def get_user(self, user_id: str) -> User:
        record = self._store.get_record(USERS, user_id)
        if record is None:
            raise RecordNotFoundError(f"User {user_id} not found")
        return User.from_record(record)

    def list_users(self) -> List[User]:
        return [User.from_record(record) for record in self._store.list_records(USERS)]

    def list_staff(self) -> List[User]:
        """Everyone who can be booked: staff members and the admin."""
        return [user for user in self.list_users() if user.can_take_bookings]

    def register_customer(self, name: str, phone_number: str, password: str) -> User:
        """
        Create a customer account.

        Raises:
            ValidationError: If a field is empty or the phone number is taken
        """
        return self._create_user(
            name,
            phone_number,
            password,
            UserRole.CUSTOMER,
            avatar=_avatar_url(name, background="D4AF37", color="000"),
        )

    def create_staff_member(
        self,
        name: str,
        phone_number: str,
        password: str,
        specialty: str = "Stylist",
    ) -> User:
        """Admin adds a staff member. Same phone number rules as registration."""
        return self._create_user(
            name,
            phone_number,
            password,
            UserRole.STAFF,
            specialty=specialty or "Stylist",
            avatar=_avatar_url(name, background="333", color="fff"),
        )

    def ensure_customer_exists(self, name: str, phone_number: str) -> User:
        """
        Look up a customer by phone for an admin-entered booking, creating one if needed.

        An existing account keeps its stored name. New accounts get the
        configured default password.
        """
        if not phone_number:
            raise ValidationError("Customer phone number is required")

        existing = self._store.query_by_equality(USERS, "phoneNumber", phone_number)
        if existing:
            return User.from_record(existing[0])

        logger.info("No account for %s, creating customer '%s'", phone_number, name)
        return self.register_customer(name, phone_number, self.default_customer_password)

    def login(self, phone_number: str, password: str, panel: Panel = "customer") -> User:
        """
        Check credentials and panel access.

        Customers may only use the customer panel; staff and the admin only
        the admin panel.

        Raises:
            AuthenticationError: On unknown phone, wrong password or wrong panel
        """
        records = self._store.query_by_equality(USERS, "phoneNumber", phone_number)
        record = next((r for r in records if self._password_matches(r, password)), None)
        if record is None:
            raise AuthenticationError("Phone number or password is incorrect")

        user = User.from_record(record)
        if panel == "customer" and user.role != UserRole.CUSTOMER:
            raise AuthenticationError("Staff accounts must sign in through the admin panel")
        if panel == "admin" and user.role == UserRole.CUSTOMER:
            raise AuthenticationError("Customer accounts cannot sign in to the admin panel")

        return user

    def seed_admin(self, name: str, phone_number: str, password: str, specialty: str = "Master Stylist") -> bool:
        """Create the admin account if its phone number is unknown. Returns True if created."""
        if self.phone_exists(phone_number):
            return False

        logger.info("Admin account missing, creating it for %s", phone_number)
        self._store.create_record(USERS, {
            "name": name,
            "phoneNumber": phone_number,
            "passwordHash": hash_password(password),
            "role": UserRole.ADMIN.value,
            "specialty": specialty,
            "createdAt": utc_timestamp(),
        })
        return True

    def _create_user(
        self,
        name: str,
        phone_number: str,
        password: str,
        role: UserRole,
        avatar: Optional[str] = None,
        specialty: Optional[str] = None,
    ) -> User:
        if not name or not phone_number or not password:
            raise ValidationError("Name, phone number and password are required")
        if self.phone_exists(phone_number):
            raise ValidationError(f"Phone number {phone_number} is already registered")

        record: Record = {
            "name": name,
            "phoneNumber": phone_number,
            "passwordHash": hash_password(password),
            "role": role.value,
            "createdAt": utc_timestamp(),
        }
        if avatar:
            record["avatar"] = avatar
        if specialty:
            record["specialty"] = specialty

        user_id = self._store.create_record(USERS, record)
        logger.info("Created %s account %s for %s", role.value, user_id, name)
        return User.from_record({**record, "id": user_id})

    def _password_matches(self, record: Record, password: str) -> bool:
        hashed = record.get("passwordHash")
        if hashed:
            return verify_password(password, hashed)

        legacy = record.get("password")
        if legacy is None or legacy != password:
            return False

        self._store.update_record(USERS, record["id"], {
            "passwordHash": hash_password(password),
            "password": DELETE_FIELD,
        })
        logger.info("Rehashed legacy plaintext password for user %s", record["id"])
        return True


def _avatar_url(name: str, background: str, color: str) -> str:
    return f"https://ui-avatars.com/api/?name={quote_plus(name)}&background={background}&color={color}"
