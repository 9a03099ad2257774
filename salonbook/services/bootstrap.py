"""
Composition root: picks the record store once and wires the services to it.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from ..adapters.firestore_client import FirestoreRecordStore
from ..adapters.gemini_client import GeminiClient
from ..adapters.memory_store import InMemoryRecordStore
from ..adapters.record_store import RecordStoreProtocol
from ..config import AppConfig
from ..domain.slot_grid import SlotAvailability
from .account_service import AccountService
from .appointment_service import AppointmentService
from .consultation_service import ConsultationService
from .snapshot_cache import AppointmentCache

logger = logging.getLogger(__name__)


@dataclass
class SalonApp:
    """The wired services of one session."""
    config: AppConfig
    store: RecordStoreProtocol
    accounts: AccountService
    appointments: AppointmentService
    cache: AppointmentCache
    consultation: ConsultationService


def build_record_store(config: AppConfig, force_memory: bool = False) -> RecordStoreProtocol:
    """Select the record store implementation from configuration."""
    store_config = config.store

    if force_memory or store_config.backend == "memory":
        logger.debug("Using in-memory record store (data file: %s)", store_config.data_file)
        return InMemoryRecordStore(data_file=store_config.data_file)

    logger.debug("Using Firestore record store for project %s", store_config.project_id)
    return FirestoreRecordStore(
        project_id=store_config.project_id,
        api_key=store_config.api_key or None,
        database=store_config.database,
        timeout=store_config.timeout_seconds,
        retries=store_config.retries,
    )


def build_consultation(config: AppConfig) -> ConsultationService:
    api_key = config.consultation.resolve_api_key()
    if not api_key:
        return ConsultationService(client=None)

    return ConsultationService(
        client=GeminiClient(
            api_key=api_key,
            model=config.consultation.model,
            salon_name=config.salon_name,
            timeout=config.consultation.timeout_seconds,
        )
    )


def build_app(
    config: AppConfig,
    force_memory: bool = False,
    store: Optional[RecordStoreProtocol] = None,
) -> SalonApp:
    """
    Wire a session's services.

    Args:
        config: Application configuration
        force_memory: Use the in-memory store regardless of configuration
        store: Use this store instead of building one (tests)
    """
    store = store or build_record_store(config, force_memory=force_memory)

    availability = SlotAvailability(
        start_hour=config.slots.start_hour,
        end_hour=config.slots.end_hour,
        step_minutes=config.slots.step_minutes,
    )
    accounts = AccountService(store, default_customer_password=config.default_customer_password)
    accounts.seed_admin(
        name=config.admin.name,
        phone_number=config.admin.phone_number,
        password=config.admin.password,
        specialty=config.admin.specialty,
    )

    return SalonApp(
        config=config,
        store=store,
        accounts=accounts,
        appointments=AppointmentService(store, availability, config.service_catalog()),
        cache=AppointmentCache(store),
        consultation=build_consultation(config),
    )
