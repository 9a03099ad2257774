"""
Live appointment cache fed by the record store subscription.

The store delivers the full appointment set on every change. The cache diffs
each delivery against the previous one and only wakes its listeners when
something actually changed, so views are not re-derived for no-op snapshots.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

from ..adapters.record_store import Record, RecordStoreProtocol, Unsubscribe
from ..domain.models import APPOINTMENTS, Appointment

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SnapshotDiff:
    """Ids added, removed and changed between two consecutive snapshots."""
    added: frozenset = field(default_factory=frozenset)
    removed: frozenset = field(default_factory=frozenset)
    changed: frozenset = field(default_factory=frozenset)

    @property
    def is_empty(self) -> bool:
        return not (self.added or self.removed or self.changed)


Listener = Callable[[List[Appointment], SnapshotDiff], None]


def diff_snapshots(previous: Dict[str, Record], current: Dict[str, Record]) -> SnapshotDiff:
    """Compare two id-keyed snapshots."""
    previous_ids = set(previous)
    current_ids = set(current)
    return SnapshotDiff(
        added=frozenset(current_ids - previous_ids),
        removed=frozenset(previous_ids - current_ids),
        changed=frozenset(
            record_id for record_id in previous_ids & current_ids
            if previous[record_id] != current[record_id]
        ),
    )


class AppointmentCache:
    """
    Holds the latest appointment snapshot and fans out real changes.

    Each delivery replaces the cached set entirely; it is never patched.
    """

    def __init__(self, store: RecordStoreProtocol):
        self._store = store
        self._lock = threading.Lock()
        self._records: Dict[str, Record] = {}
        self._appointments: List[Appointment] = []
        self._listeners: List[Listener] = []
        self._unsubscribe: Optional[Unsubscribe] = None
        self._primed = False

    @property
    def appointments(self) -> List[Appointment]:
        with self._lock:
            return list(self._appointments)

    @property
    def is_running(self) -> bool:
        return self._unsubscribe is not None

    def start(self) -> None:
        """Subscribe to the store. The first snapshot arrives immediately."""
        if self._unsubscribe is None:
            self._unsubscribe = self._store.subscribe(APPOINTMENTS, self._on_snapshot)

    def stop(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    def add_listener(self, listener: Listener) -> Callable[[], None]:
        """Register a listener; it is called right away if a snapshot is already cached."""
        with self._lock:
            self._listeners.append(listener)
            primed = self._primed
            appointments = list(self._appointments)

        if primed:
            listener(appointments, SnapshotDiff(added=frozenset(a.id for a in appointments)))

        def remove() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return remove

    def _on_snapshot(self, records: List[Record]) -> None:
        current = {record["id"]: record for record in records}

        with self._lock:
            diff = diff_snapshots(self._records, current)
            if self._primed and diff.is_empty:
                return

            self._records = current
            self._appointments = _parse_appointments(records)
            self._primed = True
            listeners = list(self._listeners)
            appointments = list(self._appointments)

        logger.debug(
            "Appointment snapshot: +%d -%d ~%d",
            len(diff.added),
            len(diff.removed),
            len(diff.changed),
        )
        for listener in listeners:
            listener(appointments, diff)


def _parse_appointments(records: List[Record]) -> List[Appointment]:
    appointments: List[Appointment] = []
    for record in records:
        try:
            appointments.append(Appointment.from_record(record))
        except (KeyError, ValueError) as exc:
            logger.warning("Skipping malformed appointment record %s: %s", record.get("id"), exc)
    return appointments
