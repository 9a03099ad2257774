"""
Record store protocol shared by the in-memory and Firestore adapters.

Records are plain dicts keyed by camelCase field names. Every record handed
out by a store carries its id under ``"id"``; the id is never part of the
stored fields.
"""

from __future__ import annotations

from typing import Any, Callable, Dict, List, Mapping, Optional, Protocol

from ..domain.models import DELETE_FIELD

Record = Dict[str, Any]
SnapshotCallback = Callable[[List[Record]], None]
Unsubscribe = Callable[[], None]


class RecordStoreProtocol(Protocol):
    """Protocol describing the record store behaviour needed by the services."""

    def create_record(self, kind: str, data: Mapping[str, Any]) -> str:
        """Store a new record unconditionally and return its id."""

    def create_record_unless_exists(
        self,
        kind: str,
        data: Mapping[str, Any],
        match: Mapping[str, Any],
        exclude: Optional[Mapping[str, Any]] = None,
    ) -> str:
        """
        Atomically store a new record unless another one already matches.

        A record matches when every ``match`` field is equal and no
        ``exclude`` field is equal. Raises ``RecordConflictError`` otherwise.
        """

    def get_record(self, kind: str, record_id: str) -> Optional[Record]:
        """Return the record or None."""

    def update_record(self, kind: str, record_id: str, fields: Mapping[str, Any]) -> None:
        """Overwrite top-level fields. ``DELETE_FIELD`` removes a field."""

    def delete_record(self, kind: str, record_id: str) -> None:
        """Remove the record permanently."""

    def query_by_equality(self, kind: str, field: str, value: Any) -> List[Record]:
        """Return all records whose ``field`` equals ``value``."""

    def list_records(self, kind: str) -> List[Record]:
        """Return every record of a kind."""

    def subscribe(self, kind: str, callback: SnapshotCallback) -> Unsubscribe:
        """
        Deliver the full current record set now and after every change.

        Returns a callable that stops the deliveries.
        """


def matches(record: Mapping[str, Any], match: Mapping[str, Any], exclude: Optional[Mapping[str, Any]]) -> bool:
    """Evaluate the ``create_record_unless_exists`` match rule against one record."""
    if any(record.get(key) != value for key, value in match.items()):
        return False
    if exclude and any(record.get(key) == value for key, value in exclude.items()):
        return False
    return True


def split_deletions(fields: Mapping[str, Any]) -> tuple[Dict[str, Any], List[str]]:
    """Separate plain field writes from ``DELETE_FIELD`` markers."""
    writes = {key: value for key, value in fields.items() if value is not DELETE_FIELD}
    deletions = [key for key, value in fields.items() if value is DELETE_FIELD]
    return writes, deletions
