"""
In-memory record store for tests, demos and offline use.

Optionally persists its contents to a JSON file so the CLI keeps state
between invocations.
"""

from __future__ import annotations

import copy
import json
import logging
import threading
import uuid
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

from ..domain.exceptions import RecordConflictError, RecordNotFoundError, StoreError
from .record_store import Record, SnapshotCallback, Unsubscribe, matches, split_deletions

logger = logging.getLogger(__name__)


class InMemoryRecordStore:
    """
    Record store keeping every collection in a dict.

    All reads and writes happen under one lock, which makes
    ``create_record_unless_exists`` atomic. Subscribers are called after the
    lock is released, each with a deep copy of the full collection.
    """

    def __init__(self, data_file: Optional[Path] = None):
        """
        Initialize the store.

        Args:
            data_file: Optional JSON file to load from and save to after every write
        """
        self.data_file = data_file
        self._lock = threading.RLock()
        self._collections: Dict[str, Dict[str, Dict[str, Any]]] = {}
        self._subscribers: Dict[str, List[SnapshotCallback]] = {}
        self._load()

    def _load(self) -> None:
        """Load collections from the data file if it exists."""
        if self.data_file is None or not self.data_file.exists():
            return

        try:
            with open(self.data_file, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as exc:
            raise StoreError(f"Could not read data file {self.data_file}: {exc}") from exc

        if not isinstance(data, dict):
            raise StoreError(f"Data file {self.data_file} must contain a mapping of collections")

        self._collections = {kind: dict(records) for kind, records in data.items()}
        logger.debug("Loaded %d collection(s) from %s", len(self._collections), self.data_file)

    def _save(self) -> None:
        if self.data_file is None:
            return

        try:
            self.data_file.parent.mkdir(parents=True, exist_ok=True)
            with open(self.data_file, "w", encoding="utf-8") as f:
                json.dump(self._collections, f, ensure_ascii=False, indent=2, sort_keys=True)
        except OSError as exc:
            raise StoreError(f"Could not write data file {self.data_file}: {exc}") from exc

    def create_record(self, kind: str, data: Mapping[str, Any]) -> str:
        with self._lock:
            record_id = self._insert(kind, data)
        self._notify(kind)
        return record_id

    def create_record_unless_exists(
        self,
        kind: str,
        data: Mapping[str, Any],
        match: Mapping[str, Any],
        exclude: Optional[Mapping[str, Any]] = None,
    ) -> str:
        with self._lock:
            for record_id, fields in self._collection(kind).items():
                if matches(fields, match, exclude):
                    raise RecordConflictError(
                        f"A matching {kind} record already exists ({record_id})"
                    )
            record_id = self._insert(kind, data)
        self._notify(kind)
        return record_id

    def get_record(self, kind: str, record_id: str) -> Optional[Record]:
        with self._lock:
            fields = self._collection(kind).get(record_id)
            if fields is None:
                return None
            return _with_id(record_id, fields)

    def update_record(self, kind: str, record_id: str, fields: Mapping[str, Any]) -> None:
        writes, deletions = split_deletions(fields)

        with self._lock:
            current = self._collection(kind).get(record_id)
            if current is None:
                raise RecordNotFoundError(f"No {kind} record with id {record_id}")

            writes.pop("id", None)
            updated = dict(current)
            updated.update(copy.deepcopy(writes))
            for key in deletions:
                updated.pop(key, None)
            self._replace(kind, record_id, updated)

        self._notify(kind)

    def delete_record(self, kind: str, record_id: str) -> None:
        with self._lock:
            if record_id not in self._collection(kind):
                raise RecordNotFoundError(f"No {kind} record with id {record_id}")
            self._replace(kind, record_id, None)
        self._notify(kind)

    def query_by_equality(self, kind: str, field: str, value: Any) -> List[Record]:
        with self._lock:
            return [
                _with_id(record_id, fields)
                for record_id, fields in self._collection(kind).items()
                if fields.get(field) == value
            ]

    def list_records(self, kind: str) -> List[Record]:
        with self._lock:
            return [
                _with_id(record_id, fields)
                for record_id, fields in self._collection(kind).items()
            ]

    def subscribe(self, kind: str, callback: SnapshotCallback) -> Unsubscribe:
        with self._lock:
            self._subscribers.setdefault(kind, []).append(callback)

        callback(self.list_records(kind))

        def unsubscribe() -> None:
            with self._lock:
                callbacks = self._subscribers.get(kind, [])
                if callback in callbacks:
                    callbacks.remove(callback)

        return unsubscribe

    def _collection(self, kind: str) -> Dict[str, Dict[str, Any]]:
        return self._collections.setdefault(kind, {})

    def _insert(self, kind: str, data: Mapping[str, Any]) -> str:
        record_id = uuid.uuid4().hex[:20]
        fields = copy.deepcopy(dict(data))
        fields.pop("id", None)
        self._replace(kind, record_id, fields)
        return record_id

    def _replace(self, kind: str, record_id: str, fields: Optional[Dict[str, Any]]) -> None:
        """Put (or with None, remove) one record and persist; memory is unchanged if the save fails."""
        collection = self._collection(kind)
        previous = collection.get(record_id)
        if fields is None:
            collection.pop(record_id, None)
        else:
            collection[record_id] = fields

        try:
            self._save()
        except StoreError:
            if previous is None:
                collection.pop(record_id, None)
            else:
                collection[record_id] = previous
            raise

    def _notify(self, kind: str) -> None:
        with self._lock:
            callbacks = list(self._subscribers.get(kind, []))
        if not callbacks:
            return

        snapshot = self.list_records(kind)
        for callback in callbacks:
            try:
                callback(copy.deepcopy(snapshot))
            except Exception:
                logger.exception("Subscriber for %s raised while handling a snapshot", kind)


def _with_id(record_id: str, fields: Mapping[str, Any]) -> Record:
    record = copy.deepcopy(dict(fields))
    record["id"] = record_id
    return record
