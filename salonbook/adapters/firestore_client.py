"""
Cloud Firestore record store over the Firestore REST API.

Uses the ``documents`` endpoints of ``firestore.googleapis.com/v1``. The REST
API has no push channel, so subscribers are served after writes made through
this adapter and on explicit ``refresh``.
"""

from __future__ import annotations

import logging
import uuid
from typing import Any, Dict, List, Mapping, Optional

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from ..domain.exceptions import RecordConflictError, RecordNotFoundError, StoreError
from .record_store import Record, SnapshotCallback, Unsubscribe, matches, split_deletions

logger = logging.getLogger(__name__)


class FirestoreRecordStore:
    """
    Record store backed by a Firestore database.

    Idempotent requests (GET, DELETE) are retried on 429 and 5xx responses;
    creates and updates are sent once.
    """

    FIRESTORE_API_ENDPOINT = "https://firestore.googleapis.com/v1"

    def __init__(
        self,
        project_id: str,
        api_key: Optional[str] = None,
        id_token: Optional[str] = None,
        database: str = "(default)",
        timeout: float = 10.0,
        retries: int = 3,
        session: Optional[requests.Session] = None,
    ):
        """
        Initialize the Firestore client.

        Args:
            project_id: Google Cloud / Firebase project id
            api_key: Firebase web API key, sent as the ``key`` query parameter
            id_token: Optional Firebase Auth ID token sent as a bearer token
            database: Firestore database id
            timeout: Per-request timeout in seconds
            retries: Retry attempts for idempotent requests
            session: Optional pre-configured requests session
        """
        self.project_id = project_id
        self.api_key = api_key
        self.timeout = timeout
        self.database_path = f"projects/{project_id}/databases/{database}"
        self.documents_path = f"{self.database_path}/documents"
        self.base_url = f"{self.FIRESTORE_API_ENDPOINT}/{self.documents_path}"

        self.session = session or requests.Session()
        if session is None:
            retry = Retry(
                total=retries,
                backoff_factor=0.5,
                status_forcelist=(429, 500, 502, 503, 504),
                allowed_methods=frozenset({"GET", "DELETE"}),
                raise_on_status=False,
            )
            self.session.mount("https://", HTTPAdapter(max_retries=retry))

        self.session.headers.update({"Content-Type": "application/json"})
        if id_token:
            self.session.headers.update({"Authorization": f"Bearer {id_token}"})

        self._subscribers: Dict[str, List[SnapshotCallback]] = {}

    # =========================================================================
    # Record operations
    # =========================================================================

    def create_record(self, kind: str, data: Mapping[str, Any]) -> str:
        response = self._request(
            "POST",
            f"{self.base_url}/{kind}",
            json={"fields": encode_fields(_without_id(data))},
        )
        record_id = _document_id(response.json()["name"])
        self._notify(kind)
        return record_id

    def create_record_unless_exists(
        self,
        kind: str,
        data: Mapping[str, Any],
        match: Mapping[str, Any],
        exclude: Optional[Mapping[str, Any]] = None,
    ) -> str:
        """
        Create inside a read-write transaction.

        The matching query runs in the transaction, so a concurrent writer
        touching the same records makes the commit fail instead of both
        succeeding.
        """
        transaction = self._request(
            "POST",
            f"{self.base_url}:beginTransaction",
            json={"options": {"readWrite": {}}},
        ).json()["transaction"]

        try:
            candidates = self._run_query(kind, match, transaction=transaction)
            conflict = next(
                (record for record in candidates if matches(record, match, exclude)),
                None,
            )
            if conflict is not None:
                raise RecordConflictError(
                    f"A matching {kind} record already exists ({conflict['id']})"
                )

            record_id = uuid.uuid4().hex[:20]
            self._request(
                "POST",
                f"{self.base_url}:commit",
                json={
                    "transaction": transaction,
                    "writes": [{
                        "update": {
                            "name": f"{self.documents_path}/{kind}/{record_id}",
                            "fields": encode_fields(_without_id(data)),
                        },
                        "currentDocument": {"exists": False},
                    }],
                },
                conflict=f"Concurrent write to a matching {kind} record",
            )
        except (RecordConflictError, StoreError):
            self._rollback(transaction)
            raise

        self._notify(kind)
        return record_id

    def get_record(self, kind: str, record_id: str) -> Optional[Record]:
        response = self._request("GET", f"{self.base_url}/{kind}/{record_id}", allow_missing=True)
        if response is None:
            return None
        return decode_document(response.json())

    def update_record(self, kind: str, record_id: str, fields: Mapping[str, Any]) -> None:
        writes, deletions = split_deletions(fields)
        writes.pop("id", None)

        # Fields named in the mask but absent from the body are deleted.
        params = [("updateMask.fieldPaths", key) for key in list(writes) + deletions]
        params.append(("currentDocument.exists", "true"))

        self._request(
            "PATCH",
            f"{self.base_url}/{kind}/{record_id}",
            params=params,
            json={"fields": encode_fields(writes)},
            not_found=f"No {kind} record with id {record_id}",
        )
        self._notify(kind)

    def delete_record(self, kind: str, record_id: str) -> None:
        if self.get_record(kind, record_id) is None:
            raise RecordNotFoundError(f"No {kind} record with id {record_id}")
        self._request("DELETE", f"{self.base_url}/{kind}/{record_id}")
        self._notify(kind)

    def query_by_equality(self, kind: str, field: str, value: Any) -> List[Record]:
        return self._run_query(kind, {field: value})

    def list_records(self, kind: str) -> List[Record]:
        records: List[Record] = []
        page_token: Optional[str] = None

        while True:
            params: Dict[str, Any] = {"pageSize": 300}
            if page_token:
                params["pageToken"] = page_token

            data = self._request("GET", f"{self.base_url}/{kind}", params=params).json()
            records.extend(decode_document(doc) for doc in data.get("documents", []))

            page_token = data.get("nextPageToken")
            if not page_token:
                return records

    def subscribe(self, kind: str, callback: SnapshotCallback) -> Unsubscribe:
        self._subscribers.setdefault(kind, []).append(callback)
        callback(self.list_records(kind))

        def unsubscribe() -> None:
            callbacks = self._subscribers.get(kind, [])
            if callback in callbacks:
                callbacks.remove(callback)

        return unsubscribe

    def refresh(self, kind: str) -> None:
        """Fetch the collection and deliver it to subscribers (picks up remote changes)."""
        self._notify(kind)

    # =========================================================================
    # Internals
    # =========================================================================

    def _run_query(
        self,
        kind: str,
        equals: Mapping[str, Any],
        transaction: Optional[str] = None,
    ) -> List[Record]:
        filters = [
            {
                "fieldFilter": {
                    "field": {"fieldPath": key},
                    "op": "EQUAL",
                    "value": encode_value(value),
                }
            }
            for key, value in equals.items()
        ]
        if len(filters) == 1:
            where = filters[0]
        else:
            where = {"compositeFilter": {"op": "AND", "filters": filters}}

        body: Dict[str, Any] = {
            "structuredQuery": {
                "from": [{"collectionId": kind}],
                "where": where,
            }
        }
        if transaction:
            body["transaction"] = transaction

        rows = self._request("POST", f"{self.base_url}:runQuery", json=body).json()
        return [decode_document(row["document"]) for row in rows if "document" in row]

    def _rollback(self, transaction: str) -> None:
        try:
            self._request("POST", f"{self.base_url}:rollback", json={"transaction": transaction})
        except StoreError as exc:
            logger.warning("Could not roll back Firestore transaction: %s", exc)

    def _request(
        self,
        method: str,
        url: str,
        *,
        params: Any = None,
        json: Any = None,
        allow_missing: bool = False,
        not_found: Optional[str] = None,
        conflict: Optional[str] = None,
    ) -> Optional[requests.Response]:
        if self.api_key:
            params = list(params.items()) if isinstance(params, dict) else list(params or [])
            params.append(("key", self.api_key))

        try:
            response = self.session.request(
                method,
                url,
                params=params,
                json=json,
                timeout=self.timeout,
            )
        except requests.exceptions.RequestException as exc:
            raise StoreError(f"Firestore request failed: {exc}") from exc

        if response.status_code == 404:
            if allow_missing:
                return None
            if not_found:
                raise RecordNotFoundError(not_found)

        # ABORTED (contention) and ALREADY_EXISTS both come back as 409
        if response.status_code == 409 and conflict:
            raise RecordConflictError(conflict)

        try:
            response.raise_for_status()
        except requests.exceptions.HTTPError as exc:
            raise StoreError(f"Firestore {method} {url} failed: {exc}") from exc

        return response

    def _notify(self, kind: str) -> None:
        callbacks = list(self._subscribers.get(kind, []))
        if not callbacks:
            return

        snapshot = self.list_records(kind)
        for callback in callbacks:
            try:
                callback(list(snapshot))
            except Exception:
                logger.exception("Subscriber for %s raised while handling a snapshot", kind)


# =============================================================================
# Firestore value encoding
# =============================================================================


def encode_value(value: Any) -> Dict[str, Any]:
    """Encode a Python value as a Firestore ``Value``."""
    if value is None:
        return {"nullValue": None}
    if isinstance(value, bool):
        return {"booleanValue": value}
    if isinstance(value, int):
        return {"integerValue": str(value)}
    if isinstance(value, float):
        return {"doubleValue": value}
    if isinstance(value, str):
        return {"stringValue": value}
    if isinstance(value, Mapping):
        return {"mapValue": {"fields": encode_fields(value)}}
    if isinstance(value, (list, tuple)):
        return {"arrayValue": {"values": [encode_value(item) for item in value]}}
    raise TypeError(f"Cannot store value of type {type(value).__name__} in Firestore")


def encode_fields(data: Mapping[str, Any]) -> Dict[str, Any]:
    return {key: encode_value(value) for key, value in data.items()}


def decode_value(value: Mapping[str, Any]) -> Any:
    """Decode a Firestore ``Value`` into a Python value."""
    if "nullValue" in value:
        return None
    if "booleanValue" in value:
        return value["booleanValue"]
    if "integerValue" in value:
        return int(value["integerValue"])
    if "doubleValue" in value:
        return float(value["doubleValue"])
    if "mapValue" in value:
        return decode_fields(value["mapValue"].get("fields", {}))
    if "arrayValue" in value:
        return [decode_value(item) for item in value["arrayValue"].get("values", [])]
    for key in ("stringValue", "timestampValue", "referenceValue"):
        if key in value:
            return value[key]
    raise ValueError(f"Unsupported Firestore value: {sorted(value)}")


def decode_fields(fields: Mapping[str, Any]) -> Dict[str, Any]:
    return {key: decode_value(value) for key, value in fields.items()}


def decode_document(document: Mapping[str, Any]) -> Record:
    record = decode_fields(document.get("fields", {}))
    record["id"] = _document_id(document["name"])
    return record


def _document_id(name: str) -> str:
    return name.rsplit("/", 1)[-1]


def _without_id(data: Mapping[str, Any]) -> Dict[str, Any]:
    return {key: value for key, value in data.items() if key != "id"}
