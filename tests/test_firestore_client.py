"""
Tests for the Firestore REST record store with a mocked session.
"""

from unittest.mock import MagicMock

import pytest
import requests

from salonbook.adapters.firestore_client import (
    FirestoreRecordStore,
    decode_document,
    decode_value,
    encode_fields,
    encode_value,
)
from salonbook.domain.exceptions import (
    RecordConflictError,
    RecordNotFoundError,
    SlotUnavailableError,
    StoreError,
)
from salonbook.domain.models import DELETE_FIELD
from salonbook.services.appointment_service import AppointmentService

DOCS = "projects/demo/databases/(default)/documents"
BASE = f"https://firestore.googleapis.com/v1/{DOCS}"


def _response(payload=None, status_code=200):
    response = MagicMock()
    response.status_code = status_code
    response.json.return_value = payload
    if status_code >= 400:
        response.raise_for_status.side_effect = requests.exceptions.HTTPError(f"{status_code} error")
    else:
        response.raise_for_status.return_value = None
    return response


def _document(kind, record_id, **fields):
    return {"name": f"{DOCS}/{kind}/{record_id}", "fields": encode_fields(fields)}


def _store(responses, api_key="web-key"):
    """Build a store whose session answers (method, url) pairs from ``responses``."""
    session = MagicMock()
    session.headers = {}

    def request(method, url, **kwargs):
        answer = responses[(method, url)]
        return answer if isinstance(answer, MagicMock) else answer(kwargs)

    session.request.side_effect = request
    return FirestoreRecordStore(project_id="demo", api_key=api_key, session=session), session


class TestValueEncoding:
    """Firestore Value encoding."""

    def test_scalars(self):
        assert encode_value("a") == {"stringValue": "a"}
        assert encode_value(3) == {"integerValue": "3"}
        assert encode_value(1.5) == {"doubleValue": 1.5}
        assert encode_value(True) == {"booleanValue": True}
        assert encode_value(None) == {"nullValue": None}

    def test_nested_map_decodes_back(self):
        value = {"proposedBy": "admin", "attempts": 2, "tags": ["a", "b"]}

        assert decode_value(encode_value(value)) == value

    def test_unsupported_type(self):
        with pytest.raises(TypeError):
            encode_value(object())

    def test_timestamp_decodes_as_string(self):
        assert decode_value({"timestampValue": "2025-06-01T09:00:00Z"}) == "2025-06-01T09:00:00Z"

    def test_decode_document_adds_id(self):
        record = decode_document(_document("appointments", "abc", status="pending"))

        assert record == {"status": "pending", "id": "abc"}


class TestRecordOperations:
    """Requests issued by the store."""

    def test_create_record(self):
        store, session = _store({
            ("POST", f"{BASE}/users"): _response(_document("users", "new-id", name="Ayşe")),
        })

        record_id = store.create_record("users", {"name": "Ayşe", "id": "ignored"})

        assert record_id == "new-id"
        kwargs = session.request.call_args.kwargs
        assert kwargs["json"] == {"fields": {"name": {"stringValue": "Ayşe"}}}
        assert ("key", "web-key") in kwargs["params"]

    def test_get_missing_record_returns_none(self):
        store, _ = _store({
            ("GET", f"{BASE}/users/nope"): _response(status_code=404),
        })

        assert store.get_record("users", "nope") is None

    def test_update_record_uses_field_mask(self):
        store, session = _store({
            ("PATCH", f"{BASE}/appointments/a1"): _response(_document("appointments", "a1")),
        })

        store.update_record("appointments", "a1", {"status": "confirmed", "pendingChange": DELETE_FIELD})

        kwargs = session.request.call_args.kwargs
        assert ("updateMask.fieldPaths", "status") in kwargs["params"]
        assert ("updateMask.fieldPaths", "pendingChange") in kwargs["params"]
        assert ("currentDocument.exists", "true") in kwargs["params"]
        assert kwargs["json"] == {"fields": {"status": {"stringValue": "confirmed"}}}

    def test_update_missing_record_raises(self):
        store, _ = _store({
            ("PATCH", f"{BASE}/appointments/a1"): _response(status_code=404),
        })

        with pytest.raises(RecordNotFoundError):
            store.update_record("appointments", "a1", {"status": "confirmed"})

    def test_delete_missing_record_raises(self):
        store, _ = _store({
            ("GET", f"{BASE}/appointments/a1"): _response(status_code=404),
        })

        with pytest.raises(RecordNotFoundError):
            store.delete_record("appointments", "a1")

    def test_list_records_follows_pages(self):
        def pages(kwargs):
            params = dict(kwargs["params"])
            if "pageToken" in params:
                return _response({"documents": [_document("users", "u2", name="b")]})
            return _response({"documents": [_document("users", "u1", name="a")], "nextPageToken": "t"})

        store, _ = _store({("GET", f"{BASE}/users"): pages})

        assert [r["id"] for r in store.list_records("users")] == ["u1", "u2"]

    def test_query_by_equality(self):
        store, session = _store({
            ("POST", f"{BASE}:runQuery"): _response([
                {"document": _document("users", "u1", phoneNumber="555")},
                {"readTime": "2025-06-01T00:00:00Z"},
            ]),
        })

        records = store.query_by_equality("users", "phoneNumber", "555")

        assert [r["id"] for r in records] == ["u1"]
        where = session.request.call_args.kwargs["json"]["structuredQuery"]["where"]
        assert where["fieldFilter"]["field"] == {"fieldPath": "phoneNumber"}

    def test_http_error_raises_store_error(self):
        store, _ = _store({("GET", f"{BASE}/users"): _response(status_code=500)})

        with pytest.raises(StoreError):
            store.list_records("users")

    def test_connection_error_raises_store_error(self):
        store, session = _store({})
        session.request.side_effect = requests.exceptions.ConnectionError("offline")

        with pytest.raises(StoreError):
            store.get_record("users", "u1")


class TestConditionalCreate:
    """create_record_unless_exists inside a transaction."""

    MATCH = {"staffId": "staff-a", "date": "2025-06-10", "time": "14:00"}

    def test_commit_when_slot_is_free(self):
        store, session = _store({
            ("POST", f"{BASE}:beginTransaction"): _response({"transaction": "tx-1"}),
            ("POST", f"{BASE}:runQuery"): _response([
                {"document": _document("appointments", "old", status="cancelled", **self.MATCH)},
            ]),
            ("POST", f"{BASE}:commit"): _response({"writeResults": [{}]}),
        })

        record_id = store.create_record_unless_exists(
            "appointments",
            {**self.MATCH, "status": "pending"},
            match=self.MATCH,
            exclude={"status": "cancelled"},
        )

        calls = {call.args[1]: call.kwargs for call in session.request.call_args_list}
        assert calls[f"{BASE}:runQuery"]["json"]["transaction"] == "tx-1"
        write = calls[f"{BASE}:commit"]["json"]["writes"][0]
        assert write["update"]["name"] == f"{DOCS}/appointments/{record_id}"
        assert write["currentDocument"] == {"exists": False}
        assert f"{BASE}:rollback" not in calls

    def test_conflict_rolls_back(self):
        store, session = _store({
            ("POST", f"{BASE}:beginTransaction"): _response({"transaction": "tx-1"}),
            ("POST", f"{BASE}:runQuery"): _response([
                {"document": _document("appointments", "taken", status="confirmed", **self.MATCH)},
            ]),
            ("POST", f"{BASE}:rollback"): _response({}),
        })

        with pytest.raises(RecordConflictError):
            store.create_record_unless_exists(
                "appointments",
                {**self.MATCH, "status": "pending"},
                match=self.MATCH,
                exclude={"status": "cancelled"},
            )

        urls = [call.args[1] for call in session.request.call_args_list]
        assert f"{BASE}:rollback" in urls
        assert f"{BASE}:commit" not in urls

    def test_failed_commit_rolls_back(self):
        store, session = _store({
            ("POST", f"{BASE}:beginTransaction"): _response({"transaction": "tx-1"}),
            ("POST", f"{BASE}:runQuery"): _response([]),
            ("POST", f"{BASE}:commit"): _response(status_code=500),
            ("POST", f"{BASE}:rollback"): _response({}),
        })

        with pytest.raises(StoreError):
            store.create_record_unless_exists("appointments", {**self.MATCH}, match=self.MATCH)

        urls = [call.args[1] for call in session.request.call_args_list]
        assert urls[-1] == f"{BASE}:rollback"

    def test_contended_commit_is_a_conflict(self):
        """A commit aborted by a concurrent writer reads as a lost race."""
        store, session = _store({
            ("POST", f"{BASE}:beginTransaction"): _response({"transaction": "tx-1"}),
            ("POST", f"{BASE}:runQuery"): _response([]),
            ("POST", f"{BASE}:commit"): _response(status_code=409),
            ("POST", f"{BASE}:rollback"): _response({}),
        })

        with pytest.raises(RecordConflictError):
            store.create_record_unless_exists("appointments", {**self.MATCH}, match=self.MATCH)

        urls = [call.args[1] for call in session.request.call_args_list]
        assert urls[-1] == f"{BASE}:rollback"

    def test_lost_race_surfaces_as_unavailable_slot(self, availability, catalog, customer, staff_a):
        """Through the appointment service a contended commit becomes SlotUnavailableError."""
        store, _ = _store({
            ("POST", f"{BASE}:beginTransaction"): _response({"transaction": "tx-1"}),
            ("POST", f"{BASE}:runQuery"): _response([]),
            ("POST", f"{BASE}:commit"): _response(status_code=409),
            ("POST", f"{BASE}:rollback"): _response({}),
        })
        service = AppointmentService(store, availability, catalog)

        with pytest.raises(SlotUnavailableError):
            service.book(customer, staff_a, catalog[0], "2025-06-10", "14:00")


class TestSubscriptions:
    """Snapshot deliveries without a push channel."""

    def test_subscribe_and_refresh(self):
        store, _ = _store({
            ("GET", f"{BASE}/appointments"): _response({"documents": [
                _document("appointments", "a1", status="pending"),
            ]}),
        })
        deliveries = []

        unsubscribe = store.subscribe("appointments", deliveries.append)
        store.refresh("appointments")
        unsubscribe()
        store.refresh("appointments")

        assert len(deliveries) == 2
        assert deliveries[0][0]["id"] == "a1"
