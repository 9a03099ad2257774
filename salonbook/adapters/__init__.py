"""
Adapters layer - External integrations (record stores, Gemini API).
"""

from .firestore_client import FirestoreRecordStore
from .gemini_client import GeminiClient
from .memory_store import InMemoryRecordStore
from .record_store import RecordStoreProtocol

__all__ = ["FirestoreRecordStore", "GeminiClient", "InMemoryRecordStore", "RecordStoreProtocol"]
