"""Record storage package."""

from memoria.storage.base import RecordQuery, RecordStore, Scope, StoredRecord
from memoria.storage.file_store import JsonFileRecordStore
from memoria.storage.memory_store import InMemoryRecordStore
from memoria.storage.tags import normalize_tags

__all__ = [
    "InMemoryRecordStore",
    "JsonFileRecordStore",
    "RecordQuery",
    "RecordStore",
    "Scope",
    "StoredRecord",
    "normalize_tags",
]
