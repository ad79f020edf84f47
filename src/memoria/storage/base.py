"""
Storage Collaborator Interface

Narrow, tenant-scoped key/value contract consumed by recognition,
enrichment and the MemorySystem facade.

Implementations must be safe for concurrent use. Enrichment performs
read-modify-write without its own locking; stores needing strict
consistency must provide per-key locking themselves.
"""

from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, List, Optional

from pydantic import BaseModel, Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Scope(BaseModel):
    """Tenant scope applied to every store call."""
    tenant_id: str = "default"


class StoredRecord(BaseModel):
    """A persisted value with its tags and bookkeeping timestamps."""
    key: str
    value: Any
    tags: List[str] = Field(default_factory=list)
    tenant_id: str = "default"
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)


class RecordQuery(BaseModel):
    """
    Query for ``get_many``.

    Records match when they carry ANY of ``tags`` (all records when empty)
    and, if given, their key is in ``keys``. Results are most recently
    updated first.
    """
    tags: List[str] = Field(default_factory=list)
    keys: Optional[List[str]] = None
    limit: Optional[int] = None


class RecordStore(ABC):
    """Abstract record store."""

    @abstractmethod
    async def get(self, key: str, scope: Optional[Scope] = None) -> Optional[StoredRecord]:
        """Return the record for ``key`` or None."""
        pass

    @abstractmethod
    async def set(
        self,
        key: str,
        value: Any,
        tags: Optional[List[str]] = None,
        scope: Optional[Scope] = None,
    ) -> StoredRecord:
        """Create or replace the record for ``key``."""
        pass

    @abstractmethod
    async def get_many(self, query: RecordQuery, scope: Optional[Scope] = None) -> List[StoredRecord]:
        """Return records matching ``query`` within ``scope``."""
        pass

    @abstractmethod
    async def delete(self, key: str, scope: Optional[Scope] = None) -> bool:
        """Delete ``key``. Returns True if a record was removed."""
        pass

    async def close(self) -> None:
        """Release resources held by the store."""
        pass


def matches_query(record: StoredRecord, query: RecordQuery) -> bool:
    if query.keys is not None and record.key not in query.keys:
        return False
    if query.tags and not set(query.tags) & set(record.tags):
        return False
    return True
