"""
In-Memory Record Store

Process-local store used by tests and single-process deployments.
"""

import asyncio
import copy
from typing import Any, Dict, List, Optional, Tuple

from memoria.storage.base import (
    RecordQuery,
    RecordStore,
    Scope,
    StoredRecord,
    _utcnow,
    matches_query,
)
from memoria.storage.tags import normalize_tags


class InMemoryRecordStore(RecordStore):
    """
    Dictionary-backed store keyed by (tenant_id, key).

    Values are deep-copied on the way in and out so callers can never
    mutate stored state by accident.
    """

    def __init__(self):
        self._records: Dict[Tuple[str, str], StoredRecord] = {}
        self._lock = asyncio.Lock()

    @staticmethod
    def _tenant(scope: Optional[Scope]) -> str:
        return scope.tenant_id if scope else "default"

    async def get(self, key: str, scope: Optional[Scope] = None) -> Optional[StoredRecord]:
        record = self._records.get((self._tenant(scope), key))
        return record.model_copy(deep=True) if record else None

    async def set(
        self,
        key: str,
        value: Any,
        tags: Optional[List[str]] = None,
        scope: Optional[Scope] = None,
    ) -> StoredRecord:
        tenant_id = self._tenant(scope)
        async with self._lock:
            previous = self._records.pop((tenant_id, key), None)
            record = StoredRecord(
                key=key,
                value=copy.deepcopy(value),
                tags=normalize_tags(tags),
                tenant_id=tenant_id,
                created_at=previous.created_at if previous else _utcnow(),
            )
            self._records[(tenant_id, key)] = record
        return record.model_copy(deep=True)

    async def get_many(self, query: RecordQuery, scope: Optional[Scope] = None) -> List[StoredRecord]:
        tenant_id = self._tenant(scope)
        query = query.model_copy(update={"tags": normalize_tags(query.tags)})

        records = [
            record
            for (owner, _), record in self._records.items()
            if owner == tenant_id and matches_query(record, query)
        ]
        records.reverse()
        records.sort(key=lambda r: r.updated_at, reverse=True)
        if query.limit is not None:
            records = records[: query.limit]
        return [record.model_copy(deep=True) for record in records]

    async def delete(self, key: str, scope: Optional[Scope] = None) -> bool:
        async with self._lock:
            return self._records.pop((self._tenant(scope), key), None) is not None

    def __len__(self) -> int:
        return len(self._records)
