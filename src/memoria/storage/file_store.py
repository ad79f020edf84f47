"""
JSON File Record Store

Persists all tenants' records into a single JSON document written with
aiofiles. Suitable for local tools and demos, not for multi-process use.
"""

import asyncio
import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

import aiofiles

from memoria.errors import StorageError
from memoria.storage.base import (
    RecordQuery,
    RecordStore,
    Scope,
    StoredRecord,
    _utcnow,
    matches_query,
)
from memoria.storage.tags import normalize_tags

logger = logging.getLogger("memoria.storage")


class JsonFileRecordStore(RecordStore):
    """
    File-backed store.

    The document layout is ``{tenant_id: {key: record}}``. The file is
    loaded lazily on first access and rewritten after every mutation.
    """

    def __init__(self, path: Path):
        self.path = Path(path)
        self._data: Optional[Dict[str, Dict[str, StoredRecord]]] = None
        self._lock = asyncio.Lock()

    async def _load(self) -> Dict[str, Dict[str, StoredRecord]]:
        if self._data is not None:
            return self._data

        data: Dict[str, Dict[str, StoredRecord]] = {}
        if self.path.exists():
            try:
                async with aiofiles.open(self.path, "r", encoding="utf-8") as f:
                    raw = json.loads(await f.read() or "{}")
            except (OSError, json.JSONDecodeError) as e:
                raise StorageError(f"Failed to read store file {self.path}: {e}") from e

            for tenant_id, records in raw.items():
                data[tenant_id] = {
                    key: StoredRecord.model_validate(record)
                    for key, record in records.items()
                }
            logger.info(f"Loaded {sum(len(r) for r in data.values())} records from {self.path}")

        self._data = data
        return data

    async def _flush(self) -> None:
        payload = {
            tenant_id: {key: record.model_dump(mode="json") for key, record in records.items()}
            for tenant_id, records in (self._data or {}).items()
        }
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            async with aiofiles.open(self.path, "w", encoding="utf-8") as f:
                await f.write(json.dumps(payload, ensure_ascii=False, indent=2))
        except OSError as e:
            raise StorageError(f"Failed to write store file {self.path}: {e}") from e

    @staticmethod
    def _tenant(scope: Optional[Scope]) -> str:
        return scope.tenant_id if scope else "default"

    async def get(self, key: str, scope: Optional[Scope] = None) -> Optional[StoredRecord]:
        async with self._lock:
            data = await self._load()
        record = data.get(self._tenant(scope), {}).get(key)
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
            data = await self._load()
            records = data.setdefault(tenant_id, {})
            previous = records.get(key)
            record = StoredRecord(
                key=key,
                value=json.loads(json.dumps(value)),
                tags=normalize_tags(tags),
                tenant_id=tenant_id,
                created_at=previous.created_at if previous else _utcnow(),
            )
            records[key] = record
            await self._flush()
        return record.model_copy(deep=True)

    async def get_many(self, query: RecordQuery, scope: Optional[Scope] = None) -> List[StoredRecord]:
        async with self._lock:
            data = await self._load()
        query = query.model_copy(update={"tags": normalize_tags(query.tags)})

        records = [
            record
            for record in data.get(self._tenant(scope), {}).values()
            if matches_query(record, query)
        ]
        records.sort(key=lambda r: r.updated_at, reverse=True)
        if query.limit is not None:
            records = records[: query.limit]
        return [record.model_copy(deep=True) for record in records]

    async def delete(self, key: str, scope: Optional[Scope] = None) -> bool:
        async with self._lock:
            data = await self._load()
            removed = data.get(self._tenant(scope), {}).pop(key, None) is not None
            if removed:
                await self._flush()
        return removed
