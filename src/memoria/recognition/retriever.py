"""
Candidate Retriever

Fetches the stored records that could plausibly match a candidate.

Strategies (results are unioned, de-duplicated by key, cut to ``limit``):
1. Entity scan: records in the tenant whose entity fields are similar to
   the candidate's on at least one field
2. Tag scope: records carrying any of the requested tags
3. Broad: most recently updated records, when neither entities nor tags
   are given
"""

import logging
from typing import Any, Dict, List, Optional

from memoria.recognition.field_paths import as_text, expand_values
from memoria.recognition.similarity import SimilarityScorer
from memoria.storage.base import RecordQuery, RecordStore, Scope, StoredRecord

logger = logging.getLogger("memoria.recognition")


class CandidateRetriever:
    """Narrows the comparison set for recognition."""

    def __init__(
        self,
        store: RecordStore,
        scorer: Optional[SimilarityScorer] = None,
        scan_limit: int = 1000,
    ):
        self.store = store
        self.scorer = scorer or SimilarityScorer()
        self.scan_limit = scan_limit

    async def find_candidates(
        self,
        candidate: Any,
        entities: Dict[str, str],
        tags: List[str],
        limit: int,
        tenant_id: str = "default",
    ) -> List[StoredRecord]:
        scope = Scope(tenant_id=tenant_id)
        found: List[StoredRecord] = []

        if entities:
            found.extend(await self._by_entities(candidate, entities, scope))
        if tags:
            found.extend(await self.store.get_many(RecordQuery(tags=tags, limit=limit), scope))
        if not entities and not tags:
            found.extend(await self.store.get_many(RecordQuery(limit=limit), scope))

        unique: Dict[str, StoredRecord] = {}
        for record in found:
            unique.setdefault(record.key, record)

        candidates = list(unique.values())[:limit]
        logger.debug(f"Retrieved {len(candidates)} candidates for tenant {tenant_id}")
        return candidates

    async def _by_entities(
        self,
        candidate: Any,
        entities: Dict[str, str],
        scope: Scope,
    ) -> List[StoredRecord]:
        wanted = {
            path: expand_values(candidate, path)
            for path in entities
        }
        wanted = {path: values for path, values in wanted.items() if values}
        if not wanted:
            return []

        records = await self.store.get_many(RecordQuery(limit=self.scan_limit), scope)
        return [
            record for record in records
            if self._shares_entity(wanted, record.value)
        ]

    def _shares_entity(self, wanted: Dict[str, List[Any]], stored: Any) -> bool:
        for path, values in wanted.items():
            for existing in expand_values(stored, path):
                existing_text = as_text(existing)
                for value in values:
                    if self.scorer.compare(as_text(value), existing_text) >= self.scorer.threshold:
                        return True
        return False
