"""
Acquisition Processors

Stage 1: decide what enters memory, shrink it, and fold near-duplicates
into a single item.
"""

import copy
import json
import logging
from collections import deque
from datetime import datetime, timezone
from typing import Any, Deque, Dict, List

from pydantic import Field

from memoria.models.memory_item import MemoryIntent, MemoryItem
from memoria.pipeline.stages import ProcessorConfig, ProcessResult, Stage, StageProcessor
from memoria.recognition.field_paths import flatten_text
from memoria.recognition.similarity import SimilarityScorer

logger = logging.getLogger("memoria.pipeline")

BASE_RELEVANCE = 0.7


def _serialized_size(data: Any) -> int:
    return len(json.dumps(data, ensure_ascii=False, default=str))


class TenantAwareFilterConfig(ProcessorConfig):
    allowed_tenants: List[str] = Field(default_factory=list)  # empty allows all
    max_input_size: int = Field(default=10000, gt=0)
    relevance_threshold: float = Field(default=0.5, ge=0.0, le=1.0)


class TenantAwareFilter(StageProcessor):
    """Drops items from foreign tenants, oversized items and empty items."""

    name = "TenantAwareFilter"
    config_model = TenantAwareFilterConfig
    roles = ((Stage.ACQUISITION, "filter"),)

    def relevance(self, item: MemoryItem) -> float:
        if not flatten_text(item.data).strip():
            return 0.0
        return BASE_RELEVANCE

    def should_process(self, item: MemoryItem) -> bool:
        tenant_id = item.metadata.tenant_id
        if self.config.allowed_tenants and tenant_id not in self.config.allowed_tenants:
            logger.warning(f"Tenant access denied: {tenant_id} ({item.metadata.source_operation})")
            return False

        size = _serialized_size(item.data)
        if size > self.config.max_input_size:
            logger.debug(f"Item {item.id} too large: {size} > {self.config.max_input_size}")
            return False

        if self.relevance(item) < self.config.relevance_threshold:
            logger.debug(f"Item {item.id} below relevance threshold")
            return False
        return True

    async def _process(self, item: MemoryItem) -> ProcessResult:
        if not self.should_process(item):
            return None
        self.mark(item)
        return item


class TextTruncationCompressorConfig(ProcessorConfig):
    max_length: int = Field(default=1000, gt=3)
    preserve_structure: bool = True  # cut on word boundaries


class TextTruncationCompressor(StageProcessor):
    """Truncates text payloads longer than ``max_length``."""

    name = "TextTruncationCompressor"
    config_model = TextTruncationCompressorConfig
    roles = ((Stage.ACQUISITION, "compressor"),)

    def truncate(self, content: str) -> str:
        limit = self.config.max_length - 3
        if self.config.preserve_structure:
            result = ""
            for word in content.split(" "):
                candidate = f"{result} {word}" if result else word
                if len(candidate) > limit:
                    break
                result = candidate
            if result:
                return result + "..."
        return content[:limit] + "..."

    async def _process(self, item: MemoryItem) -> ProcessResult:
        if not isinstance(item.data, str) or len(item.data) <= self.config.max_length:
            return item

        original = item.data
        item.data = self.truncate(original)
        item.metadata.compressed = True
        item.metadata.original_length = len(original)
        item.metadata.compressed_length = len(item.data)
        item.metadata.compression_ratio = len(item.data) / len(original)
        self.mark(item)
        return item


class NoveltyConsolidatorConfig(ProcessorConfig):
    novelty_threshold: float = Field(default=0.8, ge=0.0, le=1.0)
    duplicate_detection: bool = True
    cache_size: int = Field(default=100, gt=0)


def merge_data(values: List[Any]) -> Any:
    """Combine payloads: join strings, concatenate lists, overlay mappings."""
    distinct: List[Any] = []
    seen = set()
    for value in values:
        marker = json.dumps(value, sort_keys=True, default=str)
        if marker not in seen:
            seen.add(marker)
            distinct.append(value)

    if len(distinct) == 1:
        return copy.deepcopy(distinct[0])
    if all(isinstance(v, str) for v in distinct):
        return "\n\n".join(distinct)
    if all(isinstance(v, list) for v in distinct):
        return [element for value in distinct for element in copy.deepcopy(value)]
    if all(isinstance(v, dict) for v in distinct):
        merged: Dict[str, Any] = {}
        for value in distinct:
            merged.update(copy.deepcopy(value))
        return merged
    return copy.deepcopy(distinct)


class NoveltyConsolidator(StageProcessor):
    """
    Keeps a bounded cache of recent items per tenant and folds a new item
    together with cached items that duplicate it or are at least
    ``novelty_threshold`` similar.

    The merged item keeps the oldest item's id and records the others in
    ``merged_from``.
    """

    name = "NoveltyConsolidator"
    config_model = NoveltyConsolidatorConfig
    roles = ((Stage.ACQUISITION, "consolidator"),)

    def __init__(self, stage: Stage, role: str, config=None):
        super().__init__(stage, role, config)
        self._recent: Dict[str, Deque[MemoryItem]] = {}
        self._scorer = SimilarityScorer(method="jaccard")
        self.items_merged = 0
        self.duplicates_removed = 0

    def _cache(self, tenant_id: str) -> Deque[MemoryItem]:
        if tenant_id not in self._recent:
            self._recent[tenant_id] = deque(maxlen=self.config.cache_size)
        return self._recent[tenant_id]

    def should_merge(self, item: MemoryItem, cached: MemoryItem) -> bool:
        if item.metadata.tenant_id != cached.metadata.tenant_id:
            return False
        if self.config.duplicate_detection:
            if json.dumps(item.data, sort_keys=True, default=str) == json.dumps(
                cached.data, sort_keys=True, default=str
            ):
                self.duplicates_removed += 1
                return True
        similarity = self._scorer.score(flatten_text(item.data), flatten_text(cached.data))
        return similarity >= self.config.novelty_threshold

    def merge(self, items: List[MemoryItem]) -> MemoryItem:
        ordered = sorted(items, key=lambda i: i.metadata.timestamp)
        first = ordered[0]

        history: List[str] = []
        for source in ordered:
            for entry in source.metadata.processing_history:
                if entry not in history:
                    history.append(entry)

        merged = first.model_copy(deep=True)
        merged.data = merge_data([source.data for source in ordered])
        merged.metadata.processing_history = history
        merged.metadata.merged_from = [source.id for source in ordered[1:]]
        merged.metadata.merged_at = datetime.now(timezone.utc)
        merged.metadata.merged_count = len(ordered)
        return merged

    async def _process(self, item: MemoryItem) -> ProcessResult:
        self.mark(item)
        if item.intent == MemoryIntent.RETRIEVAL:
            return item

        cache = self._cache(item.metadata.tenant_id)
        candidates = [cached for cached in cache if self.should_merge(item, cached)]
        if not candidates:
            cache.append(item.model_copy(deep=True))
            return item

        merged = self.merge([item] + candidates)
        merged_ids = {candidate.id for candidate in candidates}
        remaining = [cached for cached in cache if cached.id not in merged_ids]
        cache.clear()
        cache.extend(remaining)
        cache.append(merged.model_copy(deep=True))

        self.items_merged += len(candidates)
        logger.debug(f"Merged {item.id} with {len(candidates)} cached items into {merged.id}")
        return merged

    async def close(self) -> None:
        self._recent.clear()

    def cached_items(self, tenant_id: str = "default") -> List[MemoryItem]:
        return list(self._recent.get(tenant_id, ()))
