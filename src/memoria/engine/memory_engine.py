"""
Memoria System - Main Engine Implementation

Wires configuration, store, LLM caller, pipeline, recognition and
enrichment into a single MemoryEngine.
"""

import logging
from typing import Any, Dict, List, Optional

from memoria.config import MemoryConfig, load_config
from memoria.engine.base import MemoryEngine
from memoria.enrichment.enricher import EnrichmentEngine
from memoria.llm.base import LLMCaller
from memoria.llm.cancellation import CancellationToken
from memoria.llm.client import OpenAILLMCaller
from memoria.models.enrichment import EnrichmentOptions, EnrichmentResult
from memoria.models.memory_item import MemoryIntent, MemoryItem
from memoria.models.outcomes import RecallHit, RememberAction, RememberOutcome
from memoria.models.recognition import RecognitionOptions, RecognitionResult
from memoria.monitoring.performance import PerformanceMonitor
from memoria.monitoring.tenant_metrics import TenantMetrics, with_metrics
from memoria.pipeline.hooks import PipelineHookManager
from memoria.pipeline.orchestrator import MemoryPipeline
from memoria.pipeline.profiles import PipelineProfile, get_profile, load_profile
from memoria.pipeline.registry import ProcessorRegistry
from memoria.recognition.field_paths import flatten_text
from memoria.recognition.recognizer import RecognitionEngine, resolve_bounds
from memoria.recognition.text import extract_terms
from memoria.storage.base import RecordQuery, RecordStore, Scope
from memoria.storage.file_store import JsonFileRecordStore
from memoria.storage.memory_store import InMemoryRecordStore
from memoria.storage.tags import normalize_tags

logger = logging.getLogger("memoria.engine")


def create_store(config: MemoryConfig) -> RecordStore:
    """Build the record store selected by ``config.storage``."""
    if config.storage.backend == "file":
        return JsonFileRecordStore(config.storage.path)
    return InMemoryRecordStore()


class MemorySystem(MemoryEngine):
    """
    Main implementation of the memory engine.

    Usage:
        async with MemorySystem() as memory:
            outcomes = await memory.remember(
                {"title": "AI Summit 2024", "city": "Riga"},
                tags=["event"],
                entities={"title": "event"},
            )
            hits = await memory.recall("AI summit")

    Collaborators not passed in are built from ``config``: the store
    from ``storage``, an OpenAI caller when ``llm.api_key`` is set, the
    pipeline from ``pipeline.profile`` / ``pipeline.profile_path``.
    """

    def __init__(
        self,
        config: Optional[MemoryConfig] = None,
        store: Optional[RecordStore] = None,
        llm: Optional[LLMCaller] = None,
        profile: Optional[PipelineProfile] = None,
        registry: Optional[ProcessorRegistry] = None,
        hooks: Optional[PipelineHookManager] = None,
        monitor: Optional[PerformanceMonitor] = None,
    ):
        """
        Initialize the memory system.

        Raises:
            ConfigurationError: invalid recognition bounds or pipeline profile
        """
        self.config = config or load_config()
        recognition = self.config.recognition
        resolve_bounds(recognition.threshold, recognition.llm_lower_bound, recognition.llm_upper_bound)

        self.store = store or create_store(self.config)
        if llm is None and self.config.llm.api_key:
            llm = OpenAILLMCaller.from_config(self.config.llm)
        self.llm = llm

        if profile is None:
            if self.config.pipeline.profile_path:
                profile = load_profile(self.config.pipeline.profile_path)
            else:
                profile = get_profile(self.config.pipeline.profile)

        if monitor is None and self.config.monitoring.enabled:
            monitor = PerformanceMonitor(
                log_dir=str(self.config.monitoring.log_dir),
                max_recent=self.config.monitoring.max_recent,
            )
        self.monitor = monitor

        self.pipeline = MemoryPipeline(profile, registry=registry, hooks=hooks, monitor=monitor)
        self.recognizer = RecognitionEngine(
            self.store,
            llm=self.llm,
            config=recognition,
            llm_timeout=self.config.llm.timeout_seconds,
            temperature=self.config.llm.disambiguation_temperature,
        )
        self.enricher = EnrichmentEngine(
            self.store,
            llm=self.llm,
            config=self.config.enrichment,
            temperature=self.config.llm.enrichment_temperature,
        )
        self.tenant_metrics = TenantMetrics()

    async def __aenter__(self) -> "MemorySystem":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    async def remember(
        self,
        data: Any,
        tenant_id: str = "default",
        tags: Optional[List[str]] = None,
        entities: Optional[Dict[str, str]] = None,
        recognition: Optional[RecognitionOptions] = None,
        agent_id: Optional[str] = None,
        task_id: Optional[str] = None,
        token: Optional[CancellationToken] = None,
    ) -> List[RememberOutcome]:
        """
        Run the write path for ``data``.

        Recognition runs when ``entities`` (or full ``recognition``
        options) are given; a match is merged into the existing record
        through enrich(), anything else is stored under the item id.
        """
        async def run() -> List[RememberOutcome]:
            item = MemoryItem.create(
                data,
                intent=MemoryIntent.SEMANTIC,
                source_operation="remember",
                tenant_id=tenant_id,
                agent_id=agent_id,
                task_id=task_id,
            )
            outputs = await self.pipeline.process(item)
            if not outputs:
                logger.info(f"Item {item.id} dropped by the pipeline")
                return [RememberOutcome(item_id=item.id, action=RememberAction.DROPPED)]

            options = recognition
            if options is None and entities:
                options = self.recognizer.default_options(
                    entities=entities,
                    tags=normalize_tags(tags),
                    tenant_id=tenant_id,
                )
            return [await self._store_item(output, tags, options, token) for output in outputs]

        return await with_metrics(self.tenant_metrics, tenant_id, "remember", run)

    async def _store_item(
        self,
        item: MemoryItem,
        tags: Optional[List[str]],
        options: Optional[RecognitionOptions],
        token: Optional[CancellationToken],
    ) -> RememberOutcome:
        tenant_id = item.metadata.tenant_id
        result = None
        if options is not None:
            result = await self.recognizer.recognize(item.data, options, token=token)

        if result is not None and result.is_match:
            enrichment = await self.enricher.enrich(
                result.matching_key,
                [item.data],
                self.enricher.default_options(tenant_id=tenant_id, dry_run=False),
                token=token,
            )
            logger.info(f"Merged item {item.id} into {result.matching_key}")
            return RememberOutcome(
                item_id=item.id,
                action=RememberAction.MERGED,
                key=result.matching_key,
                recognition=result,
                enrichment=enrichment,
            )

        await self.store.set(item.id, item.data, tags=tags, scope=Scope(tenant_id=tenant_id))
        return RememberOutcome(
            item_id=item.id,
            action=RememberAction.STORED,
            key=item.id,
            recognition=result,
        )

    async def recall(
        self,
        query: Any,
        tenant_id: str = "default",
        tags: Optional[List[str]] = None,
        limit: int = 5,
    ) -> List[RecallHit]:
        """
        Rank stored records by term similarity to ``query``.

        The query runs through the pipeline first; terms attached by an
        indexing processor are used when present.
        """
        async def run() -> List[RecallHit]:
            item = MemoryItem.create(
                query,
                intent=MemoryIntent.RETRIEVAL,
                source_operation="recall",
                tenant_id=tenant_id,
            )
            outputs = await self.pipeline.process(item)
            if not outputs:
                return []

            indexed = getattr(outputs[0].metadata, "index_terms", None)
            terms = frozenset(indexed) if indexed else extract_terms(flatten_text(outputs[0].data))

            records = await self.store.get_many(
                RecordQuery(tags=normalize_tags(tags)), Scope(tenant_id=tenant_id)
            )
            scorer = self.recognizer.similarity
            hits = []
            for record in records:
                score = scorer.score_terms(terms, extract_terms(flatten_text(record.value)))
                if score > 0:
                    hits.append(RecallHit(key=record.key, value=record.value, score=score, tags=record.tags))
            hits.sort(key=lambda h: h.score, reverse=True)
            return hits[:limit]

        return await with_metrics(self.tenant_metrics, tenant_id, "recall", run)

    async def recognize(
        self,
        candidate: Any,
        options: Optional[RecognitionOptions] = None,
        token: Optional[CancellationToken] = None,
    ) -> RecognitionResult:
        options = options or self.recognizer.default_options()
        return await with_metrics(
            self.tenant_metrics,
            options.tenant_id,
            "recognize",
            lambda: self.recognizer.recognize(candidate, options, token=token),
        )

    async def enrich(
        self,
        key: str,
        additional_data: List[Any],
        options: Optional[EnrichmentOptions] = None,
        token: Optional[CancellationToken] = None,
    ) -> EnrichmentResult:
        options = options or self.enricher.default_options()
        return await with_metrics(
            self.tenant_metrics,
            options.tenant_id,
            "enrich",
            lambda: self.enricher.enrich(key, additional_data, options, token=token),
        )

    async def forget(self, key: str, tenant_id: str = "default") -> bool:
        return await with_metrics(
            self.tenant_metrics,
            tenant_id,
            "forget",
            lambda: self.store.delete(key, Scope(tenant_id=tenant_id)),
        )

    def metrics(self) -> Dict[str, Any]:
        """Pipeline, tenant and (if enabled) performance metrics."""
        result: Dict[str, Any] = {
            "pipeline": self.pipeline.metrics().model_dump(mode="json"),
            "tenants": self.tenant_metrics.snapshot(),
        }
        if self.monitor is not None:
            result["performance"] = self.monitor.get_summary()
        return result

    def reset_metrics(self) -> None:
        self.pipeline.reset_metrics()
        self.tenant_metrics.reset()

    async def close(self) -> None:
        """Shut down the pipeline and release the store."""
        await self.pipeline.shutdown()
        await self.store.close()
        if self.monitor is not None:
            self.monitor.close()
