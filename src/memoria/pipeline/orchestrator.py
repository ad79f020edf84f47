"""
Stage Pipeline Orchestrator

Routes memory items through the enabled lifecycle stages in fixed order.

Within a stage, items pass through the stage's processors in role order.
A processor may return the item, a list of items (fan-out) or None
(dropped). A processor that raises drops that item only; the error is
logged and counted. The run ends early once no items remain.
"""

import logging
import time
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, Field

from memoria.models.memory_item import MemoryIntent, MemoryItem
from memoria.pipeline.hooks import PIPELINE, PipelineHookManager
from memoria.pipeline.profiles import PipelineProfile, build_processors
from memoria.pipeline.registry import ProcessorRegistry, default_registry
from memoria.pipeline.stages import STAGE_ORDER, ProcessorMetrics, Stage, StageProcessor

logger = logging.getLogger("memoria.pipeline")


class StageMetrics(BaseModel):
    """Per-stage counters."""
    items_processed: int = 0
    items_dropped: int = 0
    items_emitted: int = 0
    items_fanned_out: int = 0
    errors: int = 0
    processing_time_ms: float = 0.0


class PipelineMetrics(BaseModel):
    """Pipeline-wide aggregate of the stage metrics."""
    runs: int = 0
    stages: Dict[str, StageMetrics] = Field(default_factory=dict)
    processors: Dict[str, ProcessorMetrics] = Field(default_factory=dict)
    total_items_processed: int = 0
    total_items_dropped: int = 0
    total_processing_time_ms: float = 0.0
    average_processing_time_ms: float = 0.0


class MemoryPipeline:
    """
    Runs memory items through the six lifecycle stages.

    Example:
        >>> pipeline = MemoryPipeline(get_profile("basic"))
        >>> items = await pipeline.remember("Met Anna at the AI Summit 2024")
    """

    def __init__(
        self,
        profile: PipelineProfile,
        registry: Optional[ProcessorRegistry] = None,
        hooks: Optional[PipelineHookManager] = None,
        monitor: Optional[Any] = None,
    ):
        self.registry = registry or default_registry()
        self.hooks = hooks or PipelineHookManager()
        self.monitor = monitor
        if monitor is not None:
            self.hooks.register_after(PIPELINE, monitor.record_pipeline_execution)

        self.profile: Optional[PipelineProfile] = None
        self._processors: Dict[Stage, List[StageProcessor]] = {}
        self.configure(profile)

    def configure(self, profile: PipelineProfile) -> None:
        """
        Validate ``profile`` and rebuild all processors.

        Raises:
            ConfigurationError: if the profile is invalid; the current
                configuration is kept in that case
        """
        processors = build_processors(profile, self.registry)
        self.profile = profile
        self._processors = processors
        self.reset_metrics()
        logger.info(
            f"Pipeline configured with profile '{profile.name}': "
            f"{', '.join(stage.value for stage in processors) or 'no stages'}"
        )

    def is_stage_enabled(self, stage: Union[Stage, str]) -> bool:
        return Stage(stage) in self._processors

    def processors(self, stage: Union[Stage, str]) -> List[StageProcessor]:
        return list(self._processors.get(Stage(stage), []))

    def reset_metrics(self) -> None:
        self._runs = 0
        self._total_time_ms = 0.0
        self._stage_metrics: Dict[Stage, StageMetrics] = {
            stage: StageMetrics() for stage in STAGE_ORDER
        }
        for processors in self._processors.values():
            for processor in processors:
                processor.reset_metrics()

    def metrics(self) -> PipelineMetrics:
        stages = {
            stage.value: metrics.model_copy()
            for stage, metrics in self._stage_metrics.items()
        }
        return PipelineMetrics(
            runs=self._runs,
            stages=stages,
            processors={
                f"{p.stage.value}:{p.role}": p.metrics()
                for processors in self._processors.values()
                for p in processors
            },
            total_items_processed=sum(m.items_processed for m in stages.values()),
            total_items_dropped=sum(m.items_dropped for m in stages.values()),
            total_processing_time_ms=self._total_time_ms,
            average_processing_time_ms=self._total_time_ms / self._runs if self._runs else 0.0,
        )

    async def _run_stage(self, stage: Stage, items: List[MemoryItem]) -> List[MemoryItem]:
        """
        Run one stage's processors in order.

        Drops (None, an empty list or an exception) and extra fan-out
        items are counted per item.
        """
        metrics = self._stage_metrics[stage]
        current = items
        for processor in self._processors[stage]:
            produced: List[MemoryItem] = []
            for item in current:
                try:
                    result = await processor.process(item)
                except Exception as e:
                    logger.error(f"{processor!r} failed on item {item.id}: {e}", exc_info=True)
                    metrics.errors += 1
                    metrics.items_dropped += 1
                    continue

                if result is None or result == []:
                    metrics.items_dropped += 1
                    continue
                if isinstance(result, list):
                    metrics.items_fanned_out += len(result) - 1
                    produced.extend(result)
                else:
                    produced.append(result)

            current = produced
            if not current:
                break
        return current

    async def process(self, items: Union[MemoryItem, List[MemoryItem]]) -> List[MemoryItem]:
        """Run ``items`` through every enabled stage and return the survivors."""
        current = [items] if isinstance(items, MemoryItem) else list(items)

        context: Dict[str, Any] = {
            "profile": self.profile.name,
            "items": current,
            "input_count": len(current),
            "start_time": time.time(),
            "stage_timings": {},
        }
        await self.hooks.execute_before(PIPELINE, context)
        run_started = time.perf_counter()
        run_dropped = 0

        for stage in STAGE_ORDER:
            if not current:
                break
            if stage not in self._processors:
                continue

            stage_context: Dict[str, Any] = {"stage": stage.value, "items": current}
            await self.hooks.execute_before(stage.value, stage_context)

            metrics = self._stage_metrics[stage]
            dropped_before = metrics.items_dropped
            started = time.perf_counter()
            outputs = await self._run_stage(stage, current)
            elapsed_ms = (time.perf_counter() - started) * 1000
            run_dropped += metrics.items_dropped - dropped_before

            metrics.items_processed += len(current)
            metrics.items_emitted += len(outputs)
            metrics.processing_time_ms += elapsed_ms
            context["stage_timings"][stage.value] = round(elapsed_ms, 3)

            stage_context.update(items=outputs, input_count=len(current), duration_ms=elapsed_ms)
            await self.hooks.execute_after(stage.value, stage_context)
            current = outputs

        duration_ms = (time.perf_counter() - run_started) * 1000
        self._runs += 1
        self._total_time_ms += duration_ms

        context.update(
            items=current,
            output_count=len(current),
            dropped_count=run_dropped,
            duration_ms=duration_ms,
        )
        await self.hooks.execute_after(PIPELINE, context)
        return current

    async def remember(
        self,
        data: Any,
        tenant_id: str = "default",
        intent: MemoryIntent = MemoryIntent.SEMANTIC,
        agent_id: Optional[str] = None,
        task_id: Optional[str] = None,
    ) -> List[MemoryItem]:
        """Wrap ``data`` in a MemoryItem and run the write path."""
        item = MemoryItem.create(
            data,
            intent=intent,
            source_operation="remember",
            tenant_id=tenant_id,
            agent_id=agent_id,
            task_id=task_id,
        )
        return await self.process(item)

    async def recall(
        self,
        query: Any,
        tenant_id: str = "default",
        agent_id: Optional[str] = None,
    ) -> List[MemoryItem]:
        """Run a retrieval query through the pipeline."""
        item = MemoryItem.create(
            query,
            intent=MemoryIntent.RETRIEVAL,
            source_operation="recall",
            tenant_id=tenant_id,
            agent_id=agent_id,
        )
        return await self.process(item)

    async def shutdown(self) -> None:
        """Release processor state."""
        for processors in self._processors.values():
            for processor in processors:
                await processor.close()
        logger.info("Pipeline shut down")
