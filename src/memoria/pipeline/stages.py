"""
Pipeline Stages

The closed set of lifecycle stages, their component roles and the single
interface every stage processor implements.
"""

import time
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from enum import Enum
from typing import Any, ClassVar, Dict, List, Optional, Tuple, Type, Union

from pydantic import BaseModel, ConfigDict

from memoria.models.memory_item import MemoryItem


class Stage(str, Enum):
    """Lifecycle stages, in processing order."""
    ACQUISITION = "acquisition"
    ENCODING = "encoding"
    DERIVATION = "derivation"
    RETRIEVAL = "retrieval"
    NEURAL_MEMORY = "neuralMemory"
    UTILIZATION = "utilization"


STAGE_ORDER: Tuple[Stage, ...] = tuple(Stage)

STAGE_ROLES: Dict[Stage, Tuple[str, ...]] = {
    Stage.ACQUISITION: ("filter", "compressor", "consolidator"),
    Stage.ENCODING: ("attention", "fusion"),
    Stage.DERIVATION: ("reflection", "summarization", "distillation", "forgetting"),
    Stage.RETRIEVAL: ("indexing", "matching"),
    Stage.NEURAL_MEMORY: ("associative", "parameterIntegration"),
    Stage.UTILIZATION: ("rag", "longContext", "hallucinationMitigation"),
}

ProcessResult = Union[MemoryItem, List[MemoryItem], None]


class ProcessorConfig(BaseModel):
    """Base for processor configs. Unknown keys are rejected."""
    model_config = ConfigDict(extra="forbid")


class ProcessorMetrics(BaseModel):
    """Counters kept by each processor instance."""
    items_processed: int = 0
    items_dropped: int = 0
    items_emitted: int = 0
    errors: int = 0
    processing_time_ms: float = 0.0
    last_processed_at: Optional[datetime] = None


class StageProcessor(ABC):
    """
    Interface for stage processors.

    ``process`` returns the item (possibly transformed), a list of items
    (fan-out), or None (dropped). Subclasses implement ``_process``; the
    public ``process`` keeps the metrics.

    Class attributes:
        name: registry name
        config_model: pydantic model validating the profile config blob
        roles: (stage, role) slots the processor may fill; None means any
    """

    name: ClassVar[str] = ""
    config_model: ClassVar[Type[ProcessorConfig]] = ProcessorConfig
    roles: ClassVar[Optional[Tuple[Tuple[Stage, str], ...]]] = None

    def __init__(
        self,
        stage: Stage,
        role: str,
        config: Optional[Union[ProcessorConfig, Dict[str, Any]]] = None,
    ):
        self.stage = Stage(stage)
        self.role = role
        self.config = self.config_model()
        self._metrics = ProcessorMetrics()
        if config is not None:
            self.configure(config)

    def configure(self, config: Union[ProcessorConfig, Dict[str, Any]]) -> None:
        """Replace the configuration. Raises pydantic.ValidationError on bad input."""
        if isinstance(config, BaseModel):
            config = config.model_dump()
        self.config = self.config_model.model_validate(config)

    @classmethod
    def accepts(cls, stage: Stage, role: str) -> bool:
        return cls.roles is None or (Stage(stage), role) in cls.roles

    def mark(self, item: MemoryItem) -> None:
        item.mark(self.stage.value, self.role)

    async def process(self, item: MemoryItem) -> ProcessResult:
        started = time.perf_counter()
        self._metrics.items_processed += 1
        try:
            result = await self._process(item)
        except Exception:
            self._metrics.errors += 1
            self._metrics.items_dropped += 1
            raise
        finally:
            self._metrics.processing_time_ms += (time.perf_counter() - started) * 1000
            self._metrics.last_processed_at = datetime.now(timezone.utc)

        if result is None or result == []:
            self._metrics.items_dropped += 1
        elif isinstance(result, list):
            self._metrics.items_emitted += len(result)
        else:
            self._metrics.items_emitted += 1
        return result

    @abstractmethod
    async def _process(self, item: MemoryItem) -> ProcessResult:
        pass

    def metrics(self) -> ProcessorMetrics:
        return self._metrics.model_copy()

    def reset_metrics(self) -> None:
        self._metrics = ProcessorMetrics()

    async def close(self) -> None:
        """Release processor state (caches, clients)."""
        pass

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.stage.value}:{self.role})"
