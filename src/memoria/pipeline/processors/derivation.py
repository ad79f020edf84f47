"""
Derivation Processors

Stage 3: summaries, fan-out of list payloads, and forgetting of stale
items.
"""

import logging
from datetime import datetime, timezone
from typing import Optional

from pydantic import Field

from memoria.models.memory_item import MemoryIntent, MemoryItem
from memoria.pipeline.processors.encoding import split_segments
from memoria.pipeline.stages import ProcessorConfig, ProcessResult, Stage, StageProcessor
from memoria.recognition.field_paths import flatten_text

logger = logging.getLogger("memoria.pipeline")


class SimpleSummarizerConfig(ProcessorConfig):
    max_sentences: int = Field(default=2, gt=0)
    max_length: int = Field(default=200, gt=3)


class SimpleSummarizer(StageProcessor):
    """Stores the leading sentences of an item as ``metadata.summary``."""

    name = "SimpleSummarizer"
    config_model = SimpleSummarizerConfig
    roles = ((Stage.DERIVATION, "summarization"),)

    def summarize(self, text: str) -> str:
        summary = " ".join(split_segments(text)[: self.config.max_sentences])
        if len(summary) > self.config.max_length:
            summary = summary[: self.config.max_length - 3].rstrip() + "..."
        return summary

    async def _process(self, item: MemoryItem) -> ProcessResult:
        text = flatten_text(item.data)
        if text.strip():
            item.metadata.summary = self.summarize(text)
        self.mark(item)
        return item


class FieldSplitterConfig(ProcessorConfig):
    field: Optional[str] = None  # split data[field] instead of data itself


class FieldSplitter(StageProcessor):
    """
    Fans a list payload out into one item per element.

    Children get ids ``{parent_id}-{n}`` and ``metadata.split_from``.
    Items whose payload is not a list pass through unchanged.
    """

    name = "FieldSplitter"
    config_model = FieldSplitterConfig
    roles = ((Stage.DERIVATION, "distillation"),)

    async def _process(self, item: MemoryItem) -> ProcessResult:
        source = item.data
        if self.config.field is not None:
            source = item.data.get(self.config.field) if isinstance(item.data, dict) else None

        self.mark(item)
        if not isinstance(source, list) or not source:
            return item

        children = []
        for index, element in enumerate(source):
            child = item.model_copy(deep=True)
            child.id = f"{item.id}-{index}"
            child.data = element
            child.data_type = "text" if isinstance(element, str) else "json"
            child.metadata.split_from = item.id
            children.append(child)
        return children


class TimeDecayForgetterConfig(ProcessorConfig):
    max_age_seconds: float = Field(default=24 * 3600, gt=0)


class TimeDecayForgetter(StageProcessor):
    """
    Drops items older than ``max_age_seconds`` and stamps the rest with a
    linear ``retention_score``. Retrieval queries are never forgotten.
    """

    name = "TimeDecayForgetter"
    config_model = TimeDecayForgetterConfig
    roles = ((Stage.DERIVATION, "forgetting"),)

    def age_seconds(self, item: MemoryItem, now: Optional[datetime] = None) -> float:
        now = now or datetime.now(timezone.utc)
        timestamp = item.metadata.timestamp
        if timestamp.tzinfo is None:
            timestamp = timestamp.replace(tzinfo=timezone.utc)
        return max(0.0, (now - timestamp).total_seconds())

    async def _process(self, item: MemoryItem) -> ProcessResult:
        if item.intent == MemoryIntent.RETRIEVAL:
            self.mark(item)
            return item

        age = self.age_seconds(item)
        if age > self.config.max_age_seconds:
            logger.debug(f"Forgetting {item.id}: {age:.0f}s old")
            return None

        item.metadata.retention_score = round(1.0 - age / self.config.max_age_seconds, 4)
        self.mark(item)
        return item
