"""Encoding processors (stage 2)."""

import re
from typing import List

from pydantic import Field

from memoria.models.memory_item import MemoryItem
from memoria.pipeline.stages import ProcessorConfig, ProcessResult, Stage, StageProcessor
from memoria.recognition.field_paths import flatten_text
from memoria.recognition.text import extract_terms, normalize

_SENTENCE_END = re.compile(r"(?<=[.!?])\s+|\n+")


def split_segments(text: str) -> List[str]:
    return [segment.strip() for segment in _SENTENCE_END.split(text) if segment.strip()]


class ConversationAttentionConfig(ProcessorConfig):
    min_score: float = Field(default=0.0, ge=0.0, le=1.0)  # drop items scoring below


class ConversationAttention(StageProcessor):
    """
    Scores how information-dense an item is.

    Each sentence scores ``0.3 + 0.7 * significant_terms / words``; the
    item's ``attention_score`` is the mean over sentences.
    """

    name = "ConversationAttention"
    config_model = ConversationAttentionConfig
    roles = ((Stage.ENCODING, "attention"),)

    @staticmethod
    def segment_score(segment: str) -> float:
        words = normalize(segment).split()
        if not words:
            return 0.0
        return min(1.0, 0.3 + 0.7 * len(extract_terms(segment)) / len(words))

    def attention_score(self, item: MemoryItem) -> float:
        segments = split_segments(flatten_text(item.data))
        if not segments:
            return 0.0
        return sum(self.segment_score(s) for s in segments) / len(segments)

    async def _process(self, item: MemoryItem) -> ProcessResult:
        score = self.attention_score(item)
        if score < self.config.min_score:
            return None
        item.metadata.attention_score = round(score, 4)
        self.mark(item)
        return item
