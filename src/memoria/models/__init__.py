"""Data models package."""

from memoria.models.enrichment import (
    Change,
    ChangeAction,
    ChangeSource,
    DataAnalysis,
    EnrichmentOptions,
    EnrichmentResult,
    FieldAddition,
    FieldConflict,
)
from memoria.models.memory_item import DataType, MemoryIntent, MemoryItem, MemoryMetadata
from memoria.models.outcomes import RecallHit, RememberAction, RememberOutcome
from memoria.models.recognition import RecognitionOptions, RecognitionResult, ScoredCandidate

__all__ = [
    "Change",
    "ChangeAction",
    "ChangeSource",
    "DataAnalysis",
    "DataType",
    "EnrichmentOptions",
    "EnrichmentResult",
    "FieldAddition",
    "FieldConflict",
    "MemoryIntent",
    "MemoryItem",
    "MemoryMetadata",
    "RecallHit",
    "RecognitionOptions",
    "RecognitionResult",
    "RememberAction",
    "RememberOutcome",
    "ScoredCandidate",
]
