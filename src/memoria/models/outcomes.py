"""
Facade Result Models

What ``MemorySystem.remember`` and ``MemorySystem.recall`` return.
"""

from enum import Enum
from typing import Any, List, Optional

from pydantic import BaseModel, Field

from memoria.models.enrichment import EnrichmentResult
from memoria.models.recognition import RecognitionResult


class RememberAction(str, Enum):
    """Fate of an item on the write path."""
    STORED = "stored"
    MERGED = "merged"
    DROPPED = "dropped"


class RememberOutcome(BaseModel):
    """One pipeline output (or the dropped input) of a remember() call."""

    item_id: str
    action: RememberAction
    key: Optional[str] = Field(default=None, description="Store key written, if any")
    recognition: Optional[RecognitionResult] = None
    enrichment: Optional[EnrichmentResult] = None


class RecallHit(BaseModel):
    """A stored record ranked against a recall query."""

    key: str
    value: Any
    score: float = Field(ge=0.0, le=1.0)
    tags: List[str] = Field(default_factory=list)
