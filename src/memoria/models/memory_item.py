"""
Memory Item Data Model

Defines the MemoryItem that flows through the six-stage pipeline.
Stages append "stage:component" entries to ``metadata.processing_history``
and may replace ``data`` or extend ``metadata``.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, List, Optional
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class MemoryIntent(str, Enum):
    """Which memory the item is headed for."""
    WORKING = "workingMemory"
    SEMANTIC = "semanticLTM"
    EPISODIC = "episodicLTM"
    RETRIEVAL = "retrieval"


class DataType(str, Enum):
    """Shape of the item payload."""
    TEXT = "text"
    JSON = "json"


class MemoryMetadata(BaseModel):
    """
    Metadata carried by every MemoryItem.

    Processors may attach additional keys (summary, attention_score,
    index_terms, ...); they are kept as extra fields.
    """

    model_config = ConfigDict(extra="allow")

    tenant_id: str = "default"
    agent_id: Optional[str] = None
    task_id: Optional[str] = None
    source_operation: str = "remember"
    timestamp: datetime = Field(default_factory=_utcnow)
    processing_history: List[str] = Field(default_factory=list)
    merged_from: Optional[List[str]] = None
    merged_at: Optional[datetime] = None
    merged_count: Optional[int] = None


class MemoryItem(BaseModel):
    """
    A single unit of memory passing through the lifecycle pipeline.

    ``data`` is an arbitrary JSON-like value (string, dict, list, ...).
    """

    id: str = Field(default_factory=lambda: f"mem_{uuid4().hex}")
    data: Any = Field(..., description="Payload: free text or a nested JSON-like value")
    data_type: DataType = DataType.TEXT
    intent: MemoryIntent = MemoryIntent.SEMANTIC
    metadata: MemoryMetadata = Field(default_factory=MemoryMetadata)

    class Config:
        use_enum_values = True

    @classmethod
    def create(
        cls,
        data: Any,
        intent: MemoryIntent = MemoryIntent.SEMANTIC,
        source_operation: str = "remember",
        tenant_id: str = "default",
        agent_id: Optional[str] = None,
        task_id: Optional[str] = None,
    ) -> "MemoryItem":
        """Build an item, inferring ``data_type`` from the payload."""
        return cls(
            data=data,
            data_type=DataType.TEXT if isinstance(data, str) else DataType.JSON,
            intent=intent,
            metadata=MemoryMetadata(
                tenant_id=tenant_id,
                agent_id=agent_id,
                task_id=task_id,
                source_operation=source_operation,
            ),
        )

    def mark(self, stage: str, component: str) -> None:
        """Append a "stage:component" entry to the processing history."""
        self.metadata.processing_history.append(f"{stage}:{component}")
