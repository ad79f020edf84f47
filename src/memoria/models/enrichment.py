"""
Enrichment Data Models

Diff analysis output, the audit changelog and enrich() options/results.
"""

from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class ChangeAction(str, Enum):
    """What happened to a field."""
    ADDED = "added"
    UPDATED = "updated"
    RESOLVED_CONFLICT = "resolved_conflict"
    COMBINED = "combined"
    LLM_ENRICHED = "llm_enriched"


class ChangeSource(str, Enum):
    """Who made the change."""
    AUTOMATIC = "automatic"
    LLM = "llm"


class FieldAddition(BaseModel):
    """A field present in additional sources but absent from the existing record."""

    field: str
    values: List[Any] = Field(description="Distinct candidate values, first-seen order")
    is_simple: bool


class FieldConflict(BaseModel):
    """A field whose value differs across existing + additional sources."""

    field: str
    existing_value: Any = None
    additional_values: List[Any] = Field(default_factory=list)
    unique_values: List[Any] = Field(default_factory=list)
    is_simple: bool


class DataAnalysis(BaseModel):
    """Result of the diff analyzer."""

    conflicts: List[FieldConflict] = Field(default_factory=list)
    additions: List[FieldAddition] = Field(default_factory=list)
    has_complex_conflicts: bool = False

    def summary(self) -> Dict[str, Any]:
        """Compact view used in prompts."""
        return {
            "conflicts": len(self.conflicts),
            "additions": len(self.additions),
            "has_complex_conflicts": self.has_complex_conflicts,
            "conflicting_fields": {
                c.field: len(c.unique_values) for c in self.conflicts
            },
        }


class Change(BaseModel):
    """One immutable entry of the enrichment audit trail."""

    model_config = {"frozen": True}

    field: str
    action: ChangeAction
    old_value: Optional[Any] = None
    new_value: Any = None
    source: ChangeSource


class EnrichmentOptions(BaseModel):
    """Options for a single enrich() call."""

    custom_prompt: Optional[str] = None
    focus_fields: List[str] = Field(default_factory=list)
    json_schema: Optional[Dict[str, Any]] = Field(
        default=None,
        description="JSON schema the consolidated object must follow",
    )
    force_llm_enrichment: bool = False
    dry_run: bool = False
    goal: Optional[str] = None
    tenant_id: str = "default"


class EnrichmentResult(BaseModel):
    """Outcome of enrich()."""

    enriched_data: Any
    changes: List[Change] = Field(default_factory=list)
    used_llm: bool = False
    explanation: Optional[str] = None
    saved: bool = False
    analysis: Optional[DataAnalysis] = None
