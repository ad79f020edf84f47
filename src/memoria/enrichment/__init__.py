"""Enrichment: diff analysis, auto-resolution, LLM consolidation."""

from memoria.enrichment.consolidator import LLMConsolidator
from memoria.enrichment.diff import analyze, is_simple_conflict
from memoria.enrichment.enricher import EnrichmentEngine
from memoria.enrichment.resolver import auto_resolve, resolve_simple_conflict

__all__ = [
    "EnrichmentEngine",
    "LLMConsolidator",
    "analyze",
    "auto_resolve",
    "is_simple_conflict",
    "resolve_simple_conflict",
]
