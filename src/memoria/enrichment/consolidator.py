"""
LLM Consolidator

Merges the base record and all additional sources into one object when
the conflicts are beyond the auto-resolver.
"""

import json
import logging
from typing import Any, List, Optional

from memoria.errors import LLMResponseError
from memoria.llm.base import LLMCaller, LLMSettings, parse_json_response
from memoria.models.enrichment import DataAnalysis

logger = logging.getLogger("memoria.enrichment")


def to_json(data: Any) -> str:
    return json.dumps(data, indent=2, ensure_ascii=False, default=str)


class LLMConsolidator:
    """Builds the enrichment prompt and parses the merged object."""

    def __init__(self, llm: LLMCaller, temperature: float = 0.2):
        self.llm = llm
        self.temperature = temperature

    def build_prompt(
        self,
        base: Any,
        additional: List[Any],
        analysis: DataAnalysis,
        custom_prompt: Optional[str] = None,
        focus_fields: Optional[List[str]] = None,
        goal: Optional[str] = None,
    ) -> str:
        if custom_prompt:
            return (
                custom_prompt
                .replace("${baseData}", to_json(base))
                .replace("${additionalData}", to_json(additional))
                .replace("${analysis}", to_json(analysis.model_dump(mode="json")))
            )

        sources = "\n\n".join(
            f"Source {i}:\n{to_json(data)}" for i, data in enumerate(additional, start=1)
        )
        conflicts = "\n".join(
            f'Field "{c.field}": {len(c.unique_values)} different values'
            + ("" if c.is_simple else " (complex)")
            for c in analysis.conflicts
        ) or "None"
        context = f"\n\nCONTEXT: This enrichment is being done as part of: {goal}" if goal else ""
        focus = (
            f"\n\nFOCUS FIELDS: Pay special attention to these fields: {', '.join(focus_fields)}"
            if focus_fields else ""
        )

        return f"""I need to enrich and consolidate data from multiple sources into a single, comprehensive object.

BASE DATA (existing):
{to_json(base)}

ADDITIONAL DATA SOURCES:
{sources or "None"}

ANALYSIS:
- Conflicts found: {len(analysis.conflicts)}
- New fields to add: {len(analysis.additions)}
- Complex conflicts requiring judgment: {str(analysis.has_complex_conflicts).lower()}

DETAILED CONFLICTS:
{conflicts}{context}{focus}

INSTRUCTIONS:
1. Create an enriched version by combining all data sources
2. Resolve conflicts by choosing the most accurate and complete information
3. Add missing fields from additional sources
4. Keep the data consistent and its relationships intact
5. Merge arrays without duplicates, preserving their structure
6. Combine the fields of nested objects from all sources

Return ONLY the final enriched data object as JSON (not wrapped in any other structure)."""

    async def consolidate(
        self,
        base: Any,
        additional: List[Any],
        analysis: DataAnalysis,
        custom_prompt: Optional[str] = None,
        focus_fields: Optional[List[str]] = None,
        json_schema: Optional[dict] = None,
        goal: Optional[str] = None,
    ) -> Any:
        """
        Return the LLM's merged object.

        Raises:
            LLMCallError: transport failure, timeout or an unusable response
        """
        prompt = self.build_prompt(base, additional, analysis, custom_prompt, focus_fields, goal)
        responses = await self.llm.call(
            prompt,
            json_schema=json_schema,
            settings=LLMSettings(temperature=self.temperature),
        )
        merged = parse_json_response(responses)

        if isinstance(base, dict) and not isinstance(merged, dict):
            raise LLMResponseError(
                f"Expected a JSON object from consolidation, got {type(merged).__name__}"
            )
        logger.debug("LLM consolidation returned a merged object")
        return merged
