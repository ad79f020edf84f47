"""
LLM Disambiguator

Asks the LLM whether two records denote the same real-world entity when
the deterministic confidence falls in the uncertain band.
"""

import json
import logging
from typing import Any, Optional

from pydantic import BaseModel, Field, ValidationError

from memoria.errors import LLMResponseError
from memoria.llm.base import LLMCaller, LLMSettings, parse_json_response

logger = logging.getLogger("memoria.recognition")

VERDICT_SCHEMA = {
    "type": "object",
    "properties": {
        "reasoning": {
            "type": "string",
            "description": "Brief explanation of the decision",
        },
        "isMatch": {
            "type": "boolean",
            "description": "Whether the two objects represent the same entity",
        },
        "confidence": {
            "type": "number",
            "description": "Confidence score between 0 and 1 for this decision",
            "minimum": 0,
            "maximum": 1,
        },
    },
    "required": ["isMatch", "confidence", "reasoning"],
}


class DisambiguationVerdict(BaseModel):
    """Structured LLM verdict."""

    model_config = {"populate_by_name": True}

    is_match: bool = Field(alias="isMatch")
    confidence: float = Field(ge=0.0, le=1.0)
    reasoning: str = ""


def to_json(data: Any) -> str:
    return json.dumps(data, indent=2, ensure_ascii=False, default=str)


class LLMDisambiguator:
    """Builds the disambiguation prompt and parses the verdict."""

    def __init__(self, llm: LLMCaller, temperature: float = 0.1):
        self.llm = llm
        self.temperature = temperature

    def build_prompt(
        self,
        candidate: Any,
        existing: Any,
        confidence: float,
        custom_prompt: Optional[str] = None,
        goal: Optional[str] = None,
    ) -> str:
        if custom_prompt:
            return (
                custom_prompt
                .replace("${candidateData}", to_json(candidate))
                .replace("${existingData}", to_json(existing))
                .replace("${confidence}", f"{confidence:.3f}")
            )

        context = f"\n\nCONTEXT: This comparison is being done as part of: {goal}" if goal else ""

        return f"""I need to determine if these two data objects represent the same real-world entity.

OBJECT 1 (Candidate):
{to_json(candidate)}

OBJECT 2 (Existing):
{to_json(existing)}

ANALYSIS CONTEXT:
- Algorithmic confidence score: {confidence:.3f} (where 1.0 = identical, 0.0 = completely different).
- The score suggests the objects are similar but not definitively the same.
- I need your judgment to make the final determination.{context}

INSTRUCTIONS:
1. Compare the key identifying information (names, titles, locations, dates, etc.)
2. Look for variations that could indicate the same entity (different spellings, abbreviations, formatting)
3. Consider if these could be the same entity with updated or different information
4. Be strict: only return true if you are confident they represent the same entity

Return ONLY a JSON object with:
- isMatch: true/false
- confidence: your confidence in this decision (0.0-1.0)
- reasoning: brief explanation of your decision"""

    async def disambiguate(
        self,
        candidate: Any,
        existing: Any,
        confidence: float,
        custom_prompt: Optional[str] = None,
        goal: Optional[str] = None,
    ) -> DisambiguationVerdict:
        """
        Run one LLM call and return its verdict.

        Raises:
            LLMCallError: transport failure, timeout or malformed verdict
        """
        prompt = self.build_prompt(candidate, existing, confidence, custom_prompt, goal)
        responses = await self.llm.call(
            prompt,
            json_schema=VERDICT_SCHEMA,
            settings=LLMSettings(temperature=self.temperature),
        )
        payload = parse_json_response(responses)

        try:
            verdict = DisambiguationVerdict.model_validate(payload)
        except ValidationError as e:
            raise LLMResponseError(f"Malformed disambiguation verdict: {e}") from e

        logger.debug(f"LLM verdict: match={verdict.is_match} confidence={verdict.confidence:.3f}")
        return verdict
