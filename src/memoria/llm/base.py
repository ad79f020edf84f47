"""
LLM Collaborator Interface

Recognition and enrichment only see this narrow contract: send a prompt,
optionally ask for a JSON schema, get back a list of text responses.
Any failure surfaces as an ``LLMCallError`` subclass.
"""

import json
import re
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from pydantic import BaseModel

from memoria.errors import LLMResponseError


class LLMSettings(BaseModel):
    """Per-call generation settings."""
    temperature: Optional[float] = None
    max_tokens: Optional[int] = None
    model: Optional[str] = None


class LLMResponse(BaseModel):
    """A single completion."""
    content: str


class LLMCaller(ABC):
    """
    Abstract base class for LLM callers.

    Implementations own retries and rate limiting; callers only
    distinguish success from ``LLMCallError``.
    """

    @abstractmethod
    async def call(
        self,
        prompt: str,
        json_schema: Optional[Dict[str, Any]] = None,
        settings: Optional[LLMSettings] = None,
    ) -> List[LLMResponse]:
        """
        Run a completion.

        Args:
            prompt: Full prompt text
            json_schema: Optional JSON schema the response must follow
            settings: Optional generation settings

        Returns:
            One or more responses; the first is used by the engines

        Raises:
            LLMCallError: On timeout, transport or API failure
        """
        pass


_FENCE = re.compile(r"^```(?:json)?\s*(.*?)\s*```$", re.DOTALL)


def parse_json_response(responses: List[LLMResponse]) -> Any:
    """Decode the first response as JSON, tolerating markdown fences."""
    if not responses or not responses[0].content.strip():
        raise LLMResponseError("LLM returned an empty response")

    content = responses[0].content.strip()
    fenced = _FENCE.match(content)
    if fenced:
        content = fenced.group(1)

    try:
        return json.loads(content)
    except json.JSONDecodeError as e:
        raise LLMResponseError(f"LLM response is not valid JSON: {e}") from e
