"""
LLM Client

OpenAI-backed implementation of the LLM collaborator:
- JSON-schema constrained completions for disambiguation and consolidation
- Streaming completions through ``LLMStream``
- Token usage reporting via callback
"""

import asyncio
import logging
import os
from typing import Any, AsyncIterator, Awaitable, Callable, Dict, List, Optional

import openai
from openai import AsyncOpenAI

from memoria.config import LLMConfig
from memoria.errors import LLMCallError, LLMResponseError, LLMTimeoutError
from memoria.llm.base import LLMCaller, LLMResponse, LLMSettings
from memoria.llm.cancellation import CancellationToken
from memoria.llm.streaming import LLMStream

logger = logging.getLogger("memoria.llm")

UsageCallback = Callable[[str, int, int, int], Awaitable[None]]


class OpenAILLMCaller(LLMCaller):
    """
    LLM caller using the OpenAI API (or any OpenAI-compatible endpoint).

    Concurrency is bounded by a semaphore; retries with exponential
    backoff and request timeouts are delegated to the openai client.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        model: str = "gpt-4o-mini",
        timeout_seconds: float = 30.0,
        max_retries: int = 2,
        max_concurrency: int = 5,
        usage_callback: Optional[UsageCallback] = None,
        client: Optional[AsyncOpenAI] = None,
    ):
        self.model = model
        self.usage_callback = usage_callback
        self.client = client or AsyncOpenAI(
            api_key=api_key or os.getenv("OPENAI_API_KEY"),
            base_url=base_url,
            timeout=timeout_seconds,
            max_retries=max_retries,
        )
        self._semaphore = asyncio.Semaphore(max_concurrency)

    @classmethod
    def from_config(
        cls,
        config: LLMConfig,
        usage_callback: Optional[UsageCallback] = None,
    ) -> "OpenAILLMCaller":
        return cls(
            api_key=config.api_key,
            base_url=config.base_url,
            model=config.model,
            timeout_seconds=config.timeout_seconds,
            max_retries=config.max_retries,
            max_concurrency=config.max_concurrency,
            usage_callback=usage_callback,
        )

    async def _report_usage(self, response: Any, model: str) -> None:
        """Helper to report token usage via callback."""
        if self.usage_callback and getattr(response, "usage", None):
            await self.usage_callback(
                model,
                response.usage.prompt_tokens,
                getattr(response.usage, "completion_tokens", 0),
                response.usage.total_tokens,
            )

    def _request_args(
        self,
        prompt: str,
        json_schema: Optional[Dict[str, Any]],
        settings: Optional[LLMSettings],
    ) -> Dict[str, Any]:
        settings = settings or LLMSettings()
        args: Dict[str, Any] = {
            "model": settings.model or self.model,
            "messages": [{"role": "user", "content": prompt}],
        }
        if settings.temperature is not None:
            args["temperature"] = settings.temperature
        if settings.max_tokens is not None:
            args["max_tokens"] = settings.max_tokens
        if json_schema is not None:
            args["response_format"] = {
                "type": "json_schema",
                "json_schema": {"name": "response", "schema": json_schema},
            }
        return args

    async def call(
        self,
        prompt: str,
        json_schema: Optional[Dict[str, Any]] = None,
        settings: Optional[LLMSettings] = None,
    ) -> List[LLMResponse]:
        args = self._request_args(prompt, json_schema, settings)

        async with self._semaphore:
            try:
                response = await self.client.chat.completions.create(**args)
            except openai.APITimeoutError as e:
                raise LLMTimeoutError(f"OpenAI request timed out: {e}") from e
            except openai.OpenAIError as e:
                raise LLMCallError(f"OpenAI request failed: {e}") from e

        await self._report_usage(response, args["model"])

        if not response.choices:
            raise LLMResponseError("OpenAI returned no choices")
        return [
            LLMResponse(content=choice.message.content or "")
            for choice in response.choices
        ]

    def stream(
        self,
        prompt: str,
        settings: Optional[LLMSettings] = None,
        token: Optional[CancellationToken] = None,
    ) -> LLMStream:
        """Stream a plain-text completion."""
        args = self._request_args(prompt, None, settings)

        async def deltas() -> AsyncIterator[str]:
            async with self._semaphore:
                try:
                    events = await self.client.chat.completions.create(stream=True, **args)
                    async for event in events:
                        if event.choices and event.choices[0].delta.content:
                            yield event.choices[0].delta.content
                except openai.OpenAIError as e:
                    raise LLMCallError(f"OpenAI stream failed: {e}") from e

        return LLMStream(deltas(), token=token)
