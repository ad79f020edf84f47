"""LLM collaborator package."""

from memoria.llm.base import LLMCaller, LLMResponse, LLMSettings, parse_json_response
from memoria.llm.cancellation import CancellationToken, run_guarded
from memoria.llm.client import OpenAILLMCaller
from memoria.llm.streaming import LLMStream, StreamChunk

__all__ = [
    "CancellationToken",
    "LLMCaller",
    "LLMResponse",
    "LLMSettings",
    "LLMStream",
    "OpenAILLMCaller",
    "StreamChunk",
    "parse_json_response",
    "run_guarded",
]
