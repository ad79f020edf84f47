"""
Unit Tests for the LLM Layer

Tests the OpenAI caller, response parsing, cancellation and streaming
using mocks. Does not require an OpenAI API key.
"""

import asyncio
import json

import httpx
import openai
import pytest
from unittest.mock import AsyncMock, MagicMock

from memoria.errors import LLMCallError, LLMCancelledError, LLMResponseError, LLMTimeoutError
from memoria.llm.base import LLMResponse, LLMSettings, parse_json_response
from memoria.llm.cancellation import CancellationToken, run_guarded
from memoria.llm.streaming import LLMStream


def completion(content, usage=True):
    response = MagicMock()
    response.choices = [MagicMock()]
    response.choices[0].message.content = content
    response.usage = (
        MagicMock(prompt_tokens=100, completion_tokens=20, total_tokens=120) if usage else None
    )
    return response


class TestOpenAILLMCaller:
    """Unit tests for OpenAILLMCaller."""

    @pytest.fixture
    def caller(self):
        """Create a caller with a mocked OpenAI client."""
        from memoria.llm.client import OpenAILLMCaller

        return OpenAILLMCaller(api_key="mock-key", model="gpt-4o-mini", client=AsyncMock())

    @pytest.mark.asyncio
    async def test_call_returns_responses(self, caller):
        """Test that each choice becomes an LLMResponse."""
        caller.client.chat.completions.create = AsyncMock(
            return_value=completion('{"isMatch": true}')
        )

        responses = await caller.call("Are these the same?")

        assert responses == [LLMResponse(content='{"isMatch": true}')]
        kwargs = caller.client.chat.completions.create.call_args.kwargs
        assert kwargs["model"] == "gpt-4o-mini"
        assert kwargs["messages"] == [{"role": "user", "content": "Are these the same?"}]
        assert "response_format" not in kwargs
        assert "temperature" not in kwargs

    @pytest.mark.asyncio
    async def test_schema_and_settings_are_forwarded(self, caller):
        """Test the json_schema response format and per-call settings."""
        caller.client.chat.completions.create = AsyncMock(return_value=completion("{}"))
        schema = {"type": "object", "properties": {"isMatch": {"type": "boolean"}}}

        await caller.call(
            "prompt",
            json_schema=schema,
            settings=LLMSettings(temperature=0.1, max_tokens=200, model="gpt-4o"),
        )

        kwargs = caller.client.chat.completions.create.call_args.kwargs
        assert kwargs["response_format"] == {
            "type": "json_schema",
            "json_schema": {"name": "response", "schema": schema},
        }
        assert kwargs["temperature"] == 0.1
        assert kwargs["max_tokens"] == 200
        assert kwargs["model"] == "gpt-4o"

    @pytest.mark.asyncio
    async def test_usage_callback(self):
        """Test that token usage is reported."""
        from memoria.llm.client import OpenAILLMCaller

        usage = AsyncMock()
        caller = OpenAILLMCaller(api_key="mock-key", client=AsyncMock(), usage_callback=usage)
        caller.client.chat.completions.create = AsyncMock(return_value=completion("{}"))

        await caller.call("prompt")

        usage.assert_awaited_once_with("gpt-4o-mini", 100, 20, 120)

    @pytest.mark.asyncio
    async def test_api_error_becomes_llm_call_error(self, caller):
        caller.client.chat.completions.create = AsyncMock(
            side_effect=openai.OpenAIError("rate limited")
        )

        with pytest.raises(LLMCallError, match="rate limited"):
            await caller.call("prompt")

    @pytest.mark.asyncio
    async def test_api_timeout(self, caller):
        request = httpx.Request("POST", "https://api.openai.com/v1/chat/completions")
        caller.client.chat.completions.create = AsyncMock(
            side_effect=openai.APITimeoutError(request=request)
        )

        with pytest.raises(LLMTimeoutError):
            await caller.call("prompt")

    @pytest.mark.asyncio
    async def test_no_choices(self, caller):
        response = completion("{}", usage=False)
        response.choices = []
        caller.client.chat.completions.create = AsyncMock(return_value=response)

        with pytest.raises(LLMResponseError):
            await caller.call("prompt")

    @pytest.mark.asyncio
    async def test_stream(self, caller):
        """Test that streamed deltas arrive as chunks followed by a done sentinel."""
        def event(text):
            e = MagicMock()
            e.choices = [MagicMock()]
            e.choices[0].delta.content = text
            return e

        async def events():
            for text in ["Hello", None, ", world"]:
                yield event(text)

        caller.client.chat.completions.create = AsyncMock(return_value=events())

        text = await caller.stream("Say hello").collect()

        assert text == "Hello, world"
        assert caller.client.chat.completions.create.call_args.kwargs["stream"] is True

    def test_from_config(self):
        from memoria.config import LLMConfig
        from memoria.llm.client import OpenAILLMCaller

        caller = OpenAILLMCaller.from_config(LLMConfig(api_key="mock-key", model="gpt-4o"))
        assert caller.model == "gpt-4o"


class TestParseJsonResponse:
    """Tests for parse_json_response()."""

    def test_plain_json(self):
        assert parse_json_response([LLMResponse(content='{"a": 1}')]) == {"a": 1}

    def test_markdown_fence(self):
        content = '```json\n{"isMatch": false, "confidence": 0.4}\n```'
        assert parse_json_response([LLMResponse(content=content)]) == {
            "isMatch": False,
            "confidence": 0.4,
        }

    @pytest.mark.parametrize("responses", [[], [LLMResponse(content="  ")]])
    def test_empty(self, responses):
        with pytest.raises(LLMResponseError):
            parse_json_response(responses)

    def test_invalid_json(self):
        with pytest.raises(LLMResponseError):
            parse_json_response([LLMResponse(content="Sure! Here is the JSON")])


class TestRunGuarded:
    """Tests for run_guarded()."""

    @pytest.mark.asyncio
    async def test_returns_result(self):
        async def answer():
            return 42

        assert await run_guarded(answer(), timeout=1.0, token=CancellationToken()) == 42

    @pytest.mark.asyncio
    async def test_timeout(self):
        with pytest.raises(LLMTimeoutError):
            await run_guarded(asyncio.sleep(5), timeout=0.05)

    @pytest.mark.asyncio
    async def test_cancel_in_flight(self):
        """Test that cancelling the token abandons a running call."""
        token = CancellationToken()
        started = asyncio.Event()

        async def slow():
            started.set()
            await asyncio.sleep(5)

        async def cancel_soon():
            await started.wait()
            token.cancel("superseded")

        canceller = asyncio.ensure_future(cancel_soon())
        with pytest.raises(LLMCancelledError, match="superseded"):
            await run_guarded(slow(), timeout=2.0, token=token)
        await canceller

    @pytest.mark.asyncio
    async def test_errors_propagate(self):
        async def failing():
            raise LLMCallError("boom")

        with pytest.raises(LLMCallError, match="boom"):
            await run_guarded(failing())


class TestLLMStream:
    """Tests for LLMStream."""

    @pytest.mark.asyncio
    async def test_chunks_end_with_single_done(self):
        async def source():
            yield "a"
            yield ""
            yield "b"

        chunks = [chunk async for chunk in LLMStream(source())]

        assert [c.content for c in chunks] == ["a", "b", ""]
        assert [c.done for c in chunks] == [False, False, True]
        assert chunks[-1].cancelled is False

    @pytest.mark.asyncio
    async def test_cancellation_ends_stream(self):
        """Test that a token cancel yields a cancelled done chunk."""
        token = CancellationToken()

        async def source():
            yield "first"
            await asyncio.sleep(5)
            yield "never"

        stream = LLMStream(source(), token=token)
        first = await stream.__anext__()
        token.cancel()
        last = await stream.__anext__()

        assert first.content == "first"
        assert last.done is True
        assert last.cancelled is True
        with pytest.raises(StopAsyncIteration):
            await stream.__anext__()

    @pytest.mark.asyncio
    async def test_source_error(self):
        async def source():
            yield "partial"
            raise LLMCallError("connection reset")

        with pytest.raises(LLMResponseError, match="connection reset"):
            await LLMStream(source()).collect()

    @pytest.mark.asyncio
    async def test_collect_cancelled(self):
        token = CancellationToken()
        token.cancel("stop")

        async def source():
            await asyncio.sleep(5)
            yield "never"

        with pytest.raises(LLMCancelledError):
            await LLMStream(source(), token=token).collect()


def test_json_dumps_helper_is_stable():
    """Prompts embed JSON with non-ASCII text intact."""
    from memoria.recognition.disambiguator import to_json

    assert json.loads(to_json({"city": "Rīga"})) == {"city": "Rīga"}
    assert "Rīga" in to_json({"city": "Rīga"})
