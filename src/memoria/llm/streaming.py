"""
LLM Streaming

Streams partial completions through an explicit channel. Every stream
ends with exactly one chunk whose ``done`` flag is set; cancellation
through the stream's token ends it early with ``cancelled=True``.
"""

import asyncio
import logging
from typing import AsyncIterator, Optional

from pydantic import BaseModel

from memoria.errors import LLMCancelledError, LLMResponseError
from memoria.llm.cancellation import CancellationToken

logger = logging.getLogger("memoria.llm")


class StreamChunk(BaseModel):
    """A partial result. ``done`` marks the terminal sentinel."""
    content: str = ""
    done: bool = False
    cancelled: bool = False
    error: Optional[str] = None


class LLMStream:
    """
    Async iterator of ``StreamChunk`` fed by a background producer.

    Usage:
        async for chunk in stream:
            if chunk.done:
                break
            print(chunk.content, end="")
    """

    def __init__(
        self,
        source: AsyncIterator[str],
        token: Optional[CancellationToken] = None,
        max_buffer: int = 64,
    ):
        self._source = source
        self.token = token or CancellationToken()
        self._queue: "asyncio.Queue[StreamChunk]" = asyncio.Queue(maxsize=max_buffer)
        self._producer: Optional[asyncio.Task] = None
        self._finished = False

    async def _pump(self) -> None:
        try:
            async for text in self._source:
                if self.token.cancelled:
                    break
                if text:
                    await self._queue.put(StreamChunk(content=text))
            await self._queue.put(StreamChunk(done=True, cancelled=self.token.cancelled))
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.warning(f"LLM stream failed: {e}")
            await self._queue.put(StreamChunk(done=True, error=str(e)))

    def __aiter__(self) -> "LLMStream":
        return self

    async def __anext__(self) -> StreamChunk:
        if self._finished:
            raise StopAsyncIteration
        if self._producer is None:
            self._producer = asyncio.ensure_future(self._pump())

        getter = asyncio.ensure_future(self._queue.get())
        watcher = asyncio.ensure_future(self.token.wait())
        try:
            done, _ = await asyncio.wait(
                {getter, watcher}, return_when=asyncio.FIRST_COMPLETED
            )
        except asyncio.CancelledError:
            getter.cancel()
            raise
        finally:
            watcher.cancel()

        if getter in done:
            chunk = getter.result()
        else:
            getter.cancel()
            await self.aclose()
            chunk = StreamChunk(done=True, cancelled=True)

        if chunk.done:
            self._finished = True
        return chunk

    async def aclose(self) -> None:
        """Stop the producer and the underlying source."""
        self._finished = True
        if self._producer is not None and not self._producer.done():
            self._producer.cancel()
            await asyncio.gather(self._producer, return_exceptions=True)
        closer = getattr(self._source, "aclose", None)
        if closer is not None:
            await closer()

    async def collect(self) -> str:
        """Drain the stream and return the concatenated text."""
        parts = []
        async for chunk in self:
            if chunk.done:
                if chunk.error:
                    raise LLMResponseError(f"LLM stream failed: {chunk.error}")
                if chunk.cancelled:
                    raise LLMCancelledError(self.token.reason or "stream cancelled")
                break
            parts.append(chunk.content)
        return "".join(parts)
