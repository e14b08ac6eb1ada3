"""
Server-Sent Events (SSE) frame codec and the bounded frame stream handle
"""

import asyncio
import json
import logging
import time
import uuid
from typing import Dict, Any, Optional, AsyncIterator, Awaitable, Callable, Union

from .exceptions import GatewayError, UpstreamError
from .models import ChatCompletionChunk

logger = logging.getLogger(__name__)

DONE_MARKER = "[DONE]"
DONE_FRAME = f"data: {DONE_MARKER}\n\n"
DEFAULT_BUFFER_SIZE = 10


def encode_data(payload: Dict[str, Any]) -> str:
    return f"data: {json.dumps(payload, ensure_ascii=False)}\n\n"


def encode_frame(chunk: ChatCompletionChunk) -> str:
    """Wire form of one chunk: `data: <json>` followed by a blank line"""
    return encode_data(chunk.to_wire())


def encode_error(error: GatewayError) -> str:
    return encode_data(error.to_dict())


def parse_data_line(line: str) -> Optional[str]:
    """
    Payload of an SSE `data:` line.

    Returns None for blank lines, comments and any other SSE field, so callers
    only ever see data payloads (including the `[DONE]` marker).
    """
    if not line.startswith("data:"):
        return None
    return line[len("data:"):].strip()


def new_completion_id() -> str:
    return f"chatcmpl-{uuid.uuid4().hex}"


def create_chunk(
    chat_id: str,
    model: str,
    delta: Dict[str, Any],
    finish_reason: Optional[str] = None,
    created: Optional[int] = None,
) -> ChatCompletionChunk:
    """Generate a single chunk in OpenAI format"""
    return ChatCompletionChunk(
        id=chat_id,
        object="chat.completion.chunk",
        created=created if created is not None else int(time.time()),
        model=model,
        choices=[{
            "index": 0,
            "delta": delta,
            "finish_reason": finish_reason,
        }],
    )


class _StreamEnd:
    """Queue item marking the end of a stream, optionally with the failure that ended it"""

    def __init__(self, error: Optional[GatewayError] = None):
        self.error = error


Producer = Callable[[Callable[[ChatCompletionChunk], Awaitable[None]]], Awaitable[None]]


class FrameStream:
    """
    Live, single-consumer sequence of chunks fed by one background producer task.

    The producer and the consumer are joined by a bounded queue: a slow consumer
    makes the producer wait on `put`, nothing is dropped and nothing piles up
    beyond `buffer_size` frames. `release` runs exactly once whichever way the
    stream ends (normal completion, producer failure, or `aclose`).

    Usage:
        stream = FrameStream(produce, release=response.aclose)
        try:
            async for chunk in stream:
                ...
        finally:
            await stream.aclose()
    """

    def __init__(
        self,
        producer: Producer,
        release: Optional[Callable[[], Awaitable[None]]] = None,
        buffer_size: int = DEFAULT_BUFFER_SIZE,
        name: str = "stream",
    ):
        if buffer_size < 1:
            raise ValueError("buffer_size must be at least 1")
        self._queue: "asyncio.Queue[Union[ChatCompletionChunk, _StreamEnd]]" = asyncio.Queue(maxsize=buffer_size)
        self._release = release
        self._released = False
        self._finished = False
        self._name = name
        self._task = asyncio.create_task(self._run(producer), name=f"prism-producer-{name}")

    async def _run(self, producer: Producer) -> None:
        end = _StreamEnd()
        try:
            await producer(self._queue.put)
        except asyncio.CancelledError:
            logger.debug(f"Producer for {self._name} cancelled")
            raise
        except GatewayError as e:
            end = _StreamEnd(e)
        except Exception as e:
            logger.exception(f"Producer for {self._name} failed")
            end = _StreamEnd(UpstreamError(f"stream interrupted: {e}"))
        finally:
            await self._release_once()
        await self._queue.put(end)

    async def _release_once(self) -> None:
        if self._released:
            return
        self._released = True
        if self._release is None:
            return
        try:
            await self._release()
        except Exception:
            # The end of the stream must still reach the consumer
            logger.exception(f"Releasing upstream for {self._name} failed")

    @property
    def released(self) -> bool:
        return self._released

    @property
    def producer_done(self) -> bool:
        return self._task.done()

    def __aiter__(self) -> AsyncIterator[ChatCompletionChunk]:
        return self

    async def __anext__(self) -> ChatCompletionChunk:
        if self._finished:
            raise StopAsyncIteration
        item = await self._queue.get()
        if isinstance(item, _StreamEnd):
            self._finished = True
            if item.error is not None:
                raise item.error
            raise StopAsyncIteration
        return item

    async def aclose(self) -> None:
        """Stop the producer and release the upstream resource; safe to call more than once"""
        self._finished = True
        if not self._task.done():
            self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        except Exception:
            logger.exception(f"Producer for {self._name} ended with an error during close")
        # A task cancelled before its first step never runs its finally block
        await self._release_once()
