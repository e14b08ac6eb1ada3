"""
Offline echo backend for local development and tests
"""

import time
from typing import List

from .adapter import ModelAdapter
from .models import ChatCompletionRequest, ChatCompletionResponse, ChatCompletionChunk, Choice, ResponseMessage, Usage
from .streaming import FrameStream, DEFAULT_BUFFER_SIZE, create_chunk, new_completion_id


class MockAdapter(ModelAdapter):
    """Replies with the last user message, prefixed, without any network call"""

    def __init__(self, prefix: str = "echo: ", chunk_size: int = 8, buffer_size: int = DEFAULT_BUFFER_SIZE):
        self._prefix = prefix
        self._chunk_size = max(1, chunk_size)
        self._buffer_size = buffer_size

    @property
    def name(self) -> str:
        return "mock"

    def _reply(self, request: ChatCompletionRequest) -> str:
        return f"{self._prefix}{request.last_user_message() or ''}"

    @staticmethod
    def _count_tokens(text: str) -> int:
        return len(text.split())

    async def chat(self, request: ChatCompletionRequest) -> ChatCompletionResponse:
        content = self._reply(request)
        prompt_tokens = sum(self._count_tokens(m.content) for m in request.messages)
        return ChatCompletionResponse(
            id=new_completion_id(),
            created=int(time.time()),
            model=request.model,
            choices=[Choice(index=0, message=ResponseMessage(role="assistant", content=content), finish_reason="stop")],
            usage=Usage.from_counts(prompt_tokens, self._count_tokens(content)),
        )

    def _frames(self, request: ChatCompletionRequest) -> List[ChatCompletionChunk]:
        chat_id = new_completion_id()
        created = int(time.time())
        content = self._reply(request)

        # 1. Send role
        frames = [create_chunk(chat_id, request.model, {"role": "assistant", "content": ""}, created=created)]
        # 2. Send content
        for start in range(0, len(content), self._chunk_size):
            piece = content[start:start + self._chunk_size]
            frames.append(create_chunk(chat_id, request.model, {"content": piece}, created=created))
        # 3. Finish
        frames.append(create_chunk(chat_id, request.model, {}, "stop", created=created))
        return frames

    async def chat_stream(self, request: ChatCompletionRequest) -> FrameStream:
        frames = self._frames(request)

        async def produce(send) -> None:
            for frame in frames:
                await send(frame)

        return FrameStream(produce, buffer_size=self._buffer_size, name=f"{self.name}:{request.model}")

    async def health_check(self) -> None:
        return None
