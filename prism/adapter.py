"""
Model adapter contract shared by every backend integration
"""

from abc import ABC, abstractmethod

from .models import ChatCompletionRequest, ChatCompletionResponse
from .streaming import FrameStream


class ModelAdapter(ABC):
    """
    Backend integration for one model-serving API.

    Instances are shared between concurrent requests and between every model
    name bound to them, so they must not keep per-request state.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Stable identifier of the backend kind, used in diagnostics only"""

    @abstractmethod
    async def chat(self, request: ChatCompletionRequest) -> ChatCompletionResponse:
        """One synchronous round trip to the backend"""

    @abstractmethod
    async def chat_stream(self, request: ChatCompletionRequest) -> FrameStream:
        """
        Open a streaming call and return the live frame sequence.

        Errors while establishing the stream are raised from this call; the
        returned stream is not restartable and has exactly one consumer.
        """

    @abstractmethod
    async def health_check(self) -> None:
        """Make a minimal real backend call, raising if the backend is unusable"""

    async def aclose(self) -> None:
        """Release pooled connections at shutdown"""
        return None
