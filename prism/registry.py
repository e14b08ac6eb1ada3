"""
Model name to adapter registry
"""

import logging
import threading
from typing import Dict, List, Set

from .adapter import ModelAdapter
from .exceptions import AdapterAlreadyRegisteredError, AdapterHealthError, ModelNotFoundError, ServerError
from .models import ChatCompletionRequest, ChatCompletionResponse
from .streaming import FrameStream

logger = logging.getLogger(__name__)


class AdapterRegistry(ModelAdapter):
    """
    Maps model names to adapters and routes calls by `request.model`.

    The registry is itself a ModelAdapter, so a single backend and a
    multi-backend deployment look the same to the relay. Several model names
    may share one adapter instance.

    Lookups never take a lock: `register` builds a new mapping under the write
    lock and swaps it in, so readers always see a complete snapshot.
    """

    def __init__(self):
        self._adapters: Dict[str, ModelAdapter] = {}
        self._write_lock = threading.Lock()

    @property
    def name(self) -> str:
        return "adapter-registry"

    def register(self, model_name: str, adapter: ModelAdapter) -> None:
        """
        Bind a model name to an adapter.

        Raises:
            ValueError: empty model name or missing adapter
            AdapterAlreadyRegisteredError: the name is already bound; the
                existing binding is kept
        """
        if not model_name:
            raise ValueError("model name cannot be empty")
        if adapter is None:
            raise ValueError("adapter cannot be None")

        with self._write_lock:
            if model_name in self._adapters:
                raise AdapterAlreadyRegisteredError(model_name)
            adapters = dict(self._adapters)
            adapters[model_name] = adapter
            self._adapters = adapters

        logger.info(f"Registered model {model_name} -> {adapter.name}")

    def lookup(self, model_name: str) -> ModelAdapter:
        adapter = self._adapters.get(model_name)
        if adapter is None:
            raise ModelNotFoundError(model_name)
        return adapter

    def list_models(self) -> List[str]:
        return list(self._adapters)

    def __len__(self) -> int:
        return len(self._adapters)

    def __contains__(self, model_name: object) -> bool:
        return model_name in self._adapters

    def dispatch(self, request: ChatCompletionRequest) -> ModelAdapter:
        """Adapter bound to `request.model`; raises ModelNotFoundError as a routing failure"""
        return self.lookup(request.model)

    async def chat(self, request: ChatCompletionRequest) -> ChatCompletionResponse:
        return await self.dispatch(request).chat(request)

    async def chat_stream(self, request: ChatCompletionRequest) -> FrameStream:
        return await self.dispatch(request).chat_stream(request)

    async def health_check(self) -> None:
        """Probe every registered adapter in turn, failing on the first unhealthy one"""
        adapters = self._adapters
        if not adapters:
            raise ServerError("no adapters registered")

        for model_name, adapter in adapters.items():
            try:
                await adapter.health_check()
            except Exception as e:
                logger.warning(f"Health check failed for model {model_name} ({adapter.name}): {e}")
                raise AdapterHealthError(model_name, e) from e

    async def aclose(self) -> None:
        """Close every distinct adapter once, even when several names share it"""
        seen: Set[int] = set()
        for adapter in self._adapters.values():
            if id(adapter) in seen:
                continue
            seen.add(id(adapter))
            await adapter.aclose()
