"""
prism: OpenAI-compatible AI gateway

Routes chat completion requests to registered backend adapters and relays
JSON responses or SSE token streams back to the caller.
"""

__version__ = "0.1.0"

from .adapter import ModelAdapter
from .exceptions import GatewayError, ModelNotFoundError, AdapterAlreadyRegisteredError
from .models import Message, ChatCompletionRequest, ChatCompletionResponse, ChatCompletionChunk
from .registry import AdapterRegistry
from .relay import CompletionRelay

__all__ = [
    "ModelAdapter",
    "AdapterRegistry",
    "CompletionRelay",
    "GatewayError",
    "ModelNotFoundError",
    "AdapterAlreadyRegisteredError",
    "Message",
    "ChatCompletionRequest",
    "ChatCompletionResponse",
    "ChatCompletionChunk",
    "__version__",
]
