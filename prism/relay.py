"""
Completion relay: binds requests to adapters and relays responses or frame streams
"""

import logging
from typing import AsyncIterator, Awaitable, Callable, Optional

from .adapter import ModelAdapter
from .exceptions import GatewayError, UpstreamError
from .models import ChatCompletionRequest, ChatCompletionResponse
from .streaming import DONE_FRAME, encode_error, encode_frame

logger = logging.getLogger(__name__)

DisconnectProbe = Callable[[], Awaitable[bool]]


def _as_gateway_error(exc: Exception, model: str, phase: str) -> GatewayError:
    if isinstance(exc, GatewayError):
        error = exc
    else:
        error = UpstreamError(f"model call failed: {exc}")
    return error.add_context(model=model, phase=phase)


class CompletionRelay:
    """
    Request handling on top of an adapter (normally the AdapterRegistry).

    Errors keep the kind the adapter raised them with; anything that is not a
    GatewayError is reported as an upstream failure.
    """

    def __init__(self, adapter: ModelAdapter):
        self._adapter = adapter

    async def complete(self, request: ChatCompletionRequest) -> ChatCompletionResponse:
        """Non-streaming path: one call, response returned untouched"""
        try:
            return await self._adapter.chat(request)
        except GatewayError as e:
            e.add_context(model=request.model, phase="chat")
            logger.warning(f"Chat failed: {e}")
            raise
        except Exception as e:
            error = _as_gateway_error(e, request.model, "chat")
            logger.exception(f"Chat failed: {error}")
            raise error from e

    async def stream(
        self,
        request: ChatCompletionRequest,
        is_disconnected: Optional[DisconnectProbe] = None,
    ) -> AsyncIterator[str]:
        """
        Streaming path, yielding wire frames.

        - stream cannot be opened: one error frame, no [DONE]
        - upstream fails after frames were sent: one error frame, then [DONE]
        - client goes away: emission stops and the upstream stream is closed
        """
        try:
            frames = await self._adapter.chat_stream(request)
        except Exception as e:
            error = _as_gateway_error(e, request.model, "stream_open")
            logger.warning(f"Stream open failed: {error}")
            yield encode_error(error)
            return

        count = 0
        try:
            try:
                async for chunk in frames:
                    if is_disconnected is not None and await is_disconnected():
                        logger.info(f"Client disconnected from {request.model} stream after {count} frames")
                        return
                    yield encode_frame(chunk)
                    count += 1
            except GatewayError as e:
                error = e.add_context(model=request.model, phase="stream")
                logger.warning(f"Stream interrupted after {count} frames: {error}")
                yield encode_error(error)
        finally:
            await frames.aclose()

        logger.debug(f"Stream for {request.model} finished with {count} frames")
        yield DONE_FRAME
