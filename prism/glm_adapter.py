"""
Zhipu GLM backend adapter (OpenAI-compatible chat completions over httpx)
"""

import logging
from typing import Optional, Dict

import httpx
from pydantic import ValidationError

from .adapter import ModelAdapter
from .exceptions import GatewayError, UpstreamError, UpstreamTimeoutError, error_from_status
from .models import ChatCompletionRequest, ChatCompletionResponse, ChatCompletionChunk, Message
from .streaming import FrameStream, DONE_MARKER, DEFAULT_BUFFER_SIZE, parse_data_line

logger = logging.getLogger(__name__)

DEFAULT_GLM_URL = "https://open.bigmodel.cn/api/paas/v4/chat/completions"
DEFAULT_TIMEOUT = 30.0
DEFAULT_HEALTH_MODEL = "glm-4"


class GLMAdapter(ModelAdapter):
    """Adapter for the Zhipu GLM chat completions API"""

    def __init__(
        self,
        api_key: str,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        health_model: str = DEFAULT_HEALTH_MODEL,
        buffer_size: int = DEFAULT_BUFFER_SIZE,
        client: Optional[httpx.AsyncClient] = None,
    ):
        """
        Args:
            api_key: Zhipu API key, sent as a bearer token
            base_url: full chat completions URL (defaults to the public GLM endpoint)
            timeout: per-request timeout in seconds (defaults to 30)
            health_model: model used by the health check probe
            buffer_size: frames buffered between the stream reader and its consumer
            client: preconfigured client, mainly for tests
        """
        self._api_key = api_key
        self._url = base_url or DEFAULT_GLM_URL
        self._timeout = timeout or DEFAULT_TIMEOUT
        self._health_model = health_model
        self._buffer_size = buffer_size
        self._client = client or httpx.AsyncClient(timeout=httpx.Timeout(self._timeout))

    @property
    def name(self) -> str:
        return "glm"

    def _headers(self, stream: bool = False) -> Dict[str, str]:
        headers = {
            "Authorization": f"Bearer {self._api_key}",
            "Content-Type": "application/json",
        }
        if stream:
            headers["Accept"] = "text/event-stream"
        return headers

    @staticmethod
    def _status_error(response: httpx.Response) -> GatewayError:
        body = response.text
        return error_from_status(
            response.status_code,
            f"GLM API error (status {response.status_code}): {body}",
        )

    async def _send(self, request: ChatCompletionRequest, stream: bool) -> httpx.Response:
        http_request = self._client.build_request(
            "POST",
            self._url,
            json=request.to_payload(stream=stream),
            headers=self._headers(stream=stream),
        )
        try:
            return await self._client.send(http_request, stream=stream)
        except httpx.TimeoutException as e:
            raise UpstreamTimeoutError(f"GLM API call timed out: {e}") from e
        except httpx.HTTPError as e:
            raise UpstreamError(f"http request failed: {e}") from e

    async def chat(self, request: ChatCompletionRequest) -> ChatCompletionResponse:
        response = await self._send(request, stream=False)
        if response.status_code != 200:
            raise self._status_error(response)
        try:
            return ChatCompletionResponse.model_validate_json(response.content)
        except ValidationError as e:
            raise UpstreamError(f"unmarshal response failed: {e}") from e

    async def chat_stream(self, request: ChatCompletionRequest) -> FrameStream:
        response = await self._send(request, stream=True)
        if response.status_code != 200:
            try:
                await response.aread()
            finally:
                await response.aclose()
            raise self._status_error(response)

        async def produce(send) -> None:
            try:
                async for line in response.aiter_lines():
                    data = parse_data_line(line)
                    if data is None:
                        continue
                    if data == DONE_MARKER:
                        break
                    try:
                        chunk = ChatCompletionChunk.model_validate_json(data)
                    except ValidationError:
                        logger.debug(f"Skipping malformed GLM frame: {data[:80]}")
                        continue
                    await send(chunk)
            except httpx.TimeoutException as e:
                raise UpstreamTimeoutError(f"GLM stream read timed out: {e}") from e
            except httpx.HTTPError as e:
                raise UpstreamError(f"GLM stream read failed: {e}") from e

        return FrameStream(
            produce,
            release=response.aclose,
            buffer_size=self._buffer_size,
            name=f"{self.name}:{request.model}",
        )

    async def health_check(self) -> None:
        probe = ChatCompletionRequest(
            model=self._health_model,
            messages=[Message(role="user", content="hi")],
            max_tokens=5,
        )
        await self.chat(probe)

    async def aclose(self) -> None:
        await self._client.aclose()
