import asyncio
import json

import pytest

from prism.exceptions import AuthenticationError, ModelNotFoundError, UpstreamError
from prism.registry import AdapterRegistry
from prism.relay import CompletionRelay
from prism.streaming import DONE_FRAME

from tests.stubs import StubAdapter, make_chunks, make_request

RESPONSE = {
    "id": "chatcmpl-1",
    "choices": [{"index": 0, "message": {"role": "assistant", "content": "hello"}, "finish_reason": "stop"}],
    "usage": {"prompt_tokens": 1, "completion_tokens": 1, "total_tokens": 2},
}


def _relay(adapter: StubAdapter, model: str = "glm-4") -> CompletionRelay:
    registry = AdapterRegistry()
    registry.register(model, adapter)
    return CompletionRelay(registry)


def _drain(relay: CompletionRelay, request, is_disconnected=None):
    async def _run():
        return [frame async for frame in relay.stream(request, is_disconnected=is_disconnected)]

    return asyncio.run(_run())


def _payload(frame: str):
    assert frame.startswith("data: ") and frame.endswith("\n\n")
    return json.loads(frame[len("data: "):])


def test_complete_passes_response_through() -> None:
    relay = _relay(StubAdapter(response=RESPONSE))

    response = asyncio.run(relay.complete(make_request()))

    assert response.to_wire() == RESPONSE


def test_complete_keeps_error_kind_and_adds_context() -> None:
    relay = _relay(StubAdapter(chat_error=AuthenticationError("bad key")))

    with pytest.raises(AuthenticationError) as exc_info:
        asyncio.run(relay.complete(make_request()))

    assert exc_info.value.model == "glm-4"
    assert exc_info.value.phase == "chat"


def test_complete_wraps_unexpected_errors_as_upstream() -> None:
    relay = _relay(StubAdapter(chat_error=RuntimeError("socket closed")))

    with pytest.raises(UpstreamError) as exc_info:
        asyncio.run(relay.complete(make_request()))

    assert "socket closed" in exc_info.value.message
    assert exc_info.value.status_code == 500


def test_complete_unknown_model_is_not_found() -> None:
    relay = _relay(StubAdapter(response=RESPONSE))

    with pytest.raises(ModelNotFoundError):
        asyncio.run(relay.complete(make_request(model="glm-9")))


def test_stream_emits_every_frame_in_order_then_done() -> None:
    chunks = make_chunks(5)
    adapter = StubAdapter(chunks=chunks)

    frames = _drain(_relay(adapter), make_request(stream=True))

    assert len(frames) == 6
    assert frames[-1] == DONE_FRAME
    assert [_payload(f)["choices"][0]["delta"]["content"] for f in frames[:-1]] == [c.content() for c in chunks]
    assert adapter.releases == 1


def test_stream_open_failure_emits_single_error_frame() -> None:
    adapter = StubAdapter(open_error=UpstreamError("GLM API error (status 503): busy"))

    frames = _drain(_relay(adapter), make_request(stream=True))

    assert len(frames) == 1
    assert _payload(frames[0])["error"]["type"] == "api_error"
    assert "busy" in _payload(frames[0])["error"]["message"]


def test_stream_open_failure_for_unknown_model() -> None:
    frames = _drain(_relay(StubAdapter()), make_request(model="glm-9", stream=True))

    assert len(frames) == 1
    assert _payload(frames[0])["error"]["type"] == "not_found_error"


def test_stream_open_unexpected_error_is_upstream_frame() -> None:
    frames = _drain(_relay(StubAdapter(open_error=RuntimeError("dns"))), make_request(stream=True))

    assert len(frames) == 1
    assert _payload(frames[0])["error"]["type"] == "api_error"


def test_stream_failure_midway_emits_error_frame_before_done() -> None:
    adapter = StubAdapter(chunks=make_chunks(2), stream_error=UpstreamError("connection reset"))

    frames = _drain(_relay(adapter), make_request(stream=True))

    assert len(frames) == 4
    assert [_payload(f)["choices"][0]["delta"]["content"] for f in frames[:2]] == ["tok0", "tok1"]
    assert _payload(frames[2])["error"]["message"] == "connection reset"
    assert frames[3] == DONE_FRAME
    assert adapter.releases == 1


def test_stream_stops_when_client_disconnects() -> None:
    adapter = StubAdapter(chunks=make_chunks(10))
    checks = []

    async def is_disconnected():
        checks.append(1)
        return len(checks) > 3

    frames = _drain(_relay(adapter), make_request(stream=True), is_disconnected=is_disconnected)

    assert len(frames) == 3
    assert DONE_FRAME not in frames
    assert adapter.releases == 1
    assert adapter.streams[0].producer_done


def test_stream_consumer_abandoning_generator_closes_stream() -> None:
    adapter = StubAdapter(chunks=make_chunks(10))
    relay = _relay(adapter)

    async def _run():
        gen = relay.stream(make_request(stream=True))
        first = await gen.__anext__()
        await gen.aclose()
        return first

    first = asyncio.run(_run())

    assert _payload(first)["choices"][0]["delta"]["content"] == "tok0"
    assert adapter.releases == 1
    assert adapter.streams[0].producer_done
