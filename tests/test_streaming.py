import asyncio
import json

import pytest

from prism.exceptions import ModelNotFoundError, UpstreamError
from prism.models import ChatCompletionChunk
from prism.streaming import DONE_FRAME, FrameStream, create_chunk, encode_error, encode_frame, parse_data_line


def test_encode_frame_uses_data_prefix_and_blank_line() -> None:
    chunk = create_chunk("chatcmpl-1", "glm-4", {"content": "你好"}, created=7)

    wire = encode_frame(chunk)

    assert wire.startswith("data: ")
    assert wire.endswith("\n\n")
    payload = json.loads(wire[len("data: "):])
    assert payload == {
        "id": "chatcmpl-1",
        "object": "chat.completion.chunk",
        "created": 7,
        "model": "glm-4",
        "choices": [{"index": 0, "delta": {"content": "你好"}, "finish_reason": None}],
    }


def test_encode_frame_passes_upstream_fields_through() -> None:
    upstream = {"id": "u1", "choices": [{"index": 0, "delta": {"content": "x"}}], "request_id": "abc"}
    chunk = ChatCompletionChunk.model_validate(upstream)

    assert json.loads(encode_frame(chunk)[len("data: "):]) == upstream


def test_done_frame_is_not_json() -> None:
    assert DONE_FRAME == "data: [DONE]\n\n"


def test_encode_error() -> None:
    wire = encode_error(ModelNotFoundError("glm-9"))
    assert json.loads(wire[len("data: "):]) == {
        "error": {"message": "model not found", "type": "not_found_error", "param": "model", "code": "model_not_found"}
    }


@pytest.mark.parametrize(
    "line, expected",
    [
        ('data: {"a": 1}', '{"a": 1}'),
        ("data:[DONE]", "[DONE]"),
        ("", None),
        (": keep-alive", None),
        ("event: message", None),
    ],
)
def test_parse_data_line(line, expected) -> None:
    assert parse_data_line(line) == expected


def test_first_and_final_chunks() -> None:
    first = create_chunk("c", "m", {"role": "assistant", "content": ""})
    final = create_chunk("c", "m", {}, "stop")

    assert first.is_first() and not first.is_final()
    assert final.is_final() and final.finish_reason() == "stop"
    assert final.content() == ""


def _chunks(n):
    return [create_chunk("c", "m", {"content": str(i)}, created=1) for i in range(n)]


def test_frame_stream_preserves_order_and_releases_once() -> None:
    releases = []

    async def _run():
        async def produce(send):
            for chunk in _chunks(5):
                await send(chunk)

        async def release():
            releases.append(1)

        stream = FrameStream(produce, release=release, buffer_size=2)
        got = [chunk.content() async for chunk in stream]
        await stream.aclose()
        return got, stream

    got, stream = asyncio.run(_run())

    assert got == ["0", "1", "2", "3", "4"]
    assert len(releases) == 1
    assert stream.released


def test_frame_stream_producer_waits_for_slow_consumer() -> None:
    sent = []

    async def _run():
        async def produce(send):
            for chunk in _chunks(10):
                await send(chunk)
                sent.append(chunk)

        stream = FrameStream(produce, buffer_size=3)
        await asyncio.sleep(0.05)
        pending = len(sent)
        first = await stream.__anext__()
        await stream.aclose()
        return pending, first

    pending, first = asyncio.run(_run())

    assert pending == 3
    assert first.content() == "0"


def test_frame_stream_surfaces_failure_after_earlier_frames() -> None:
    async def _run():
        async def produce(send):
            for chunk in _chunks(2):
                await send(chunk)
            raise UpstreamError("connection reset")

        stream = FrameStream(produce)
        got = []
        with pytest.raises(UpstreamError):
            async for chunk in stream:
                got.append(chunk.content())
        await stream.aclose()
        return got

    assert asyncio.run(_run()) == ["0", "1"]


def test_frame_stream_wraps_unexpected_producer_errors() -> None:
    async def _run():
        async def produce(send):
            raise RuntimeError("boom")

        stream = FrameStream(produce)
        with pytest.raises(UpstreamError) as exc_info:
            await stream.__anext__()
        await stream.aclose()
        return exc_info.value

    assert "boom" in asyncio.run(_run()).message


def test_frame_stream_closed_before_start_still_releases() -> None:
    releases = []

    async def _run():
        async def produce(send):
            await send(_chunks(1)[0])

        async def release():
            releases.append(1)

        stream = FrameStream(produce, release=release)
        await stream.aclose()
        await stream.aclose()
        return stream

    stream = asyncio.run(_run())

    assert releases == [1]
    assert stream.producer_done


def test_frame_stream_stops_producer_on_close() -> None:
    sent = []

    async def _run():
        async def produce(send):
            i = 0
            while True:
                await send(create_chunk("c", "m", {"content": str(i)}))
                sent.append(i)
                i += 1

        stream = FrameStream(produce, buffer_size=1)
        await stream.__anext__()
        await stream.aclose()
        after_close = len(sent)
        await asyncio.sleep(0.05)
        return stream, after_close

    stream, after_close = asyncio.run(_run())

    assert stream.producer_done
    assert stream.released
    assert len(sent) == after_close
    assert after_close <= 2


def test_frame_stream_rejects_empty_buffer() -> None:
    async def _run():
        async def produce(send):
            return None

        FrameStream(produce, buffer_size=0)

    with pytest.raises(ValueError):
        asyncio.run(_run())
