"""Tests du relais SSE (analyse du flux fournisseur, relais producteur/consommateur)."""

import asyncio
import json

import httpx
import pytest

from jyotish.domain.sse import (
    GENERIC_STREAM_ERROR,
    SSE_DONE,
    StreamRelay,
    extract_delta,
    iter_sse_data,
    sse_event,
)
from tests.fakes import FakeCompletions, provider_frame


async def _aiter(chunks):
    for c in chunks:
        yield c


async def _collect(agen):
    return [item async for item in agen]


@pytest.mark.asyncio
async def test_iter_sse_data_handles_arbitrary_boundaries():
    raw = provider_frame("Namaste ॐ") + b": comment\n\n" + provider_frame("!") + b"data: [DONE]\n\n"
    # découpage octet par octet, y compris au milieu d'un caractère UTF-8
    chunks = [raw[i : i + 1] for i in range(len(raw))]
    payloads = await _collect(iter_sse_data(_aiter(chunks)))
    assert [extract_delta(p) for p in payloads] == ["Namaste ॐ", "!"]


@pytest.mark.asyncio
async def test_iter_sse_data_stops_at_done():
    raw = provider_frame("a") + b"data: [DONE]\n\n" + provider_frame("ignored")
    payloads = await _collect(iter_sse_data(_aiter([raw])))
    assert len(payloads) == 1


@pytest.mark.asyncio
async def test_iter_sse_data_handles_crlf_and_missing_trailing_newline():
    raw = (
        b'data: {"choices":[{"delta":{"content":"x"}}]}\r\n\r\n'
        b'data: {"choices":[{"delta":{"content":"y"}}]}'
    )
    payloads = await _collect(iter_sse_data(_aiter([raw])))
    assert [extract_delta(p) for p in payloads] == ["x", "y"]


def test_extract_delta_ignores_malformed_payloads():
    assert extract_delta("not json") is None
    assert extract_delta("{}") is None
    assert extract_delta('{"choices": []}') is None
    assert extract_delta('{"choices": [{"delta": {}}]}') is None
    assert extract_delta('{"choices": [{"delta": {"content": ""}}]}') is None
    assert extract_delta('{"choices": [{"delta": {"content": "ok"}}]}') == "ok"


def test_sse_event_keeps_unicode():
    assert sse_event({"content": "ज्योतिष"}) == 'data: {"content": "ज्योतिष"}\n\n'.encode()


def _decode(frames):
    out = []
    for frame in frames:
        data = frame.decode()[len("data: ") :].strip()
        out.append(data if data == "[DONE]" else json.loads(data))
    return out


@pytest.mark.asyncio
async def test_relay_success_sends_lead_content_tail_and_done():
    provider = FakeCompletions(deltas=["Strong", " leadership."])
    stream = await provider.open_stream([{"role": "user", "content": "q"}])
    seen = {}

    async def on_finish(text, error):
        seen["text"], seen["error"] = text, error
        return [{"sources": [], "sessionId": "s1"}]

    relay = StreamRelay(stream, on_finish, lead_events=[{"reportId": "r1"}])
    events = _decode(await _collect(relay.frames()))
    assert events == [
        {"reportId": "r1"},
        {"content": "Strong"},
        {"content": " leadership."},
        {"sources": [], "sessionId": "s1"},
        "[DONE]",
    ]
    assert seen == {"text": "Strong leadership.", "error": None}
    assert relay.text == "Strong leadership."
    assert provider.closed == 1


@pytest.mark.asyncio
async def test_relay_error_mid_stream_sends_error_event_after_partial_content():
    provider = FakeCompletions(deltas=["partial", " never"], fail_after=1)
    stream = await provider.open_stream([])
    seen = {}

    async def on_finish(text, error):
        seen["text"], seen["error"] = text, error
        return [{"should": "not be sent"}]

    relay = StreamRelay(stream, on_finish)
    frames = await _collect(relay.frames())
    events = _decode(frames)
    assert events[0] == {"content": "partial"}
    assert events[-2] == {"type": "error", "message": GENERIC_STREAM_ERROR}
    assert frames[-1] == SSE_DONE
    assert {"should": "not be sent"} not in events
    assert seen["text"] == "partial"
    assert isinstance(seen["error"], httpx.ReadError)
    assert provider.closed == 1


@pytest.mark.asyncio
async def test_relay_finishes_even_if_consumer_goes_away():
    provider = FakeCompletions(deltas=["a", "b", "c"])
    stream = await provider.open_stream([])
    done = asyncio.Event()

    async def on_finish(text, error):
        done.set()
        return []

    relay = StreamRelay(stream, on_finish)
    relay.start()
    # aucun consommateur: le producteur persiste quand même
    await relay.wait()
    assert done.is_set()
    assert relay.text == "abc"


@pytest.mark.asyncio
async def test_relay_finish_failure_sends_error_event_then_done():
    provider = FakeCompletions(deltas=["x"])
    stream = await provider.open_stream([])

    async def on_finish(text, error):
        raise RuntimeError("db down")

    relay = StreamRelay(stream, on_finish)
    events = _decode(await _collect(relay.frames()))
    assert events == [
        {"content": "x"},
        {"type": "error", "message": GENERIC_STREAM_ERROR},
        "[DONE]",
    ]
