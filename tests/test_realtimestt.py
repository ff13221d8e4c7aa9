from __future__ import annotations

import asyncio
import json
from collections.abc import Awaitable, Callable
from typing import Any

import pytest
from websockets.asyncio.server import ServerConnection, serve

from parlance.capture.realtimestt import RealtimeSTTEngine
from parlance.errors import CaptureError
from parlance.orchestrator.events import TranscriptChunk

Handler = Callable[[ServerConnection], Awaitable[None]]


async def collect(engine: RealtimeSTTEngine, *, close_on_final: bool = True) -> list[TranscriptChunk]:
    chunks: list[TranscriptChunk] = []
    async for chunk in engine.stream():
        chunks.append(chunk)
        if close_on_final and chunk.is_final:
            await engine.close()
    return chunks


async def run_against(handler: Handler, build: Callable[[str], RealtimeSTTEngine], **kwargs: Any) -> Any:
    async with serve(handler, "127.0.0.1", 0) as server:
        port = server.sockets[0].getsockname()[1]
        engine = build(f"ws://127.0.0.1:{port}")
        await engine.enqueue_audio(b"\x01\x02", 0.5)
        await engine.enqueue_audio(b"", 0.6, force=True)
        return await asyncio.wait_for(collect(engine, **kwargs), timeout=5.0)


@pytest.mark.anyio
async def test_session_protocol() -> None:
    received: list[dict[str, Any]] = []
    headers: list[str | None] = []

    async def handler(ws: ServerConnection) -> None:
        headers.append(ws.request.headers.get("Authorization"))
        async for raw in ws:
            message = json.loads(raw)
            received.append(message)
            if message["type"] == "config":
                await ws.send(json.dumps({"type": "transcript", "text": "olá", "is_final": False}))
                await ws.send(json.dumps({"type": "ready"}))
                await ws.send(json.dumps({"type": "transcript", "text": "olá mundo", "is_final": True, "ts": 1.5}))
            elif message["type"] == "end":
                await ws.close()
                return

    chunks = await run_against(
        handler,
        lambda url: RealtimeSTTEngine(url, language="pt", sample_rate=16_000, auth_token="tok"),
    )

    assert [(c.text, c.is_final) for c in chunks] == [("olá", False), ("olá mundo", True)]
    assert chunks[-1].ts == 1.5
    assert headers == ["Bearer tok"]
    assert received == [
        {"type": "config", "language": "pt-BR", "sample_rate": 16_000},
        {"type": "audio_chunk", "sample_rate": 16_000, "audio": "0102", "ts": 0.5},
        {"type": "flush"},
        {"type": "end"},
    ]


@pytest.mark.anyio
async def test_server_error_raises_capture_error() -> None:
    async def handler(ws: ServerConnection) -> None:
        await ws.recv()
        await ws.send(json.dumps({"type": "error", "message": "model unavailable"}))
        await ws.wait_closed()

    with pytest.raises(CaptureError, match="model unavailable"):
        await run_against(handler, lambda url: RealtimeSTTEngine(url, language="en"))


@pytest.mark.anyio
async def test_audio_after_close_is_dropped() -> None:
    engine = RealtimeSTTEngine("ws://127.0.0.1:1", language="en")
    await engine.close()

    async def flood() -> None:
        for index in range(1_000):
            await engine.enqueue_audio(b"\x00\x00", float(index))

    # the session queue is bounded, so this would block if audio were still accepted
    await asyncio.wait_for(flood(), timeout=1.0)
    await engine.close()
