from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Callable

import pytest

from parlance.capture.streaming import StreamingSpeechCapture, TranscriptionEngine
from parlance.errors import CaptureError
from parlance.orchestrator.events import Language, TranscriptChunk

_END = object()


class FakeEngine(TranscriptionEngine):
    def __init__(self, language: Language) -> None:
        self.language = language
        self.audio: list[bytes] = []
        self.closed = False
        self._queue: asyncio.Queue[object] = asyncio.Queue()

    async def enqueue_audio(self, pcm: bytes, ts: float, vad: bool | None = None, force: bool = False) -> None:
        self.audio.append(pcm)

    async def stream(self) -> AsyncIterator[TranscriptChunk]:
        while True:
            item = await self._queue.get()
            if item is _END:
                return
            if isinstance(item, Exception):
                raise item
            yield item

    async def close(self) -> None:
        self.closed = True
        self._queue.put_nowait(_END)

    def say(self, text: str, is_final: bool = False) -> None:
        self._queue.put_nowait(TranscriptChunk(text=text, is_final=is_final))

    def end(self) -> None:
        self._queue.put_nowait(_END)

    def explode(self, exc: Exception) -> None:
        self._queue.put_nowait(exc)


async def eventually(predicate: Callable[[], bool], timeout: float = 1.0) -> None:
    deadline = asyncio.get_running_loop().time() + timeout
    while not predicate():
        if asyncio.get_running_loop().time() > deadline:
            raise AssertionError("condition not met in time")
        await asyncio.sleep(0.01)


@pytest.fixture
def engines() -> list[FakeEngine]:
    return []


@pytest.fixture
def capture(engines: list[FakeEngine]) -> StreamingSpeechCapture:
    def factory(language: Language) -> FakeEngine:
        engine = FakeEngine(language)
        engines.append(engine)
        return engine

    return StreamingSpeechCapture(factory, drain_timeout_s=0.5)


@pytest.mark.anyio
async def test_relays_engine_chunks(capture, engines) -> None:
    heard: list[tuple[str, bool]] = []
    capture.on_transcript(lambda text, is_final: heard.append((text, is_final)))

    await capture.start()
    engines[0].say("ol")
    engines[0].say("")
    engines[0].say("olá mundo", True)
    await eventually(lambda: len(heard) == 2)

    assert heard == [("ol", False), ("olá mundo", True)]
    await capture.stop()


@pytest.mark.anyio
async def test_feed_forwards_audio_while_listening(capture, engines) -> None:
    await capture.feed(b"\x00\x01", 0.0)
    await capture.start()
    await capture.feed(b"\x02\x03", 0.1)

    assert engines[0].audio == [b"\x02\x03"]
    await capture.stop()


@pytest.mark.anyio
async def test_restarts_when_session_ends_while_listening(capture, engines) -> None:
    heard: list[str] = []
    capture.on_transcript(lambda text, _final: heard.append(text))

    await capture.start()
    engines[0].end()
    await eventually(lambda: len(engines) == 2)
    engines[1].say("still here", True)
    await eventually(lambda: heard == ["still here"])

    assert capture.state == "listening"
    await capture.stop()


@pytest.mark.anyio
async def test_stop_does_not_restart(capture, engines) -> None:
    states: list[str] = []
    capture.on_state_change(states.append)

    await capture.start()
    await capture.stop()
    await asyncio.sleep(0.05)

    assert len(engines) == 1
    assert engines[0].closed is True
    assert states == ["listening", "idle"]


@pytest.mark.anyio
async def test_engine_failure_reports_error_and_returns_to_idle(capture, engines) -> None:
    errors: list[Exception] = []
    states: list[str] = []
    capture.on_error(errors.append)
    capture.on_state_change(states.append)

    await capture.start()
    engines[0].explode(CaptureError("microphone unplugged"))
    await eventually(lambda: capture.state == "idle")

    assert len(errors) == 1
    assert str(errors[0]) == "microphone unplugged"
    assert states == ["listening", "error", "idle"]
    assert engines[0].closed is True
    assert len(engines) == 1


@pytest.mark.anyio
async def test_language_change_rebuilds_engine(capture, engines) -> None:
    await capture.start()
    capture.set_language("pt")
    await eventually(lambda: len(engines) == 2)

    assert engines[0].language == "en"
    assert engines[0].closed is True
    assert engines[1].language == "pt"
    assert capture.state == "listening"
    await capture.stop()
