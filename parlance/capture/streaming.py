from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator, Callable, Coroutine
from typing import Any

from parlance.capture.base import SpeechCapture
from parlance.errors import CaptureError
from parlance.orchestrator.events import Language, TranscriptChunk


class TranscriptionEngine(ABC):
    @abstractmethod
    async def enqueue_audio(self, pcm: bytes, ts: float, vad: bool | None = None, force: bool = False) -> None:
        """Add audio data for transcription."""

    @abstractmethod
    async def stream(self) -> AsyncIterator[TranscriptChunk]:
        """Yield transcript chunks as they arrive; ends when the engine session ends."""

    @abstractmethod
    async def close(self) -> None:
        """End the session and release resources."""


EngineFactory = Callable[[Language], TranscriptionEngine]


class StreamingSpeechCapture(SpeechCapture):
    """Continuous capture on top of a TranscriptionEngine.

    A pump task relays chunks from the engine. When the engine's stream ends
    while still listening a fresh engine is built and listening resumes;
    ``stop()`` drops the listening state first so no restart follows.
    """

    name = "streaming"

    def __init__(self, engine_factory: EngineFactory, *, drain_timeout_s: float = 2.0) -> None:
        super().__init__()
        self._engine_factory = engine_factory
        self._drain_timeout_s = drain_timeout_s
        self._engine: TranscriptionEngine | None = None
        self._pump: asyncio.Task[None] | None = None
        self._tasks: set[asyncio.Task[Any]] = set()

    async def start(self) -> None:
        if self._pump is not None and not self._pump.done():
            return
        self._engine = self._engine_factory(self._language)
        self._set_state("listening")
        self._pump = asyncio.create_task(self._run(), name=f"capture-pump:{self.name}")
        self._logger.info("capture.streaming.started", language=self._language)

    async def stop(self) -> None:
        self._set_state("idle")
        engine, pump = self._engine, self._pump
        self._engine = None
        self._pump = None
        if engine is not None:
            await engine.close()
        if pump is not None:
            done, _ = await asyncio.wait({pump}, timeout=self._drain_timeout_s)
            if not done:
                pump.cancel()
                await asyncio.gather(pump, return_exceptions=True)
        self._logger.info("capture.streaming.stopped")

    def set_language(self, lang: Language) -> None:
        changed = lang != self._language
        super().set_language(lang)
        if changed and self._state == "listening" and self._engine is not None:
            # Closing the session makes the pump rebuild the engine in the new language.
            self._spawn(self._engine.close())

    async def feed(self, pcm: bytes, ts: float, vad: bool | None = None, force: bool = False) -> None:
        engine = self._engine
        if engine is None or self._state != "listening":
            return
        await engine.enqueue_audio(pcm, ts, vad=vad, force=force)

    async def _run(self) -> None:
        while True:
            engine = self._engine
            if engine is None:
                return
            try:
                async for chunk in engine.stream():
                    if chunk.text:
                        self._emit_transcript(chunk.text, chunk.is_final)
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                self._logger.error("capture.streaming.failed", error=str(exc), exc_info=True)
                error = exc if isinstance(exc, CaptureError) else CaptureError(str(exc))
                self._engine = None
                self._set_state("error")
                self._emit_error(error)
                await engine.close()
                self._set_state("idle")
                return
            if self._state != "listening" or self._engine is not engine:
                return
            self._logger.info("capture.streaming.restart", language=self._language)
            self._engine = self._engine_factory(self._language)

    def _spawn(self, coro: Coroutine[Any, Any, Any]) -> None:
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)


__all__ = ["TranscriptionEngine", "EngineFactory", "StreamingSpeechCapture"]
