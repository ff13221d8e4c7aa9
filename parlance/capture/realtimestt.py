from __future__ import annotations

import asyncio
import json
from collections.abc import AsyncIterator

from websockets.asyncio.client import ClientConnection, connect

from parlance.capture.streaming import TranscriptionEngine
from parlance.errors import CaptureError
from parlance.orchestrator.events import SPEECH_LOCALES, Language, TranscriptChunk
from parlance.telemetry.logging import get_logger


class RealtimeSTTEngine(TranscriptionEngine):
    """Websocket client for a realtime speech-to-text server.

    Protocol: a ``config`` message with locale and sample rate opens the
    session, followed by hex-encoded ``audio_chunk`` messages, ``flush`` to
    force a final and ``end`` to finish. The server answers with
    ``transcript`` and ``error`` messages and closes after ``end``.
    """

    def __init__(
        self,
        base_url: str,
        *,
        language: Language = "en",
        sample_rate: int = 16_000,
        auth_token: str | None = None,
    ) -> None:
        self._ws_url = base_url.rstrip("/") + "/ws"
        self._auth_token = auth_token
        self._locale = SPEECH_LOCALES.get(language, SPEECH_LOCALES["en"])
        self._sample_rate = sample_rate
        self._queue: asyncio.Queue[tuple[bytes | None, float, bool]] = asyncio.Queue(maxsize=256)
        self._closed = False
        self._logger = get_logger(__name__)

    async def enqueue_audio(self, pcm: bytes, ts: float, vad: bool | None = None, force: bool = False) -> None:
        if self._closed:
            return
        await self._queue.put((pcm, ts, force))

    async def stream(self) -> AsyncIterator[TranscriptChunk]:
        async with connect(self._ws_url, additional_headers=self._headers()) as ws:
            await ws.send(json.dumps({"type": "config", "language": self._locale, "sample_rate": self._sample_rate}))
            self._logger.info("capture.realtime.connected", url=self._ws_url, locale=self._locale)
            producer = asyncio.create_task(self._produce_audio(ws))
            try:
                async for message in ws:
                    payload = json.loads(message)
                    kind = payload.get("type")
                    if kind == "error":
                        raise CaptureError(payload.get("message") or "realtime stt error")
                    if kind != "transcript":
                        continue
                    yield TranscriptChunk(
                        text=payload.get("text", ""),
                        is_final=bool(payload.get("is_final", False)),
                        ts=float(payload.get("ts", 0.0)),
                    )
            finally:
                producer.cancel()
                await asyncio.gather(producer, return_exceptions=True)

    async def _produce_audio(self, ws: ClientConnection) -> None:
        while True:
            pcm, ts, force_flush = await self._queue.get()
            if pcm is None and not force_flush:
                await ws.send(json.dumps({"type": "end"}))
                return
            if pcm:
                await ws.send(
                    json.dumps(
                        {
                            "type": "audio_chunk",
                            "sample_rate": self._sample_rate,
                            "audio": pcm.hex(),
                            "ts": ts,
                        }
                    )
                )
            if force_flush:
                await ws.send(json.dumps({"type": "flush"}))

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        await self._queue.put((None, 0.0, False))

    def _headers(self) -> dict[str, str]:
        headers: dict[str, str] = {}
        if self._auth_token:
            headers["Authorization"] = f"Bearer {self._auth_token}"
        return headers


__all__ = ["RealtimeSTTEngine"]
