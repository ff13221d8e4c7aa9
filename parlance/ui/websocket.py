from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable, Callable, Coroutine
from typing import Any, Literal

from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from pydantic import BaseModel, ValidationError

from parlance.capture.base import SpeechCapture
from parlance.capture.remote import RemoteSpeechCapture
from parlance.orchestrator.controller import VoiceController
from parlance.orchestrator.events import SPEECH_LOCALES, Language
from parlance.telemetry.logging import get_logger
from parlance.understanding.result_schema import ToolCallResult

AudioSink = Callable[[bytes, float], Awaitable[None]]


class ClientMessage(BaseModel):
    type: Literal["transcript", "error"]
    text: str = ""
    is_final: bool = False
    message: str | None = None


class VoiceUIBridge:
    """Websocket fan-out between the controller and browser clients.

    Outbound messages carry state, progress, language, transcript, result and
    action events. Clients running their own recognizer send ``transcript``
    and ``error`` text frames, which are routed into the RemoteSpeechCapture.
    Binary frames are raw PCM16 mono audio at the configured sample rate and
    go to the audio sink of a streaming capture.
    """

    def __init__(self, remote_capture: RemoteSpeechCapture | None = None) -> None:
        self._clients: set[WebSocket] = set()
        self._router = APIRouter()
        self._router.add_api_websocket_route("/ws/voice", self._websocket_handler)
        self._lock = asyncio.Lock()
        self._remote_capture = remote_capture
        self._audio_sink: AudioSink | None = None
        self._capture: SpeechCapture | None = None
        self._tasks: set[asyncio.Task[Any]] = set()
        self._logger = get_logger(__name__)

    @property
    def router(self) -> APIRouter:
        return self._router

    @property
    def client_count(self) -> int:
        return len(self._clients)

    def set_remote_capture(self, capture: RemoteSpeechCapture | None) -> None:
        self._remote_capture = capture

    def set_audio_sink(self, sink: AudioSink | None) -> None:
        self._audio_sink = sink

    def attach(self, controller: VoiceController) -> Callable[[], None]:
        """Mirror the controller's events to connected clients; returns a detach callable."""
        understanding = controller.understanding
        capture = controller.speech_capture
        self._capture = capture
        handles = [
            controller.on_transcript(
                lambda text, is_final: self._spawn(self.publish("transcript", {"text": text, "is_final": is_final}))
            ),
            controller.on_result(self._publish_result),
            understanding.on_state_change(
                lambda state: self._spawn(self.publish("understanding_state", {"state": state}))
            ),
            understanding.on_progress(
                lambda percent, status: self._spawn(self.publish("progress", {"percent": percent, "status": status}))
            ),
            capture.on_state_change(lambda state: self._spawn(self.publish("capture_state", {"state": state}))),
            capture.on_language_change(
                lambda lang: self._spawn(self.publish("language", self._language_payload(lang)))
            ),
        ]

        def detach() -> None:
            for unsubscribe in handles:
                unsubscribe()
            if self._capture is capture:
                self._capture = None

        return detach

    async def _websocket_handler(self, websocket: WebSocket) -> None:
        await websocket.accept()
        async with self._lock:
            self._clients.add(websocket)
        self._logger.info("ui.client.connected", count=len(self._clients))
        try:
            if self._capture is not None:
                payload = self._language_payload(self._capture.language)
                await websocket.send_json({"type": "language", "payload": payload})
            while True:
                frame = await websocket.receive()
                if frame["type"] == "websocket.disconnect":
                    break
                if frame.get("bytes") is not None:
                    await self.handle_audio(frame["bytes"])
                elif frame.get("text") is not None:
                    self.handle_client_message(frame["text"])
        except WebSocketDisconnect:
            self._logger.debug("ui.client.dropped")
        finally:
            async with self._lock:
                self._clients.discard(websocket)
            self._logger.info("ui.client.disconnected", count=len(self._clients))

    def handle_client_message(self, raw: str | bytes | dict[str, Any]) -> None:
        try:
            if isinstance(raw, (str, bytes)):
                message = ClientMessage.model_validate_json(raw)
            else:
                message = ClientMessage.model_validate(raw)
        except ValidationError as exc:
            self._logger.warning("ui.client.invalid_message", error=str(exc))
            return
        if self._remote_capture is None:
            self._logger.debug("ui.client.no_remote_capture", type=message.type)
            return
        if message.type == "transcript":
            self._remote_capture.push(message.text, message.is_final)
        else:
            self._remote_capture.fail(message.message or "recognition error")

    async def handle_audio(self, pcm: bytes) -> None:
        if self._audio_sink is None:
            self._logger.debug("ui.client.audio_ignored", size=len(pcm))
            return
        await self._audio_sink(pcm, time.monotonic())

    async def publish(self, kind: str, payload: dict[str, Any] | None = None) -> None:
        message = {"type": kind, "payload": payload or {}}
        async with self._lock:
            send_tasks = [client.send_json(message) for client in self._clients]
        if send_tasks:
            await asyncio.gather(*send_tasks, return_exceptions=True)

    @staticmethod
    def _language_payload(lang: Language) -> dict[str, str]:
        return {"language": lang, "locale": SPEECH_LOCALES[lang]}

    def _publish_result(self, text: str, result: ToolCallResult) -> None:
        self._spawn(self.publish("result", {"text": text, **result.model_dump()}))

    def _spawn(self, coro: Coroutine[Any, Any, Any]) -> None:
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)


__all__ = ["AudioSink", "ClientMessage", "VoiceUIBridge"]
