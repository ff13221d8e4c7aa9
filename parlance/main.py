from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

import uvicorn
from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel

from parlance.capture.base import SpeechCapture
from parlance.capture.realtimestt import RealtimeSTTEngine
from parlance.capture.remote import RemoteSpeechCapture
from parlance.capture.streaming import StreamingSpeechCapture
from parlance.config import AppSettings, load_settings
from parlance.errors import UnderstandingInitError
from parlance.orchestrator.controller import VoiceController, create_voice_controller
from parlance.orchestrator.events import Language
from parlance.telemetry.logging import configure_logging, get_logger
from parlance.telemetry.tracing import configure_tracing, shutdown_tracing
from parlance.tools.registry import ToolRegistry
from parlance.tools.ui_actions import build_ui_action_tools
from parlance.ui.websocket import VoiceUIBridge
from parlance.understanding.chat import ChatModelUnderstanding
from parlance.understanding.gemini import GeminiUnderstanding
from parlance.understanding.ollama import OllamaUnderstanding

settings = load_settings()
configure_logging(settings.telemetry.log_level, json_logs=settings.telemetry.json_logs)
configure_tracing("parlance-voice", settings.telemetry.otlp_endpoint)
logger = get_logger(__name__)

ui_bridge = VoiceUIBridge()


def build_understanding(settings: AppSettings) -> ChatModelUnderstanding:
    llm = settings.llm
    options: dict[str, Any] = {
        "system_prompt": llm.system_prompt,
        "temperature": llm.temperature,
        "max_tokens": llm.max_tokens,
    }
    if llm.provider == "gemini":
        if not llm.gemini_api_key:
            raise RuntimeError("LLM_PROVIDER=gemini requires GEMINI_API_KEY")
        return GeminiUnderstanding(llm.gemini_api_key, llm.gemini_model, **options)
    return OllamaUnderstanding(llm.ollama_host, llm.ollama_model, **options)


def build_speech_capture(settings: AppSettings) -> SpeechCapture:
    speech = settings.speech
    if speech.engine == "realtime":
        if not speech.realtime_url:
            raise RuntimeError("SPEECH_ENGINE=realtime requires REALTIME_STT_URL")
        return StreamingSpeechCapture(
            lambda lang: RealtimeSTTEngine(
                speech.realtime_url,
                language=lang,
                sample_rate=speech.sample_rate,
                auth_token=speech.realtime_auth_token,
            )
        )
    return RemoteSpeechCapture()


class Runtime:
    def __init__(self, controller: VoiceController, bridge: VoiceUIBridge) -> None:
        self._controller = controller
        self._bridge = bridge
        self._detach = bridge.attach(controller)
        self._logger = get_logger(__name__)

    @property
    def controller(self) -> VoiceController:
        return self._controller

    def tools_for(self, language: Language) -> ToolRegistry:
        return build_ui_action_tools(self._bridge.publish, language=language, on_close_session=self.stop_session)

    async def start_session(self) -> None:
        await self._controller.start()

    async def stop_session(self) -> None:
        await self._controller.stop()

    def set_language(self, language: Language) -> None:
        self._controller.update_config(tools=self.tools_for(language), language=language)

    def snapshot(self) -> dict[str, Any]:
        return {
            "language": self._controller.get_language(),
            "capture": self._controller.speech_capture.state,
            "understanding": self._controller.understanding.state,
            "busy": self._controller.busy,
        }

    async def shutdown(self) -> None:
        self._logger.info("runtime.shutdown.start")
        await self._controller.stop()
        await self._controller.drain()
        self._detach()
        understanding = self._controller.understanding
        if isinstance(understanding, ChatModelUnderstanding):
            await understanding.aclose()
        self._logger.info("runtime.shutdown.complete")


def bootstrap_runtime(settings: AppSettings, bridge: VoiceUIBridge) -> Runtime:
    capture = build_speech_capture(settings)
    if isinstance(capture, RemoteSpeechCapture):
        bridge.set_remote_capture(capture)
    elif isinstance(capture, StreamingSpeechCapture):
        bridge.set_audio_sink(capture.feed)
    controller = create_voice_controller(
        speech_capture=capture,
        understanding=build_understanding(settings),
        language=settings.language,
    )
    runtime = Runtime(controller, bridge)
    controller.update_config(tools=runtime.tools_for(settings.language))
    logger.info(
        "runtime.bootstrapped",
        capture=capture.name,
        understanding=controller.understanding.name,
        tools=controller.tools.available(),
    )
    return runtime


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    app.state.runtime = bootstrap_runtime(settings, ui_bridge)
    try:
        yield
    finally:
        await app.state.runtime.shutdown()
        shutdown_tracing()


app = FastAPI(title="Parlance Voice Control", lifespan=lifespan)
origins = {settings.ui.origin}
if "localhost" in settings.ui.origin:
    origins.add(settings.ui.origin.replace("localhost", "127.0.0.1"))
app.include_router(ui_bridge.router)
app.add_middleware(
    CORSMiddleware,
    allow_origins=list(origins),
    allow_methods=["*"],
    allow_headers=["*"],
    allow_credentials=True,
)


class LanguageRequest(BaseModel):
    language: Language


def _runtime() -> Runtime:
    runtime = getattr(app.state, "runtime", None)
    if runtime is None:
        raise HTTPException(status_code=503, detail="Runtime not ready")
    return runtime


@app.post("/session/start")
async def session_start() -> dict[str, Any]:
    runtime = _runtime()
    try:
        await runtime.start_session()
    except UnderstandingInitError as exc:
        logger.error("session.start.failed", error=str(exc))
        raise HTTPException(status_code=503, detail=str(exc)) from exc
    return {"status": "ok", **runtime.snapshot()}


@app.post("/session/stop")
async def session_stop() -> dict[str, Any]:
    runtime = _runtime()
    await runtime.stop_session()
    return {"status": "ok", **runtime.snapshot()}


@app.get("/state")
async def session_state() -> dict[str, Any]:
    return _runtime().snapshot()


@app.get("/language")
async def get_language() -> dict[str, str]:
    return {"language": _runtime().controller.get_language()}


@app.post("/language")
async def set_language(req: LanguageRequest) -> dict[str, str]:
    runtime = _runtime()
    runtime.set_language(req.language)
    logger.info("language.changed", language=req.language)
    return {"language": runtime.controller.get_language()}


@app.get("/tools")
async def list_tools() -> dict[str, Any]:
    return {"tools": _runtime().controller.tools.describe()}


def run() -> None:
    uvicorn.run("parlance.main:app", host=settings.ui.host, port=settings.ui.port, log_config=None)


if __name__ == "__main__":
    run()
