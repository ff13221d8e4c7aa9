from __future__ import annotations

import asyncio
import itertools
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass
from typing import Any

from opentelemetry.trace import Span, Tracer

from parlance.capture.base import SpeechCapture, TranscriptListener
from parlance.orchestrator.events import DEFAULT_LANGUAGE, Language, ensure_language
from parlance.orchestrator.listeners import ListenerRegistry
from parlance.telemetry.logging import bound_context, get_logger
from parlance.telemetry.tracing import get_tracer
from parlance.tools.registry import Tool, ToolRegistry
from parlance.understanding.base import LanguageUnderstanding
from parlance.understanding.result_schema import ToolCallResult

ToolsInput = ToolRegistry | Mapping[str, Tool] | Iterable[Tool] | None
ResultListener = Callable[[str, ToolCallResult], None]


@dataclass(slots=True)
class ControllerConfig:
    speech_capture: SpeechCapture
    understanding: LanguageUnderstanding
    tools: ToolsInput = None
    language: Language = DEFAULT_LANGUAGE


class SingleFlight:
    """Exclusive flag held for the duration of one resolution cycle."""

    def __init__(self) -> None:
        self._held = False

    @property
    def held(self) -> bool:
        return self._held

    def acquire(self) -> bool:
        if self._held:
            return False
        self._held = True
        return True

    def release(self) -> None:
        self._held = False


class VoiceController:
    """Binds a speech-capture provider to a language-understanding provider.

    Final transcripts are resolved into tool calls one at a time: a final
    that arrives while a cycle is in flight is dropped, never queued. The
    working language is pushed to both providers whenever it changes.
    """

    def __init__(self, config: ControllerConfig, *, tracer: Tracer | None = None) -> None:
        self._speech_capture = config.speech_capture
        self._understanding = config.understanding
        self._tools = ToolRegistry.coerce(config.tools)
        self._language = ensure_language(config.language)
        self._guard = SingleFlight()
        self._transcript_listeners: ListenerRegistry[TranscriptListener] = ListenerRegistry(
            "controller.transcript", isolate_errors=True
        )
        self._result_listeners: ListenerRegistry[ResultListener] = ListenerRegistry(
            "controller.result", isolate_errors=True
        )
        self._tasks: set[asyncio.Task[Any]] = set()
        self._logger = get_logger(__name__)
        self._tracer = tracer or get_tracer(__name__)
        self._cycle_ids = itertools.count(1)

        self._subscribe(self._speech_capture)
        self._propagate()

    @property
    def speech_capture(self) -> SpeechCapture:
        return self._speech_capture

    @property
    def understanding(self) -> LanguageUnderstanding:
        return self._understanding

    @property
    def tools(self) -> ToolRegistry:
        return self._tools

    @property
    def busy(self) -> bool:
        return self._guard.held

    # -- configuration -------------------------------------------------

    def get_language(self) -> Language:
        return self._language

    def set_language(self, lang: Language) -> None:
        self._language = ensure_language(lang)
        self._propagate()

    def update_config(
        self,
        *,
        speech_capture: SpeechCapture | None = None,
        understanding: LanguageUnderstanding | None = None,
        tools: ToolsInput = None,
        language: Language | None = None,
    ) -> None:
        # Validate everything before touching state so a bad update changes nothing.
        new_tools = ToolRegistry.coerce(tools) if tools is not None else None
        new_language = ensure_language(language) if language is not None else None

        if new_tools is not None:
            self._tools = new_tools
        if new_language is not None:
            self._language = new_language
        if speech_capture is not None and speech_capture is not self._speech_capture:
            self._speech_capture = speech_capture
            self._subscribe(speech_capture)
        if understanding is not None:
            self._understanding = understanding
        self._logger.info(
            "controller.config.updated",
            language=self._language,
            tools=self._tools.available(),
            capture=self._speech_capture.name,
            understanding=self._understanding.name,
        )
        self._propagate()

    def _propagate(self) -> None:
        self._speech_capture.set_language(self._language)
        self._understanding.set_language(self._language)
        self._understanding.set_tools(self._tools)

    # -- listeners -----------------------------------------------------

    def on_transcript(self, listener: TranscriptListener) -> Callable[[], None]:
        return self._transcript_listeners.add(listener)

    def on_result(self, listener: ResultListener) -> Callable[[], None]:
        return self._result_listeners.add(listener)

    def _subscribe(self, capture: SpeechCapture) -> None:
        # Subscriptions on a replaced provider are left in place, not removed.
        capture.on_transcript(self._handle_transcript)
        capture.on_error(self._handle_capture_error)

    def _handle_transcript(self, text: str, is_final: bool) -> None:
        self._transcript_listeners.emit(text, is_final)
        if not is_final or not text.strip():
            return
        if not self._guard.acquire():
            self._logger.debug("controller.resolve.dropped", text=text)
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            self._guard.release()
            raise
        task = loop.create_task(self._resolve_held(text), name="voice-resolve")
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    def _handle_capture_error(self, error: Exception) -> None:
        self._logger.error("controller.capture.error", provider=self._speech_capture.name, error=str(error))

    # -- resolution ----------------------------------------------------

    async def resolve(self, text: str) -> ToolCallResult | None:
        """Run one resolution cycle for ``text``; returns None if dropped, empty or failed."""
        if not self._guard.acquire():
            self._logger.debug("controller.resolve.dropped", text=text)
            return None
        return await self._resolve_held(text)

    async def drain(self) -> None:
        """Wait for resolution cycles started from transcript events to settle."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def _resolve_held(self, text: str) -> ToolCallResult | None:
        try:
            with bound_context(cycle=next(self._cycle_ids)), self._tracer.start_as_current_span(
                "voice.resolve",
                attributes={"voice.language": self._language, "voice.provider": self._understanding.name},
            ) as span:
                return await self._run_cycle(text, span)
        finally:
            self._guard.release()

    async def _run_cycle(self, text: str, span: Span) -> ToolCallResult | None:
        understanding = self._understanding
        self._logger.info("controller.resolve.start", provider=understanding.name, text=text)
        try:
            result = await understanding.process_text(text)
        except Exception as exc:
            span.record_exception(exc)
            span.set_attribute("voice.outcome", "failed")
            self._logger.error("controller.resolve.failed", provider=understanding.name, error=str(exc), exc_info=True)
            return None
        if result is None:
            span.set_attribute("voice.outcome", "empty")
            self._logger.info("controller.resolve.empty", provider=understanding.name)
            return None

        tools = self._tools
        if result.tool is None:
            span.set_attribute("voice.outcome", "no_tool")
            self._logger.info("controller.resolve.no_tool", response=result.response)
        elif result.tool in tools:
            span.set_attribute("voice.tool", result.tool)
            self._logger.info("controller.tool.invoke", tool=result.tool, args=result.args)
            try:
                await tools.run(result.tool, result.args)
                span.set_attribute("voice.outcome", "invoked")
            except Exception as exc:
                span.record_exception(exc)
                span.set_attribute("voice.outcome", "tool_failed")
                self._logger.error("controller.tool.failed", tool=result.tool, error=str(exc), exc_info=True)
        else:
            span.set_attribute("voice.outcome", "unknown_tool")
            self._logger.warning("controller.tool.unknown", tool=result.tool, available=tools.available())

        self._result_listeners.emit(text, result)
        return result

    # -- session -------------------------------------------------------

    async def start(self) -> None:
        """Load the understanding model, then begin capture."""
        self._logger.info("controller.session.starting", language=self._language)
        await self._understanding.init()
        if self._speech_capture.state == "listening":
            self._logger.debug("controller.session.already_listening")
            return
        await self._speech_capture.start()
        self._logger.info("controller.session.started", capture=self._speech_capture.state)

    async def stop(self) -> None:
        await self._speech_capture.stop()
        self._logger.info("controller.session.stopped")


def create_voice_controller(
    speech_capture: SpeechCapture,
    understanding: LanguageUnderstanding,
    tools: ToolsInput = None,
    language: Language = DEFAULT_LANGUAGE,
) -> VoiceController:
    return VoiceController(
        ControllerConfig(
            speech_capture=speech_capture,
            understanding=understanding,
            tools=tools,
            language=language,
        )
    )


__all__ = ["ControllerConfig", "SingleFlight", "VoiceController", "create_voice_controller", "ResultListener"]
