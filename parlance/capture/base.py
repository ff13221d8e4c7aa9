from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Callable

from parlance.orchestrator.events import DEFAULT_LANGUAGE, SPEECH_LOCALES, Language, SpeechCaptureState
from parlance.orchestrator.listeners import ListenerRegistry
from parlance.telemetry.logging import get_logger

TranscriptListener = Callable[[str, bool], None]
ErrorListener = Callable[[Exception], None]
CaptureStateListener = Callable[[SpeechCaptureState], None]
LanguageListener = Callable[[Language], None]


class SpeechCapture(ABC):
    """Source of transcript fragments.

    Interim fragments (``is_final=False``) may be emitted repeatedly, each
    superseding the last; final fragments are never revised.
    """

    name: str = "capture"

    def __init__(self) -> None:
        self._state: SpeechCaptureState = "idle"
        self._language: Language = DEFAULT_LANGUAGE
        self._transcript_listeners: ListenerRegistry[TranscriptListener] = ListenerRegistry(f"{self.name}.transcript")
        self._error_listeners: ListenerRegistry[ErrorListener] = ListenerRegistry(
            f"{self.name}.error", isolate_errors=True
        )
        self._state_listeners: ListenerRegistry[CaptureStateListener] = ListenerRegistry(
            f"{self.name}.state", isolate_errors=True
        )
        self._language_listeners: ListenerRegistry[LanguageListener] = ListenerRegistry(
            f"{self.name}.language", isolate_errors=True
        )
        self._logger = get_logger(__name__)

    @property
    def state(self) -> SpeechCaptureState:
        return self._state

    @property
    def language(self) -> Language:
        return self._language

    @property
    def locale(self) -> str:
        """Recognizer locale for the working language, e.g. ``pt-BR``."""
        return SPEECH_LOCALES.get(self._language, SPEECH_LOCALES[DEFAULT_LANGUAGE])

    @abstractmethod
    async def start(self) -> None:
        """Begin listening. Callers should not start an already listening provider."""

    @abstractmethod
    async def stop(self) -> None:
        """Stop listening and suppress any restart-on-end behaviour."""

    def set_language(self, lang: Language) -> None:
        if lang == self._language:
            return
        self._language = lang
        self._language_listeners.emit(lang)

    def on_transcript(self, listener: TranscriptListener) -> Callable[[], None]:
        return self._transcript_listeners.add(listener)

    def on_error(self, listener: ErrorListener) -> Callable[[], None]:
        return self._error_listeners.add(listener)

    def on_state_change(self, listener: CaptureStateListener) -> Callable[[], None]:
        return self._state_listeners.add(listener)

    def on_language_change(self, listener: LanguageListener) -> Callable[[], None]:
        return self._language_listeners.add(listener)

    def _emit_transcript(self, text: str, is_final: bool) -> None:
        self._transcript_listeners.emit(text, is_final)

    def _emit_error(self, error: Exception) -> None:
        self._logger.warning("capture.error", provider=self.name, error=str(error))
        self._error_listeners.emit(error)

    def _set_state(self, state: SpeechCaptureState) -> None:
        if state == self._state:
            return
        self._state = state
        self._state_listeners.emit(state)


__all__ = ["SpeechCapture", "TranscriptListener", "ErrorListener", "CaptureStateListener", "LanguageListener"]
