from __future__ import annotations

from parlance.capture.base import SpeechCapture
from parlance.errors import CaptureError
from parlance.orchestrator.events import Language


class RemoteSpeechCapture(SpeechCapture):
    """Capture fed by a recognizer running elsewhere, e.g. a browser tab.

    The remote side pushes fragments through :meth:`push`; fragments that
    arrive outside a listening session are ignored. Language changes are
    announced through ``on_language_change`` so the remote recognizer can
    switch to :attr:`locale` and restart.
    """

    name = "remote"

    async def start(self) -> None:
        self._set_state("listening")

    async def stop(self) -> None:
        self._set_state("idle")

    def set_language(self, lang: Language) -> None:
        changed = lang != self._language
        super().set_language(lang)
        if changed:
            self._logger.info("capture.remote.language", language=lang, locale=self.locale)

    def push(self, text: str, is_final: bool) -> bool:
        if self._state != "listening":
            self._logger.debug("capture.remote.ignored", state=self._state, is_final=is_final)
            return False
        self._emit_transcript(text, is_final)
        return True

    def fail(self, message: str) -> None:
        """Report a recognition fault raised by the remote recognizer."""
        self._set_state("error")
        self._emit_error(CaptureError(message))


__all__ = ["RemoteSpeechCapture"]
