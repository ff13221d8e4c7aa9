from __future__ import annotations

import asyncio

import pytest

from parlance.capture.base import SpeechCapture
from parlance.errors import UnderstandingNotReady
from parlance.orchestrator.events import Language
from parlance.understanding.base import LanguageUnderstanding
from parlance.understanding.result_schema import ToolCallResult


@pytest.fixture
def anyio_backend():
    return "asyncio"


class FakeCapture(SpeechCapture):
    name = "fake-capture"

    def __init__(self, journal: list[str] | None = None) -> None:
        super().__init__()
        self.journal = journal if journal is not None else []
        self.language_calls: list[str] = []

    async def start(self) -> None:
        self.journal.append("capture.start")
        self._set_state("listening")

    async def stop(self) -> None:
        self.journal.append("capture.stop")
        self._set_state("idle")

    def set_language(self, lang: Language) -> None:
        self.language_calls.append(lang)
        super().set_language(lang)

    def say(self, text: str, is_final: bool) -> None:
        self._emit_transcript(text, is_final)

    def fail(self, error: Exception) -> None:
        self._emit_error(error)


class FakeUnderstanding(LanguageUnderstanding):
    name = "fake-understanding"

    def __init__(self, journal: list[str] | None = None) -> None:
        super().__init__()
        self.journal = journal if journal is not None else []
        self.init_calls = 0
        self.calls: list[str] = []
        self.language_calls: list[str] = []
        self.outcomes: list[ToolCallResult | Exception | None] = []
        self.gate: asyncio.Event | None = None
        self.init_error: Exception | None = None

    async def init(self) -> None:
        self.init_calls += 1
        self.journal.append("understanding.init")
        if self.init_error is not None:
            self._set_state("error")
            raise self.init_error
        self._set_state("ready")

    async def process_text(self, text: str) -> ToolCallResult | None:
        if self._state != "ready":
            raise UnderstandingNotReady("not ready")
        self.calls.append(text)
        if self.gate is not None:
            await self.gate.wait()
        outcome = self.outcomes.pop(0) if self.outcomes else None
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    def set_language(self, lang: Language) -> None:
        self.language_calls.append(lang)
        super().set_language(lang)


@pytest.fixture
def journal() -> list[str]:
    return []


@pytest.fixture
def capture(journal: list[str]) -> FakeCapture:
    return FakeCapture(journal)


@pytest.fixture
def understanding(journal: list[str]) -> FakeUnderstanding:
    return FakeUnderstanding(journal)


@pytest.fixture
def capture_factory(journal: list[str]):
    return lambda: FakeCapture(journal)
