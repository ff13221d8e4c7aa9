from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Callable

from parlance.orchestrator.events import DEFAULT_LANGUAGE, Language, UnderstandingState
from parlance.orchestrator.listeners import ListenerRegistry
from parlance.tools.registry import ToolRegistry
from parlance.understanding.result_schema import ToolCallResult

ProgressListener = Callable[[float, str], None]
UnderstandingStateListener = Callable[[UnderstandingState], None]


class LanguageUnderstanding(ABC):
    """Turns an utterance into a tool-call decision.

    Concrete providers own the state machine; the controller only reads
    ``state`` and pushes language and tool catalogue updates.
    """

    name: str = "understanding"

    def __init__(self) -> None:
        self._state: UnderstandingState = "unloaded"
        self._language: Language = DEFAULT_LANGUAGE
        self._tools = ToolRegistry()
        self._progress_listeners: ListenerRegistry[ProgressListener] = ListenerRegistry(
            f"{self.name}.progress", isolate_errors=True
        )
        self._state_listeners: ListenerRegistry[UnderstandingStateListener] = ListenerRegistry(
            f"{self.name}.state", isolate_errors=True
        )

    @property
    def state(self) -> UnderstandingState:
        return self._state

    @property
    def language(self) -> Language:
        return self._language

    @property
    def tools(self) -> ToolRegistry:
        return self._tools

    @abstractmethod
    async def init(self) -> None:
        """Load the model. Calling again once loaded or while loading must not reload."""

    @abstractmethod
    async def process_text(self, text: str) -> ToolCallResult | None:
        """Resolve ``text`` into a tool call. Raises UnderstandingNotReady unless ready."""

    def set_language(self, lang: Language) -> None:
        self._language = lang

    def set_tools(self, tools: ToolRegistry) -> None:
        self._tools = tools

    def on_progress(self, listener: ProgressListener) -> Callable[[], None]:
        return self._progress_listeners.add(listener)

    def on_state_change(self, listener: UnderstandingStateListener) -> Callable[[], None]:
        return self._state_listeners.add(listener)

    def _set_state(self, state: UnderstandingState) -> None:
        if state == self._state:
            return
        self._state = state
        self._state_listeners.emit(state)

    def _report_progress(self, percent: float, status: str) -> None:
        self._progress_listeners.emit(max(0.0, min(percent, 100.0)), status)


__all__ = ["LanguageUnderstanding", "ProgressListener", "UnderstandingStateListener"]
