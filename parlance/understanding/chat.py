from __future__ import annotations

import asyncio
from abc import abstractmethod

from parlance.errors import UnderstandingInitError, UnderstandingNotReady
from parlance.telemetry.logging import get_logger
from parlance.understanding.base import LanguageUnderstanding
from parlance.understanding.prompts import build_system_prompt
from parlance.understanding.result_schema import ToolCallResult, parse_tool_call


class ChatModelUnderstanding(LanguageUnderstanding):
    """Shared state machine for providers backed by a chat-completion model.

    unloaded -> loading -> ready <-> processing; a failed load ends in
    ``error``. A failed completion puts the provider back to ``ready`` so the
    next utterance can be tried.
    """

    def __init__(
        self,
        *,
        system_prompt: str | None = None,
        temperature: float = 0.1,
        max_tokens: int = 150,
    ) -> None:
        super().__init__()
        self._system_prompt = system_prompt
        self._temperature = temperature
        self._max_tokens = max_tokens
        self._init_lock = asyncio.Lock()
        self._loaded = False
        self._logger = get_logger(__name__)

    async def init(self) -> None:
        async with self._init_lock:
            if self._loaded:
                return
            self._set_state("loading")
            self._logger.info("understanding.init.start", provider=self.name)
            try:
                await self._load()
            except UnderstandingInitError:
                self._set_state("error")
                raise
            except Exception as exc:
                self._set_state("error")
                raise UnderstandingInitError(f"{self.name} failed to load: {exc}") from exc
            self._loaded = True
            self._report_progress(100.0, "ready")
            self._set_state("ready")
            self._logger.info("understanding.init.complete", provider=self.name)

    async def process_text(self, text: str) -> ToolCallResult | None:
        if self._state != "ready":
            raise UnderstandingNotReady(f"{self.name} is not ready (state={self._state})")
        self._set_state("processing")
        prompt = build_system_prompt(self._language, self._tools, self._system_prompt)
        try:
            content = await self._complete(prompt, text)
        finally:
            self._set_state("ready")
        result = parse_tool_call(content)
        self._logger.info(
            "understanding.result",
            provider=self.name,
            tool=result.tool if result else None,
            parsed=result is not None,
        )
        return result

    @abstractmethod
    async def _load(self) -> None:
        """Make the model available, reporting progress along the way."""

    @abstractmethod
    async def _complete(self, system_prompt: str, text: str) -> str:
        """Run one chat completion and return the raw assistant content."""

    async def aclose(self) -> None:
        return None


__all__ = ["ChatModelUnderstanding"]
