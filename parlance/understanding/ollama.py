from __future__ import annotations

import json

import httpx

from parlance.errors import UnderstandingInitError
from parlance.understanding.chat import ChatModelUnderstanding


class OllamaUnderstanding(ChatModelUnderstanding):
    name = "ollama"

    def __init__(
        self,
        host: str,
        model: str = "llama3.2:1b",
        *,
        system_prompt: str | None = None,
        temperature: float = 0.1,
        max_tokens: int = 150,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        super().__init__(system_prompt=system_prompt, temperature=temperature, max_tokens=max_tokens)
        self._host = host.rstrip("/")
        self._model = model
        self._client = client or httpx.AsyncClient(base_url=self._host, timeout=60.0)

    async def _load(self) -> None:
        # /api/pull is a no-op download when the model is already present locally.
        percent = 0.0
        self._report_progress(percent, "pulling manifest")
        async with self._client.stream(
            "POST", "/api/pull", json={"model": self._model, "stream": True}, timeout=None
        ) as resp:
            resp.raise_for_status()
            async for line in resp.aiter_lines():
                if not line.strip():
                    continue
                event = json.loads(line)
                if "error" in event:
                    raise UnderstandingInitError(f"ollama pull failed: {event['error']}")
                status = str(event.get("status", ""))
                total = event.get("total")
                completed = event.get("completed")
                if total and completed is not None:
                    percent = completed / total * 100.0
                elif status == "success":
                    percent = 100.0
                self._logger.debug("understanding.ollama.pull", status=status, percent=round(percent, 1))
                self._report_progress(percent, status)

    async def _complete(self, system_prompt: str, text: str) -> str:
        payload = {
            "model": self._model,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": text},
            ],
            "format": "json",
            "stream": False,
            "options": {"temperature": self._temperature, "num_predict": self._max_tokens},
        }
        self._logger.info("understanding.ollama.chat", model=self._model, text_len=len(text))
        resp = await self._client.post("/api/chat", json=payload)
        resp.raise_for_status()
        data = resp.json()
        return (data.get("message") or {}).get("content", "")

    async def aclose(self) -> None:
        await self._client.aclose()


__all__ = ["OllamaUnderstanding"]
