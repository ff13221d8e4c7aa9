from __future__ import annotations

import httpx

from parlance.errors import UnderstandingInitError
from parlance.understanding.chat import ChatModelUnderstanding


class GeminiUnderstanding(ChatModelUnderstanding):
    name = "gemini"

    def __init__(
        self,
        api_key: str,
        model: str = "gemini-1.5-flash",
        *,
        system_prompt: str | None = None,
        temperature: float = 0.1,
        max_tokens: int = 150,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        super().__init__(system_prompt=system_prompt, temperature=temperature, max_tokens=max_tokens)
        if not api_key:
            raise ValueError("Gemini API key is required.")
        self._api_key = api_key
        self._model = model
        self._client = client or httpx.AsyncClient(
            base_url="https://generativelanguage.googleapis.com/v1beta",
            timeout=60.0,
        )

    async def _load(self) -> None:
        self._report_progress(0.0, f"checking {self._model}")
        resp = await self._client.get(f"/models/{self._model}", params={"key": self._api_key})
        if resp.status_code == httpx.codes.NOT_FOUND:
            raise UnderstandingInitError(f"Gemini model '{self._model}' not found")
        resp.raise_for_status()

    async def _complete(self, system_prompt: str, text: str) -> str:
        payload = {
            "systemInstruction": {"role": "system", "parts": [{"text": system_prompt}]},
            "contents": [{"role": "user", "parts": [{"text": text}]}],
            "generationConfig": {
                "temperature": self._temperature,
                "maxOutputTokens": self._max_tokens,
                "responseMimeType": "application/json",
            },
        }
        resp = await self._client.post(
            f"/models/{self._model}:generateContent",
            params={"key": self._api_key},
            json=payload,
        )
        resp.raise_for_status()
        data = resp.json()
        candidates = data.get("candidates") or []
        if not candidates:
            return ""
        parts = candidates[0].get("content", {}).get("parts") or [{}]
        return parts[0].get("text", "")

    async def aclose(self) -> None:
        await self._client.aclose()


__all__ = ["GeminiUnderstanding"]
