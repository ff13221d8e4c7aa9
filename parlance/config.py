from __future__ import annotations

import functools
from typing import Literal

from pydantic import BaseModel
from pydantic_settings import BaseSettings, SettingsConfigDict

from parlance.orchestrator.events import Language


class SpeechSettings(BaseModel):
    engine: Literal["remote", "realtime"] = "remote"
    realtime_url: str | None = None
    realtime_auth_token: str | None = None
    sample_rate: int = 16_000


class LLMSettings(BaseModel):
    provider: Literal["ollama", "gemini"] = "ollama"
    ollama_host: str = "http://localhost:11434"
    ollama_model: str = "llama3.2:1b"
    gemini_api_key: str | None = None
    gemini_model: str = "gemini-1.5-flash"
    temperature: float = 0.1
    max_tokens: int = 150
    system_prompt: str | None = None


class TelemetrySettings(BaseModel):
    log_level: str = "INFO"
    json_logs: bool = True
    otlp_endpoint: str | None = None


class UISettings(BaseModel):
    origin: str = "http://localhost:5173"
    host: str = "127.0.0.1"
    port: int = 8000


class AppSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=(".env", ".env.local"), env_file_encoding="utf-8", extra="ignore")

    VOICE_LANGUAGE: Language = "en"
    SPEECH_ENGINE: Literal["remote", "realtime"] = "remote"
    REALTIME_STT_URL: str | None = None
    REALTIME_STT_AUTH_TOKEN: str | None = None
    REALTIME_STT_SAMPLE_RATE: int = 16_000
    LLM_PROVIDER: Literal["ollama", "gemini"] = "ollama"
    OLLAMA_HOST: str = "http://localhost:11434"
    OLLAMA_MODEL: str = "llama3.2:1b"
    GEMINI_API_KEY: str | None = None
    GEMINI_MODEL: str = "gemini-1.5-flash"
    LLM_TEMPERATURE: float = 0.1
    LLM_MAX_TOKENS: int = 150
    LLM_SYSTEM_PROMPT: str | None = None
    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = True
    OTEL_EXPORTER_OTLP_ENDPOINT: str | None = None
    UI_ORIGIN: str = "http://localhost:5173"
    SERVER_HOST: str = "127.0.0.1"
    SERVER_PORT: int = 8000

    @property
    def language(self) -> Language:
        return self.VOICE_LANGUAGE

    @property
    def speech(self) -> SpeechSettings:
        return SpeechSettings(
            engine=self.SPEECH_ENGINE,
            realtime_url=self.REALTIME_STT_URL,
            realtime_auth_token=self.REALTIME_STT_AUTH_TOKEN,
            sample_rate=self.REALTIME_STT_SAMPLE_RATE,
        )

    @property
    def llm(self) -> LLMSettings:
        return LLMSettings(
            provider=self.LLM_PROVIDER,
            ollama_host=self.OLLAMA_HOST,
            ollama_model=self.OLLAMA_MODEL,
            gemini_api_key=self.GEMINI_API_KEY,
            gemini_model=self.GEMINI_MODEL,
            temperature=self.LLM_TEMPERATURE,
            max_tokens=self.LLM_MAX_TOKENS,
            system_prompt=self.LLM_SYSTEM_PROMPT or None,
        )

    @property
    def telemetry(self) -> TelemetrySettings:
        return TelemetrySettings(
            log_level=self.LOG_LEVEL,
            json_logs=self.LOG_JSON,
            otlp_endpoint=self.OTEL_EXPORTER_OTLP_ENDPOINT,
        )

    @property
    def ui(self) -> UISettings:
        return UISettings(origin=self.UI_ORIGIN, host=self.SERVER_HOST, port=self.SERVER_PORT)


@functools.lru_cache(maxsize=1)
def load_settings() -> AppSettings:
    return AppSettings()


__all__ = ["AppSettings", "LLMSettings", "SpeechSettings", "TelemetrySettings", "UISettings", "load_settings"]
