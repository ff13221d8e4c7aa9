from __future__ import annotations

from dataclasses import dataclass
from typing import Literal, get_args

SpeechCaptureState = Literal["idle", "listening", "processing", "error"]
UnderstandingState = Literal["unloaded", "loading", "ready", "processing", "error"]
Language = Literal["en", "pt"]

SUPPORTED_LANGUAGES: tuple[str, ...] = get_args(Language)
DEFAULT_LANGUAGE: Language = "en"

# Recognizer locales per working language.
SPEECH_LOCALES: dict[str, str] = {"en": "en-US", "pt": "pt-BR"}


@dataclass(slots=True)
class TranscriptChunk:
    text: str
    is_final: bool = False
    ts: float = 0.0


def ensure_language(lang: str) -> Language:
    if lang not in SUPPORTED_LANGUAGES:
        raise ValueError(f"Unsupported language '{lang}', expected one of {', '.join(SUPPORTED_LANGUAGES)}")
    return lang  # type: ignore[return-value]


__all__ = [
    "SpeechCaptureState",
    "UnderstandingState",
    "Language",
    "SUPPORTED_LANGUAGES",
    "DEFAULT_LANGUAGE",
    "SPEECH_LOCALES",
    "TranscriptChunk",
    "ensure_language",
]
