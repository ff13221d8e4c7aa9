from __future__ import annotations


class ParlanceError(Exception):
    """Base class for errors raised by parlance components."""


class UnderstandingNotReady(ParlanceError):
    """Raised when text is submitted to an understanding provider that is not ready."""


class UnderstandingInitError(ParlanceError):
    """Raised when an understanding provider cannot load its model."""


class CaptureError(ParlanceError):
    """Reported by speech-capture providers when recognition fails."""


class ToolError(ParlanceError):
    """Raised when a tool cannot be executed."""


__all__ = [
    "ParlanceError",
    "UnderstandingNotReady",
    "UnderstandingInitError",
    "CaptureError",
    "ToolError",
]
