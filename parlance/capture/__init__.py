from parlance.capture.base import SpeechCapture
from parlance.capture.realtimestt import RealtimeSTTEngine
from parlance.capture.remote import RemoteSpeechCapture
from parlance.capture.streaming import StreamingSpeechCapture, TranscriptionEngine

__all__ = [
    "SpeechCapture",
    "RealtimeSTTEngine",
    "RemoteSpeechCapture",
    "StreamingSpeechCapture",
    "TranscriptionEngine",
]
