from parlance.understanding.base import LanguageUnderstanding
from parlance.understanding.chat import ChatModelUnderstanding
from parlance.understanding.gemini import GeminiUnderstanding
from parlance.understanding.ollama import OllamaUnderstanding
from parlance.understanding.result_schema import ToolCallResult, parse_tool_call

__all__ = [
    "LanguageUnderstanding",
    "ChatModelUnderstanding",
    "GeminiUnderstanding",
    "OllamaUnderstanding",
    "ToolCallResult",
    "parse_tool_call",
]
