from __future__ import annotations

import json
import re
from typing import Any

from pydantic import BaseModel, Field, ValidationError, field_validator

from parlance.telemetry.logging import get_logger

LOGGER = get_logger(__name__)

_FENCE_RE = re.compile(r"```(?:json)?\s*|```")
_OBJECT_RE = re.compile(r"\{.*\}", re.DOTALL)


class ToolCallResult(BaseModel):
    """Structured decision emitted by the language model for one utterance."""

    tool: str | None = Field(default=None, description="Registered tool name, or null when no command was recognised")
    args: dict[str, Any] | None = Field(default=None, description="Arguments for the tool")
    response: str = Field(default="", description="Conversational reply for the user")

    @field_validator("tool", mode="before")
    @classmethod
    def blank_tool_is_none(cls, value: Any) -> Any:
        if isinstance(value, str) and not value.strip():
            return None
        if isinstance(value, str) and value.strip().lower() in {"null", "none"}:
            return None
        return value

    @field_validator("response", mode="before")
    @classmethod
    def coerce_response(cls, value: Any) -> Any:
        if value is None:
            return ""
        return value


def parse_tool_call(content: str | None) -> ToolCallResult | None:
    """Turn raw model output into a ToolCallResult.

    Output without a decodable JSON object is treated as a plain
    conversational reply. A JSON object that does not fit the schema yields
    ``None``.
    """
    if content is None:
        return None
    cleaned = _FENCE_RE.sub("", content).strip()
    if not cleaned:
        return None
    match = _OBJECT_RE.search(cleaned)
    if match is None:
        return ToolCallResult(tool=None, args=None, response=cleaned)
    try:
        payload = json.loads(match.group(0))
    except json.JSONDecodeError as exc:
        LOGGER.warning("understanding.parse.invalid_json", error=str(exc), content=cleaned[:200])
        return ToolCallResult(tool=None, args=None, response=cleaned)
    if not isinstance(payload, dict):
        return None
    try:
        return ToolCallResult.model_validate(payload)
    except ValidationError as exc:
        LOGGER.warning("understanding.parse.invalid_schema", error=str(exc), content=cleaned[:200])
        return None


__all__ = ["ToolCallResult", "parse_tool_call"]
