from __future__ import annotations

from typing import Any

import pytest
from pydantic import BaseModel, Field

from parlance.errors import ToolError
from parlance.tools.registry import Tool, ToolRegistry


class ColorArgs(BaseModel):
    color: str = Field(..., pattern=r"^#[0-9A-Fa-f]{6}$")


def noop(_args: dict[str, Any]) -> None:
    return None


def test_duplicate_names_rejected() -> None:
    with pytest.raises(ValueError):
        ToolRegistry([Tool("a", "first", noop), Tool("a", "second", noop)])


def test_mapping_key_must_match_tool_name() -> None:
    with pytest.raises(ValueError):
        ToolRegistry.coerce({"paint": Tool("set_bg_color", "Changes the background color.", noop)})


def test_coerce_accepts_mapping_iterable_and_registry() -> None:
    tool = Tool("set_bg_color", "Changes the background color.", noop)
    registry = ToolRegistry.coerce({"set_bg_color": tool})

    assert ToolRegistry.coerce(registry) is registry
    assert ToolRegistry.coerce([tool]).available() == ["set_bg_color"]
    assert len(ToolRegistry.coerce(None)) == 0
    assert registry["set_bg_color"] is tool


@pytest.mark.anyio
async def test_run_handles_sync_and_async_handlers() -> None:
    async def async_handler(args: dict[str, Any]) -> dict[str, Any]:
        return {"echo": args}

    registry = ToolRegistry(
        [
            Tool("sync", "sync tool", lambda args: {"sync": args}),
            Tool("async", "async tool", async_handler),
        ]
    )

    assert await registry.run("sync", {"a": 1}) == {"sync": {"a": 1}}
    assert await registry.run("async", None) == {"echo": {}}


@pytest.mark.anyio
async def test_run_unknown_tool_raises() -> None:
    with pytest.raises(ToolError):
        await ToolRegistry().run("missing", {})


@pytest.mark.anyio
async def test_args_model_validates_payload() -> None:
    seen: list[dict[str, Any]] = []
    registry = ToolRegistry([Tool("set_bg_color", "Changes the background color.", seen.append, args_model=ColorArgs)])

    await registry.run("set_bg_color", {"color": "#FF0000"})
    with pytest.raises(ToolError):
        await registry.run("set_bg_color", {"color": "red"})

    assert seen == [{"color": "#FF0000"}]


def test_schema_prefers_explicit_parameters() -> None:
    explicit = Tool("a", "a", noop, parameters={"color": {"type": "string"}}, args_model=ColorArgs)
    derived = Tool("b", "b", noop, args_model=ColorArgs)
    bare = Tool("c", "c", noop)

    assert explicit.schema() == {"color": {"type": "string"}}
    assert set(derived.schema() or {}) == {"color"}
    assert bare.schema() is None
    assert ToolRegistry([explicit, bare]).describe() == [
        {"name": "a", "description": "a", "parameters": {"color": {"type": "string"}}},
        {"name": "c", "description": "c", "parameters": None},
    ]
