from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Iterable, Iterator, Mapping
from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel, ValidationError

from parlance.errors import ToolError
from parlance.telemetry.logging import get_logger

ToolHandler = Callable[[dict[str, Any]], Awaitable[Any] | Any]


@dataclass(frozen=True, slots=True)
class Tool:
    """A named action the language model may ask for.

    ``parameters`` is a JSON-schema style mapping of argument name to a
    description of its type; when ``args_model`` is given, arguments are
    validated against it before ``execute`` runs and the schema is derived
    from it if ``parameters`` is left empty.
    """

    name: str
    description: str
    execute: ToolHandler
    parameters: Mapping[str, Any] | None = None
    args_model: type[BaseModel] | None = None

    def schema(self) -> Mapping[str, Any] | None:
        if self.parameters is not None:
            return self.parameters
        if self.args_model is not None:
            return self.args_model.model_json_schema().get("properties", {})
        return None

    def prepare_args(self, args: Mapping[str, Any] | None) -> dict[str, Any]:
        payload = dict(args or {})
        if self.args_model is None:
            return payload
        try:
            return self.args_model.model_validate(payload).model_dump()
        except ValidationError as exc:
            raise ToolError(f"Invalid payload for tool '{self.name}': {exc}") from exc


class ToolRegistry(Mapping[str, Tool]):
    """Immutable name -> Tool mapping.

    A registry is never edited in place; the controller swaps in a whole new
    registry on configuration updates.
    """

    def __init__(self, tools: Iterable[Tool] = ()) -> None:
        specs: dict[str, Tool] = {}
        for tool in tools:
            if tool.name in specs:
                raise ValueError(f"Tool '{tool.name}' already registered")
            specs[tool.name] = tool
        self._specs = specs
        self._logger = get_logger(__name__)

    @classmethod
    def coerce(cls, tools: ToolRegistry | Mapping[str, Tool] | Iterable[Tool] | None) -> ToolRegistry:
        if tools is None:
            return cls()
        if isinstance(tools, ToolRegistry):
            return tools
        if isinstance(tools, Mapping):
            for key, tool in tools.items():
                if key != tool.name:
                    raise ValueError(f"Tool registered under '{key}' is named '{tool.name}'")
            return cls(tools.values())
        return cls(tools)

    def __getitem__(self, name: str) -> Tool:
        return self._specs[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._specs)

    def __len__(self) -> int:
        return len(self._specs)

    def available(self) -> list[str]:
        return sorted(self._specs.keys())

    def describe(self) -> list[dict[str, Any]]:
        return [
            {"name": tool.name, "description": tool.description, "parameters": tool.schema()}
            for tool in self._specs.values()
        ]

    async def run(self, name: str, args: Mapping[str, Any] | None) -> Any:
        tool = self._specs.get(name)
        if tool is None:
            raise ToolError(f"Unknown tool '{name}'")
        payload = tool.prepare_args(args)
        self._logger.info("tool.registry.run", tool=name, args=payload)
        result = tool.execute(payload)
        if asyncio.iscoroutine(result) or isinstance(result, asyncio.Future):
            result = await result
        return result


__all__ = ["Tool", "ToolHandler", "ToolRegistry"]
