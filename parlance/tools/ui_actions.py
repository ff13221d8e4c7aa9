from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import Any

from pydantic import BaseModel, Field

from parlance.orchestrator.events import Language
from parlance.tools.registry import Tool, ToolRegistry

Publisher = Callable[[str, dict[str, Any]], Awaitable[None]]


class ColorArgs(BaseModel):
    color: str = Field(..., pattern=r"^#[0-9A-Fa-f]{6}$", description="HEX colour, e.g. #FF0000")


class SidebarArgs(BaseModel):
    open: bool | None = Field(default=None, description="true to open, false to close, omit to toggle")


class EmptyArgs(BaseModel):
    """Placeholder for tools that do not accept input."""


DESCRIPTIONS: dict[str, dict[str, str]] = {
    "en": {
        "set_bg_color": "Changes the background color.",
        "toggle_sidebar": "Opens or closes the sidebar menu.",
        "open_modal": "Opens a test modal.",
        "close_modal": "Closes the active modal.",
        "close_session": "Ends the voice session and stops listening.",
    },
    "pt": {
        "set_bg_color": "Muda a cor de fundo.",
        "toggle_sidebar": "Abre ou fecha o menu lateral.",
        "open_modal": "Abre um modal de teste.",
        "close_modal": "Fecha o modal ativo.",
        "close_session": "Encerra a sessão de voz e para de ouvir.",
    },
}

_ARGS: dict[str, type[BaseModel]] = {
    "set_bg_color": ColorArgs,
    "toggle_sidebar": SidebarArgs,
    "open_modal": EmptyArgs,
    "close_modal": EmptyArgs,
    "close_session": EmptyArgs,
}


def build_ui_action_tools(
    publish: Publisher,
    *,
    language: Language = "en",
    on_close_session: Callable[[], Awaitable[Any]] | None = None,
) -> ToolRegistry:
    """Tools that forward UI actions to connected clients.

    ``close_session`` additionally runs ``on_close_session`` so the session can
    be stopped without any global hook.
    """
    descriptions = DESCRIPTIONS.get(language, DESCRIPTIONS["en"])

    def forward(name: str) -> Callable[[dict[str, Any]], Awaitable[dict[str, Any]]]:
        async def execute(args: dict[str, Any]) -> dict[str, Any]:
            await publish("action", {"name": name, "args": args})
            if name == "close_session" and on_close_session is not None:
                await on_close_session()
            return {"status": "ok", "action": name}

        return execute

    return ToolRegistry(
        Tool(
            name=name,
            description=descriptions[name],
            execute=forward(name),
            args_model=args_model,
        )
        for name, args_model in _ARGS.items()
    )


__all__ = ["build_ui_action_tools", "ColorArgs", "SidebarArgs", "EmptyArgs", "DESCRIPTIONS"]
