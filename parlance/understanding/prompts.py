from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from parlance.orchestrator.events import Language
from parlance.tools.registry import ToolRegistry

TOOLS_SLOT = "{tools}"

DEFAULT_SYSTEM_PROMPTS: dict[str, str] = {
    "en": (
        "You are an assistant that detects user commands and returns tool calls in JSON.\n"
        "Respond ONLY with valid JSON.\n\n"
        "Available tools:\n"
        f"{TOOLS_SLOT}\n\n"
        "If you are not certain which tool to call, or the instruction does not clearly match any tool, "
        'do not call a tool: set "tool" to null.\n\n'
        "Always return JSON in this format:\n"
        '{"tool": "tool_name" | null, "args": {"param": "value"}, "response": "Your conversational response"}'
    ),
    "pt": (
        "Você é um assistente que detecta comandos do usuário e retorna chamadas de ferramentas em JSON.\n"
        "Responda APENAS com JSON válido.\n\n"
        "Ferramentas disponíveis:\n"
        f"{TOOLS_SLOT}\n\n"
        "Se você não tiver certeza sobre qual ferramenta chamar, ou se a instrução não corresponder claramente "
        'a nenhuma ferramenta, não chame ferramentas: defina "tool" como null.\n\n'
        "Sempre retorne JSON neste formato:\n"
        '{"tool": "nome_da_ferramenta" | null, "args": {"param": "valor"}, "response": "Sua resposta conversacional"}'
    ),
}

_NO_TOOLS: dict[str, str] = {"en": "(none)", "pt": "(nenhuma)"}


def render_tool_catalog(tools: ToolRegistry, language: Language = "en") -> str:
    if not tools:
        return _NO_TOOLS.get(language, _NO_TOOLS["en"])
    lines: list[str] = []
    for index, tool in enumerate(tools.values(), start=1):
        schema: Mapping[str, Any] | None = tool.schema()
        params = ", ".join(schema.keys()) if schema else ""
        lines.append(f"{index}. {tool.name}({params}) - {tool.description}")
    return "\n".join(lines)


def build_system_prompt(language: Language, tools: ToolRegistry, override: str | None = None) -> str:
    """Render the system prompt for ``language``.

    An override may carry the ``{tools}`` slot; without it the override is used verbatim.
    """
    template = override or DEFAULT_SYSTEM_PROMPTS.get(language, DEFAULT_SYSTEM_PROMPTS["en"])
    if TOOLS_SLOT not in template:
        return template
    return template.replace(TOOLS_SLOT, render_tool_catalog(tools, language))


__all__ = ["DEFAULT_SYSTEM_PROMPTS", "TOOLS_SLOT", "build_system_prompt", "render_tool_catalog"]
