from __future__ import annotations

import pytest
from opentelemetry.sdk.trace.export.in_memory_span_exporter import InMemorySpanExporter

from parlance.orchestrator.controller import ControllerConfig, VoiceController
from parlance.telemetry.tracing import build_tracer_provider, get_tracer, shutdown_tracing
from parlance.tools.registry import Tool
from parlance.understanding.result_schema import ToolCallResult


@pytest.fixture
def exporter() -> InMemorySpanExporter:
    return InMemorySpanExporter()


@pytest.fixture
def controller(capture, understanding, exporter) -> VoiceController:
    provider = build_tracer_provider("parlance-test", exporter, batch=False)
    tools = [Tool("set_bg_color", "Changes the background color.", lambda _args: None)]
    config = ControllerConfig(speech_capture=capture, understanding=understanding, tools=tools, language="pt")
    return VoiceController(config, tracer=get_tracer("tests", provider))


@pytest.mark.anyio
async def test_each_cycle_is_one_span(controller, understanding, exporter) -> None:
    await understanding.init()
    understanding.outcomes = [
        ToolCallResult(tool="set_bg_color", args={"color": "#FF0000"}, response="ok"),
        ToolCallResult(tool="unknown_tool", args=None, response="?"),
        RuntimeError("inference crashed"),
    ]

    for text in ("mude para vermelho", "faça mágica", "de novo"):
        await controller.resolve(text)

    spans = exporter.get_finished_spans()
    assert [span.name for span in spans] == ["voice.resolve"] * 3
    assert [span.attributes["voice.outcome"] for span in spans] == ["invoked", "unknown_tool", "failed"]
    assert spans[0].attributes["voice.tool"] == "set_bg_color"
    assert spans[0].attributes["voice.language"] == "pt"
    assert spans[0].attributes["voice.provider"] == understanding.name
    assert [event.name for event in spans[2].events] == ["exception"]
    assert spans[0].resource.attributes["service.name"] == "parlance-test"


def test_shutdown_without_configuration_is_noop() -> None:
    shutdown_tracing()
