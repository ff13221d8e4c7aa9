from __future__ import annotations

from structlog.testing import capture_logs

from parlance.orchestrator.listeners import ListenerRegistry


def test_listeners_called_in_registration_order() -> None:
    registry: ListenerRegistry = ListenerRegistry("test")
    seen: list[str] = []
    registry.add(lambda value: seen.append(f"a:{value}"))
    registry.add(lambda value: seen.append(f"b:{value}"))

    registry.emit(1)

    assert seen == ["a:1", "b:1"]


def test_unsubscribe_removes_only_its_registration() -> None:
    registry: ListenerRegistry = ListenerRegistry("test")
    seen: list[int] = []
    listener = seen.append
    first = registry.add(listener)
    registry.add(listener)

    first()
    registry.emit(7)
    first()

    assert seen == [7]
    assert len(registry) == 1


def test_listener_may_unsubscribe_during_emit() -> None:
    registry: ListenerRegistry = ListenerRegistry("test")
    seen: list[str] = []
    handles: list = []

    def once(value: str) -> None:
        seen.append(value)
        handles[0]()

    handles.append(registry.add(once))
    registry.emit("x")
    registry.emit("y")

    assert seen == ["x"]


def test_isolated_errors_are_logged_and_delivery_continues() -> None:
    registry: ListenerRegistry = ListenerRegistry("test", isolate_errors=True)
    seen: list[str] = []

    def broken(_value: str) -> None:
        raise ValueError("bad listener")

    registry.add(broken)
    registry.add(seen.append)

    with capture_logs() as logs:
        registry.emit("event")

    assert seen == ["event"]
    assert [entry["event"] for entry in logs] == ["listeners.callback.failed"]
    assert logs[0]["channel"] == "test"
