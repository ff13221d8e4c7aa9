from __future__ import annotations

from collections.abc import Callable
from typing import Any, Generic, TypeVar

from parlance.telemetry.logging import get_logger

ListenerT = TypeVar("ListenerT", bound=Callable[..., Any])


class ListenerRegistry(Generic[ListenerT]):
    """Ordered fan-out list of callbacks.

    Listeners are called synchronously in registration order. Registering
    returns a handle that removes exactly that registration; past events are
    never replayed to late subscribers.
    """

    def __init__(self, channel: str, *, isolate_errors: bool = False) -> None:
        self._channel = channel
        self._isolate_errors = isolate_errors
        self._entries: list[tuple[int, ListenerT]] = []
        self._next_id = 0
        self._logger = get_logger(__name__)

    def add(self, listener: ListenerT) -> Callable[[], None]:
        token = self._next_id
        self._next_id += 1
        self._entries.append((token, listener))

        def unsubscribe() -> None:
            self._entries = [entry for entry in self._entries if entry[0] != token]

        return unsubscribe

    def emit(self, *args: Any) -> None:
        # Snapshot so listeners may unsubscribe while being notified.
        for _, listener in list(self._entries):
            if not self._isolate_errors:
                listener(*args)
                continue
            try:
                listener(*args)
            except Exception as exc:
                self._logger.error("listeners.callback.failed", channel=self._channel, error=str(exc), exc_info=True)

    def clear(self) -> None:
        self._entries = []

    def __len__(self) -> int:
        return len(self._entries)


__all__ = ["ListenerRegistry"]
