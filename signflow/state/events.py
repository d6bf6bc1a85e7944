"""Typed domain events and the in-process bus that dispatches them."""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

import structlog

logger = structlog.get_logger(__name__)


@dataclass(frozen=True, slots=True)
class PageChanged:
    page: int


@dataclass(frozen=True, slots=True)
class ScaleChanged:
    scale: float


@dataclass(frozen=True, slots=True)
class FieldAdded:
    handle: str


@dataclass(frozen=True, slots=True)
class FieldUpdated:
    handle: str


@dataclass(frozen=True, slots=True)
class FieldConfirmed:
    handle: str
    server_id: int | str


@dataclass(frozen=True, slots=True)
class FieldRemoved:
    handle: str


@dataclass(frozen=True, slots=True)
class ViewsChanged:
    page: int


Event = (
    PageChanged | ScaleChanged | FieldAdded | FieldUpdated | FieldConfirmed | FieldRemoved | ViewsChanged
)
Handler = Callable[[Any], Any]


class EventBus:
    def __init__(self) -> None:
        self._handlers: dict[type, list[Handler]] = defaultdict(list)

    def subscribe(self, event_type: type, handler: Handler) -> Callable[[], None]:
        self._handlers[event_type].append(handler)

        def unsubscribe() -> None:
            if handler in self._handlers[event_type]:
                self._handlers[event_type].remove(handler)

        return unsubscribe

    def publish(self, event: Event) -> list[Any]:
        """Call every handler for ``event`` in subscription order and collect results.

        A failing handler is logged and does not stop the others.
        """
        results: list[Any] = []
        for handler in list(self._handlers.get(type(event), [])):
            try:
                results.append(handler(event))
            except Exception:
                logger.exception("event_bus.handler_failed", event=type(event).__name__)
        return results
