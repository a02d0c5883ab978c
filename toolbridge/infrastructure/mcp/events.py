"""
Change notifications for the registry and the catalog.
"""

import inspect
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

from toolbridge.domain.model.mcp.catalog import CatalogSnapshot
from toolbridge.domain.model.mcp.server import ServerDescriptor

logger = logging.getLogger(__name__)

EventT = TypeVar("EventT")
Listener = Callable[[EventT], Awaitable[None] | None]


@dataclass(frozen=True)
class RegistryChanged:
    """Fired after the registry's descriptor set was reloaded or mutated."""

    servers: tuple[ServerDescriptor, ...]
    reason: str

    @property
    def server_ids(self) -> list[str]:
        return [s.id for s in self.servers]


@dataclass(frozen=True)
class CatalogChanged:
    """Fired after a new catalog snapshot was installed."""

    snapshot: CatalogSnapshot


class EventEmitter(Generic[EventT]):
    """
    Minimal async event emitter.

    Listeners may be plain callables or coroutine functions and run in
    subscription order. A failing listener is logged and skipped.
    """

    def __init__(self, name: str) -> None:
        self._name = name
        self._listeners: list[Listener[Any]] = []

    def subscribe(self, listener: Listener[EventT]) -> Callable[[], None]:
        """Register a listener; returns a callable that unsubscribes it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    async def emit(self, event: EventT) -> None:
        for listener in list(self._listeners):
            try:
                result = listener(event)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                logger.error(f"{self._name} listener {listener!r} failed: {e}", exc_info=True)
