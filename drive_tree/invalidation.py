"""
Invalidation bus.

Process-wide publish/subscribe channel for "the listing at this path may have
changed". Mutations publish after the server acknowledged them; the tree cache,
the expansion controller and the listing view subscribe.

Delivery is synchronous, in subscription order, to the handlers registered at
publish time. Handlers that need I/O schedule it themselves (nursery) instead of
blocking the publisher.
"""

import logging
from typing import Callable

from .models import InvalidationEvent
from .paths import NamespacePath, PathLike, as_path

log = logging.getLogger(__name__)

Handler = Callable[[InvalidationEvent], None]


class InvalidationBus:
    """Synchronous fan-out of InvalidationEvents."""

    def __init__(self):
        self._handlers: list[Handler] = []
        self.published = 0  # Events published so far (diagnostics)

    def subscribe(self, handler: Handler) -> Handler:
        """Register handler; returns it so it can be used as a decorator."""
        if handler not in self._handlers:
            self._handlers.append(handler)
        return handler

    def unsubscribe(self, handler: Handler) -> None:
        try:
            self._handlers.remove(handler)
        except ValueError:
            pass

    @property
    def subscriber_count(self) -> int:
        return len(self._handlers)

    def publish(self, event: InvalidationEvent) -> None:
        """Deliver event to every handler registered right now."""
        self.published += 1
        scope = "all" if event.is_global else str(event.scope)
        log.debug(f"Invalidation: {scope} -> {len(self._handlers)} subscriber(s)")
        for handler in list(self._handlers):
            try:
                handler(event)
            except Exception:
                # Remaining handlers still receive the event
                log.exception(f"Invalidation handler {handler!r} failed for {scope}")

    def publish_path(self, path: PathLike) -> None:
        self.publish(InvalidationEvent(scope=as_path(path)))

    def publish_all(self) -> None:
        self.publish(InvalidationEvent.everything())


def parent_scope(path: NamespacePath) -> NamespacePath:
    """Scope to publish when the entry at path was created, renamed or deleted."""
    return path.parent
