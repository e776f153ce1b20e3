"""EventBus for decoupled publish/subscribe communication."""

from enum import Enum, auto
from typing import Any, Callable
from collections import defaultdict


class EventType(Enum):
    # Problem lifecycle
    PASS_STARTED = auto()         # data: terms (int), nodes (int)
    PASS_COMPLETE = auto()        # data: summary (SolveSummary)

    # Residual evaluation
    TERM_SKIPPED = auto()         # data: term_index (int), kind (str)
    ITERATION_COMPLETE = auto()   # data: iteration (int), cost (float), evaluated (int), skipped (int)


class EventBus:
    """Simple publish/subscribe event system."""

    def __init__(self):
        self._handlers: dict[EventType, list[Callable]] = defaultdict(list)

    def subscribe(self, event_type: EventType, handler: Callable) -> None:
        self._handlers[event_type].append(handler)

    def unsubscribe(self, event_type: EventType, handler: Callable) -> None:
        handlers = self._handlers[event_type]
        if handler in handlers:
            handlers.remove(handler)

    def has_subscribers(self, event_type: EventType) -> bool:
        """Lets publishers skip building payloads nobody listens to."""
        return bool(self._handlers.get(event_type))

    def publish(self, event_type: EventType, **data: Any) -> None:
        # Copy: a handler may unsubscribe itself while being called.
        for handler in list(self._handlers.get(event_type, ())):
            handler(**data)

    def clear(self) -> None:
        self._handlers.clear()
