from collections import defaultdict
import logging
from typing import Callable, DefaultDict, List, Optional, Type

Handler = Callable[[object], None]

logger = logging.getLogger(__name__)


class EventBus:
    """Synchronous publish/subscribe keyed by event class.

    Handlers run in ascending priority, then subscription order. A failing
    handler is logged and isolated so the remaining handlers still run.
    """

    def __init__(self) -> None:
        self._subscribers: DefaultDict[Optional[Type[object]], List[tuple[int, int, Handler]]] = defaultdict(list)
        self._next_order = 0
        self._last_publish_errors: List[Exception] = []

    def subscribe(self, event_type: Type[object], handler: Handler, *, priority: int = 100) -> None:
        self._add(event_type, handler, priority)

    def subscribe_all(self, handler: Handler, *, priority: int = 100) -> None:
        self._add(None, handler, priority)

    def unsubscribe(self, event_type: Optional[Type[object]], handler: Handler) -> bool:
        rows = self._subscribers.get(event_type, [])
        kept = [row for row in rows if row[2] is not handler]
        self._subscribers[event_type] = kept
        return len(kept) != len(rows)

    def _add(self, event_type: Optional[Type[object]], handler: Handler, priority: int) -> None:
        self._subscribers[event_type].append((int(priority), self._next_order, handler))
        self._next_order += 1
        self._subscribers[event_type].sort(key=lambda row: (row[0], row[1]))

    def publish(self, event: object) -> None:
        self._last_publish_errors = []
        event_type = type(event)
        handlers = sorted(
            self._subscribers.get(event_type, []) + self._subscribers.get(None, []),
            key=lambda row: (row[0], row[1]),
        )
        for priority, _, handler in handlers:
            try:
                handler(event)
            except Exception as exc:
                self._last_publish_errors.append(exc)
                handler_name = getattr(handler, "__qualname__", getattr(handler, "__name__", repr(handler)))
                logger.exception(
                    "Event handler failed and was isolated",
                    extra={
                        "event_type": event_type.__name__,
                        "handler": handler_name,
                        "priority": priority,
                    },
                )

    def last_publish_errors(self) -> List[Exception]:
        return list(self._last_publish_errors)
