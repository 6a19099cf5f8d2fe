"""
Synchronous event notifications for committed mutations.

Payloads are hints to re-read derived values, never authoritative deltas.
"""
from collections import defaultdict
from typing import Any, Callable, Dict, List

TRADE_ADDED = "trade_added"
TRADE_UPDATED = "trade_updated"
TRADE_DELETED = "trade_deleted"
ACCOUNT_SIZE_CHANGED = "account_size_changed"
CASH_FLOW_CHANGED = "cash_flow_changed"
SETTINGS_CHANGED = "settings_changed"

Listener = Callable[[Any], None]


class EventBus:
    def __init__(self):
        self._listeners: Dict[str, List[Listener]] = defaultdict(list)

    def on(self, event: str, callback: Listener) -> Callable[[], None]:
        """Subscribe; returns a function that unsubscribes."""
        self._listeners[event].append(callback)
        return lambda: self.off(event, callback)

    def off(self, event: str, callback: Listener) -> None:
        callbacks = self._listeners.get(event, [])
        if callback in callbacks:
            callbacks.remove(callback)

    def emit(self, event: str, data: Any = None) -> None:
        for callback in list(self._listeners.get(event, [])):
            callback(data)
