"""In-process realtime change notifications for the row store."""

import logging
from collections import defaultdict
from enum import Enum
from typing import Any, Callable

logger = logging.getLogger("swimr.db.notifier")

ChangeCallback = Callable[[dict[str, Any]], None]


class ChangeEvent(str, Enum):
    """Row-level change events."""

    INSERT = "INSERT"
    UPDATE = "UPDATE"


class Subscription:
    """Handle returned by ChangeNotifier.subscribe."""

    def __init__(
        self,
        notifier: "ChangeNotifier",
        key: tuple[str, str, ChangeEvent],
        callback: ChangeCallback,
    ):
        self._notifier = notifier
        self._key = key
        self._callback = callback
        self._active = True

    @property
    def active(self) -> bool:
        return self._active

    def unsubscribe(self) -> None:
        """Stop receiving events. Safe to call more than once."""
        if not self._active:
            return
        self._active = False
        self._notifier._remove(self._key, self._callback)


class ChangeNotifier:
    """Delivers post-change rows to subscribers keyed by table, row id and event."""

    def __init__(self) -> None:
        self._channels: dict[tuple[str, str, ChangeEvent], list[ChangeCallback]] = defaultdict(list)

    def subscribe(
        self,
        table: str,
        row_id: str,
        callback: ChangeCallback,
        event: ChangeEvent = ChangeEvent.UPDATE,
    ) -> Subscription:
        """Register a callback for changes to one row.

        Args:
            table: Table name.
            row_id: Row identifier.
            callback: Called with the post-change row.
            event: Event type to listen for.

        Returns:
            Subscription handle.
        """
        key = (table, row_id, ChangeEvent(event))
        self._channels[key].append(callback)
        return Subscription(self, key, callback)

    def publish(self, table: str, event: ChangeEvent, row: dict[str, Any]) -> None:
        """Deliver a changed row to every matching subscriber."""
        key = (table, str(row.get("id")), ChangeEvent(event))
        for callback in list(self._channels.get(key, [])):
            try:
                callback(dict(row))
            except Exception:
                logger.exception(f"Change subscriber for {table}/{key[1]} raised")

    def subscriber_count(self, table: str, row_id: str, event: ChangeEvent = ChangeEvent.UPDATE) -> int:
        return len(self._channels.get((table, row_id, ChangeEvent(event)), []))

    def _remove(self, key: tuple[str, str, ChangeEvent], callback: ChangeCallback) -> None:
        callbacks = self._channels.get(key)
        if not callbacks:
            return
        if callback in callbacks:
            callbacks.remove(callback)
        if not callbacks:
            del self._channels[key]
