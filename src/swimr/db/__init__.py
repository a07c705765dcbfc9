"""Persistent row store and realtime change notifications."""

from swimr.db.notifier import ChangeEvent, ChangeNotifier, Subscription
from swimr.db.store import TABLES, RowStore

__all__ = [
    "ChangeEvent",
    "ChangeNotifier",
    "RowStore",
    "Subscription",
    "TABLES",
]
