"""Cooperative cancellation for the batch driver."""

import asyncio


class CancellationToken:
    """Flag observed by the batch driver at its yield points.

    Setting it never interrupts work already in progress; the driver simply
    stops starting new work once it sees the flag.
    """

    def __init__(self) -> None:
        self._event = asyncio.Event()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        self._event.set()

    def reset(self) -> None:
        self._event.clear()
