"""Cooperative cancellation for blocking poll loops."""

from __future__ import annotations

import threading
import time


class CancelToken:
    """
    Cancellation flag shared between a poll loop and whoever may abort it.

    Usage:
        token = CancelToken()
        worker = threading.Thread(
            target=client.fetch_when_available,
            args=("balances", "account.id", "0.0.1001"),
            kwargs={"cancel": token},
        )
        worker.start()

        # Suite-level timeout hit
        token.cancel()
    """

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def wait(self, seconds: float) -> bool:
        """Sleep up to ``seconds``; returns True if woken by cancellation."""
        return self._event.wait(seconds)


def interruptible_sleep(seconds: float, cancel: CancelToken | None = None) -> None:
    """Sleep that returns early when ``cancel`` fires."""
    if cancel is None:
        time.sleep(seconds)
    else:
        cancel.wait(seconds)
