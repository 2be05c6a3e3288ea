"""Cooperative cancellation flag shared between tasks."""
from __future__ import annotations
import threading


class CancelToken:
    """
    One-shot cancellation signal.

    ``cancel()`` may be called from any thread, any number of times. Workers
    poll ``cancelled`` at frame or window boundaries.
    """

    def __init__(self):
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def wait(self, timeout: float | None = None) -> bool:
        return self._event.wait(timeout)


def is_cancelled(token: CancelToken | None) -> bool:
    """True when a token is given and has been cancelled."""
    return token is not None and token.cancelled
