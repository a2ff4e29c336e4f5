"""Cooperative cancellation shared between a caller and a worker."""

import threading

from ymmp_relink.errors import RelinkCancelled


class CancelToken:
    """A one-shot cancellation flag, safe to set from any thread."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise RelinkCancelled
