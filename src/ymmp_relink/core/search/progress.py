"""Throttle progress reporting for interactive displays."""

import time
from collections.abc import Callable

from ymmp_relink.config import PROGRESS_INTERVAL_SECONDS
from ymmp_relink.models.reference import SearchProgress
from ymmp_relink.protocols import ProgressCallback


class ThrottledProgress:
    """Forward progress at most once per interval. The terminal event always passes."""

    def __init__(
        self,
        sink: ProgressCallback,
        *,
        interval: float = PROGRESS_INTERVAL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._sink = sink
        self._interval = interval
        self._clock = clock
        self._last: float | None = None

    def __call__(self, progress: SearchProgress) -> None:
        now = self._clock()
        if (
            not progress.is_terminal
            and self._last is not None
            and now - self._last < self._interval
        ):
            return
        self._last = now
        self._sink(progress)
