"""Wall-clock cadence that drives a simulation.

The Ticker calls a callback every ``interval_s`` seconds on a daemon thread
until stopped. It carries no simulation state: a simulation that changes
speed stops its current Ticker and starts a new one, the same way an
interval timer is cleared and re-armed.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable

logger = logging.getLogger(__name__)


class Ticker:
    """Invokes a callback on a fixed wall-clock interval.

    Args:
        interval_s: Seconds between invocations. Must be positive.
        callback: Function called once per interval.
        name: Thread name, for debugging.
        on_error: Called with this Ticker when the callback raises, after
            the Ticker has stopped.
    """

    def __init__(
        self,
        interval_s: float,
        callback: Callable[[], object],
        name: str = "ticker",
        on_error: Callable[[Ticker], object] | None = None,
    ):
        if interval_s <= 0:
            raise ValueError(f"interval_s must be positive, got {interval_s}")
        self._interval_s = interval_s
        self._callback = callback
        self._on_error = on_error
        self._stop_event = threading.Event()
        self._thread = threading.Thread(target=self._run, name=name, daemon=True)

    @property
    def interval_s(self) -> float:
        return self._interval_s

    @property
    def is_alive(self) -> bool:
        return self._thread.is_alive() and not self._stop_event.is_set()

    def start(self) -> None:
        self._thread.start()
        logger.debug("[%s] Ticker started: interval=%.3fs", self._thread.name, self._interval_s)

    def stop(self, timeout: float | None = 1.0) -> None:
        """Stop invoking the callback.

        Blocks until the thread exits unless called from the ticker thread
        itself. A callback already in progress runs to completion.
        """
        self._stop_event.set()
        if self._thread.is_alive() and threading.current_thread() is not self._thread:
            self._thread.join(timeout)
        logger.debug("[%s] Ticker stopped", self._thread.name)

    def _run(self) -> None:
        while not self._stop_event.wait(self._interval_s):
            try:
                self._callback()
            except Exception:
                logger.exception("[%s] Tick callback failed; stopping", self._thread.name)
                self._stop_event.set()
                if self._on_error is not None:
                    self._on_error(self)
                raise
