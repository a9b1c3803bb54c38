"""
Periodic polling.

Runs a task on a fixed interval in a background thread until stopped.
Used by live views (ranking watch) that refresh on a timer.
"""

import logging
import threading
from typing import Callable, Optional

logger = logging.getLogger(__name__)


class PeriodicPoller:
    """Call `task` now and then every `interval` seconds until stop()."""

    def __init__(self, interval: float, task: Callable[[], None], name: str = "poller"):
        if interval <= 0:
            raise ValueError("interval must be > 0")
        self.interval = interval
        self.task = task
        self.name = name
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def running(self) -> bool:
        return (
            self._thread is not None
            and self._thread.is_alive()
            and not self._stop.is_set()
        )

    def start(self) -> "PeriodicPoller":
        if self.running:
            return self
        # Each run owns its event, so a loop outliving stop(timeout) cannot be revived
        self._stop = threading.Event()
        self._thread = threading.Thread(target=self._run, args=(self._stop,), name=self.name, daemon=True)
        self._thread.start()
        return self

    def stop(self, timeout: Optional[float] = None) -> None:
        """Cancel the poll loop and wait for the current run to finish."""
        self._stop.set()
        if self._thread is not None and self._thread is not threading.current_thread():
            self._thread.join(timeout)
        self._thread = None

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until stopped; True if the poller was stopped."""
        return self._stop.wait(timeout)

    def _run(self, stop: threading.Event) -> None:
        while not stop.is_set():
            try:
                self.task()
            except Exception:
                logger.exception("Poll task %s failed", self.name)
            # Event.wait returns early on stop()
            stop.wait(self.interval)

    def __enter__(self) -> "PeriodicPoller":
        return self.start()

    def __exit__(self, exc_type, exc, tb) -> None:
        self.stop()
