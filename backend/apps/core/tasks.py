"""
Periodic in-process maintenance tasks.

A ``PeriodicTask`` runs a callable on a daemon thread at a fixed interval.
Nothing starts on import: the owner (the runtime container, started from
``config/wsgi.py``) calls ``start()`` and ``stop()`` explicitly, and tests
call ``run_once()`` directly.
"""

import threading
from collections.abc import Callable
from typing import Any

from apps.core.logging import get_logger

logger = get_logger(__name__)


class PeriodicTask:
    """Run ``func`` every ``interval_seconds`` until stopped."""

    def __init__(self, name: str, interval_seconds: float, func: Callable[[], Any]) -> None:
        self.name = name
        self.interval_seconds = interval_seconds
        self.func = func
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def run_once(self) -> Any:
        """
        Execute the task a single time.

        Failures are logged and swallowed: a maintenance pass that fails is
        retried on the next tick instead of killing the worker thread.
        """
        try:
            result = self.func()
        except Exception:
            logger.exception("periodic_task_failed", task=self.name)
            return None
        logger.debug("periodic_task_completed", task=self.name, result=result)
        return result

    def start(self) -> None:
        """Start the background thread. No-op if already running."""
        if self.is_running:
            return
        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._loop,
            name=f"periodic-{self.name}",
            daemon=True,
        )
        self._thread.start()
        logger.info("periodic_task_started", task=self.name, interval=self.interval_seconds)

    def stop(self, timeout: float | None = 5.0) -> None:
        """Signal the thread to exit and wait for it."""
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout=timeout)
            self._thread = None
            logger.info("periodic_task_stopped", task=self.name)

    def _loop(self) -> None:
        while not self._stop_event.wait(self.interval_seconds):
            self.run_once()
