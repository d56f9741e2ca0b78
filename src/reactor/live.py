"""Periodic inventory refresh on a background thread."""

from __future__ import annotations

import threading
from collections.abc import Callable
from typing import TYPE_CHECKING

import structlog

from reactor.models import ProcessRecord

if TYPE_CHECKING:
    from reactor.manager import ProcessManager

log = structlog.get_logger()


class LiveUpdater:
    """Refresh the manager's snapshot every interval seconds while running.

    Runs in a daemon thread. on_update receives each snapshot; if it raises,
    the error is logged and the loop keeps going.
    """

    def __init__(
        self,
        manager: ProcessManager,
        interval: float,
        on_update: Callable[[tuple[ProcessRecord, ...]], None],
    ) -> None:
        self.manager = manager
        self._interval = max(0.1, interval)
        self._on_update = on_update
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def interval(self) -> float:
        return self._interval

    @interval.setter
    def interval(self, value: float) -> None:
        self._interval = max(0.1, value)

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        """Start (or restart) the refresh loop."""
        if self.is_running:
            self.stop()

        self._stop_event = threading.Event()
        self._thread = threading.Thread(
            target=self._poll_loop,
            args=(self._stop_event,),
            daemon=True,
            name="reactor-live",
        )
        self._thread.start()

    def stop(self, timeout: float = 2.0) -> None:
        """Stop the loop and wait briefly for the thread to exit."""
        self._stop_event.set()
        if self._thread is not None and self._thread is not threading.current_thread():
            self._thread.join(timeout=timeout)
        self._thread = None

    def _poll_loop(self, stop_event: threading.Event) -> None:
        while not stop_event.is_set():
            self.tick()
            stop_event.wait(self._interval)

    def tick(self) -> None:
        """One refresh: fetch (possibly cached) snapshot and notify."""
        try:
            snapshot = self.manager.get_all()
        except Exception:
            log.exception("live_refresh_failed")
            return
        try:
            self._on_update(snapshot)
        except Exception:
            log.exception("live_update_callback_failed")
