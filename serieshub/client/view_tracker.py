"""
View-count heuristic driven by the embedded player.

One view is counted when the series page opens, then one more every
``interval`` seconds while the player reports that it is playing. There is
no dedup or cap; failed increments are logged and skipped.
"""
from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Optional

from serieshub.core.config import get_settings

logger = logging.getLogger(__name__)
settings = get_settings()


@dataclass
class WatchSummary:
    duration_seconds: int
    views_added: int

    @property
    def label(self) -> str:
        return f"{self.duration_seconds // 60}m {self.duration_seconds % 60}s"


class ViewTracker:
    """Implements the player listener surface (on_play / on_pause / on_ended)."""

    def __init__(
        self,
        increment: Callable[[], Any],
        interval: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._increment = increment
        self.interval = interval or settings.view_interval_seconds
        self._clock = clock
        self._lock = threading.Lock()
        self._stop: Optional[threading.Event] = None
        self._thread: Optional[threading.Thread] = None
        self.views_added = 0
        self.watch_started: Optional[float] = None
        self.last_summary: Optional[WatchSummary] = None

    @classmethod
    def for_series(cls, client, series_id, interval: Optional[float] = None) -> "ViewTracker":
        return cls(lambda: client.increment_view(series_id), interval=interval)

    @property
    def is_watching(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def _count_view(self) -> bool:
        try:
            self._increment()
        except Exception as e:
            logger.warning(f"Failed to increment view: {e}")
            return False
        with self._lock:
            self.views_added += 1
        return True

    def start(self) -> bool:
        """Count the page-load view."""
        return self._count_view()

    def _run(self, stop: threading.Event):
        while not stop.wait(self.interval):
            self._count_view()

    def _stop_timer(self):
        with self._lock:
            stop, thread = self._stop, self._thread
            self._stop = self._thread = None
        if stop is not None:
            stop.set()
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=self.interval + 1)

    # ── Player listener ──────────────────────────────────────────────────

    def on_play(self):
        with self._lock:
            if self.is_watching:
                return
            self.watch_started = self._clock()
            self._stop = threading.Event()
            self._thread = threading.Thread(target=self._run, args=(self._stop,), daemon=True)
            self._thread.start()

    def on_pause(self):
        self._stop_timer()

    def on_ended(self) -> Optional[WatchSummary]:
        self._stop_timer()
        if self.watch_started is None:
            return None
        duration = int(self._clock() - self.watch_started)
        self.last_summary = WatchSummary(duration_seconds=duration, views_added=self.views_added)
        return self.last_summary

    # ── Session ──────────────────────────────────────────────────────────

    def reset(self):
        """The current video changed: stop counting and start a new session."""
        self._stop_timer()
        self.watch_started = None
        with self._lock:
            self.views_added = 1

    def close(self):
        self._stop_timer()
