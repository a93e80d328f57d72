from __future__ import annotations

from datetime import timedelta
import threading
import time
from typing import Any, Callable, Dict, Optional

from .logs import get_logger

logger = get_logger(__name__)


class Statistics:
    def __init__(self, clock: Callable[[], float] = time.time) -> None:
        self._clock = clock
        self._lock = threading.Lock()
        self._since = clock()
        self._requests = 0
        self._latency_ms = 0
        self._statuses: Dict[int, int] = {}

    def record(self, status: int, latency_ms: int) -> None:
        with self._lock:
            self._requests += 1
            self._latency_ms += latency_ms
            self._statuses[status] = self._statuses.get(status, 0) + 1

    def flush(self) -> Dict[str, Any]:
        """Return the counters accumulated since the last flush and reset them."""
        now = self._clock()
        with self._lock:
            requests = self._requests
            snapshot = {
                "since": int(self._since),
                "until": int(now),
                "requests": requests,
                "statuses": {str(code): count for code, count in sorted(self._statuses.items())},
                "avg_latency_ms": round(self._latency_ms / requests, 3) if requests else 0.0,
            }
            self._since = now
            self._requests = 0
            self._latency_ms = 0
            self._statuses = {}
        return snapshot


class StatisticsReporter:
    def __init__(self, statistics: Statistics, interval: timedelta) -> None:
        self._statistics = statistics
        self._interval = interval.total_seconds()
        self._stop = threading.Event()
        self._lock = threading.Lock()
        self._thread: Optional[threading.Thread] = None
        self._last: Dict[str, Any] = {}

    @property
    def last(self) -> Dict[str, Any]:
        with self._lock:
            return dict(self._last)

    def start(self) -> None:
        if self._thread is not None:
            return
        self._thread = threading.Thread(target=self._loop, name="statistics-reporter", daemon=True)
        self._thread.start()

    def _loop(self) -> None:
        while not self._stop.wait(self._interval):
            self.report()

    def report(self) -> Dict[str, Any]:
        snapshot = self._statistics.flush()
        with self._lock:
            self._last = snapshot
        logger.info("statistics", **snapshot)
        return snapshot

    def stop(self) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout=5)
