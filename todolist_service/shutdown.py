"""Process exit on SIGINT/SIGTERM while the main thread is blocked serving.

The signal handler only queues the signal; a daemon listener thread picks it
up and ends the process right away with status 0. In-flight requests are not
drained.
"""

from __future__ import annotations

import os
import queue
import signal
import threading
from typing import Any, Callable, Optional, Tuple

from .logs import get_logger

logger = get_logger(__name__)

SIGNALS: Tuple[signal.Signals, ...] = (signal.SIGINT, signal.SIGTERM)


class ShutdownCoordinator:
    def __init__(self, exit_func: Callable[[int], Any] = os._exit) -> None:
        self._exit = exit_func
        self._signals: "queue.Queue[int]" = queue.Queue(maxsize=1)
        self._installed = False
        self._thread: Optional[threading.Thread] = None

    @property
    def installed(self) -> bool:
        return self._installed

    def install(self) -> None:
        if self._installed:
            raise RuntimeError("shutdown coordinator is already installed")
        self._installed = True
        self._thread = threading.Thread(target=self._listen, name="shutdown-listener", daemon=True)
        self._thread.start()
        for sig in SIGNALS:
            signal.signal(sig, self._on_signal)

    def _on_signal(self, signum: int, _frame: object) -> None:
        try:
            self._signals.put_nowait(signum)
        except queue.Full:
            # a shutdown is already pending
            pass

    def _listen(self) -> None:
        signum = self._signals.get()
        logger.info("shutdown_requested", signal=signal.Signals(signum).name)
        self._exit(0)


def install_exit_handler() -> ShutdownCoordinator:
    coordinator = ShutdownCoordinator()
    coordinator.install()
    return coordinator
