"""In-process periodic sweep of the temporary cache."""

import logging
import threading

from .service import RetentionSweeper

logger = logging.getLogger(__name__)


class PeriodicSweeper:
    """
    Background thread that sweeps expired cache entries on a fixed period.

    Runs one sweep immediately on start, then every interval until stop() is
    called at process shutdown.
    """

    def __init__(self, sweeper: RetentionSweeper, interval_minutes: float = 60):
        self.sweeper = sweeper
        self.interval_seconds = max(1.0, float(interval_minutes) * 60.0)
        self._stop = threading.Event()
        self._thread = threading.Thread(target=self._loop, name="cache-sweeper", daemon=True)

    def start(self) -> None:
        if self._thread.is_alive():
            return
        self._stop.clear()
        self._thread.start()
        logger.info(f"Periodic cache sweeper started, interval {self.interval_seconds:.0f}s")

    def stop(self) -> None:
        self._stop.set()
        if self._thread.is_alive():
            self._thread.join(timeout=5.0)

    @property
    def running(self) -> bool:
        return self._thread.is_alive()

    def _loop(self) -> None:
        while True:
            try:
                self.sweeper.sweep("periodic")
            except Exception as e:  # noqa: BLE001
                logger.warning(f"Periodic cache sweep error: {e}")
            if self._stop.wait(self.interval_seconds):
                break
