import logging
import threading
from typing import Callable, Optional

from bts_inventory.services.sync_manager import SyncManager, SyncReport

logger = logging.getLogger("SyncScheduler")


class SyncScheduler:
    """
    Runs sync cycles in a background daemon thread: every ``interval_seconds``
    and whenever ``trigger()`` is called (user action, connectivity back).
    """

    def __init__(
        self,
        manager: SyncManager,
        interval_seconds: float = 60.0,
        on_report: Optional[Callable[[SyncReport], None]] = None,
    ):
        self.manager = manager
        self.interval_seconds = interval_seconds
        self.on_report = on_report
        self._wake = threading.Event()
        self._stopping = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def start(self) -> None:
        if self._thread and self._thread.is_alive():
            return
        self._stopping.clear()
        self._thread = threading.Thread(target=self._loop, name="sync-scheduler", daemon=True)
        self._thread.start()
        logger.info("Sync scheduler started (every %ss)", self.interval_seconds)

    def trigger(self) -> None:
        self._wake.set()

    def stop(self, timeout: Optional[float] = 5.0) -> None:
        self._stopping.set()
        self._wake.set()
        if self._thread:
            self._thread.join(timeout)
            self._thread = None

    def _loop(self) -> None:
        while not self._stopping.is_set():
            self.run_once()
            self._wake.wait(self.interval_seconds)
            self._wake.clear()

    def run_once(self) -> Optional[SyncReport]:
        try:
            report = self.manager.perform_sync()
        except Exception:
            # Local database errors; the next tick tries again
            logger.exception("Sync cycle crashed")
            return None
        if self.on_report:
            self.on_report(report)
        return report
