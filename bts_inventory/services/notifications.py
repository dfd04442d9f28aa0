import logging
import threading
from typing import Callable, Iterable, List

logger = logging.getLogger("ChangeNotifier")

ChangeCallback = Callable[[str, List[str]], None]


class ChangeNotifier:
    """
    Fan-out of "table changed" events to UI subscribers.
    Called after commit; a failing subscriber is logged and skipped.
    """

    def __init__(self):
        self._subscribers: List[ChangeCallback] = []
        self._lock = threading.Lock()

    def subscribe(self, callback: ChangeCallback) -> Callable[[], None]:
        with self._lock:
            self._subscribers.append(callback)

        def unsubscribe() -> None:
            with self._lock:
                if callback in self._subscribers:
                    self._subscribers.remove(callback)

        return unsubscribe

    def notify(self, table: str, ids: Iterable[str]) -> None:
        ids = sorted(ids)
        with self._lock:
            subscribers = list(self._subscribers)
        for callback in subscribers:
            try:
                callback(table, ids)
            except Exception:
                logger.exception("Change subscriber failed for table %s", table)
