import threading

from bts_inventory.services.sync_manager import SyncReport, SyncState
from bts_inventory.services.sync_scheduler import SyncScheduler


class FakeManager:
    def __init__(self, fail=False):
        self.calls = 0
        self.fail = fail

    def perform_sync(self):
        self.calls += 1
        if self.fail:
            raise RuntimeError("database is locked")
        return SyncReport(SyncState.IDLE)


def test_runs_immediately_and_on_trigger():
    manager = FakeManager()
    reports = []
    ran = threading.Semaphore(0)

    def on_report(report):
        reports.append(report)
        ran.release()

    scheduler = SyncScheduler(manager, interval_seconds=60, on_report=on_report)
    scheduler.start()
    try:
        assert ran.acquire(timeout=5)
        scheduler.trigger()
        assert ran.acquire(timeout=5)
    finally:
        scheduler.stop()

    assert manager.calls >= 2
    assert all(r.status == SyncState.IDLE for r in reports)


def test_run_once_survives_a_crashing_cycle():
    manager = FakeManager(fail=True)
    scheduler = SyncScheduler(manager, interval_seconds=60)

    assert scheduler.run_once() is None
    assert manager.calls == 1
