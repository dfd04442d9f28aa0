import argparse
import logging
import signal
import threading

from bts_inventory.config import AppConfig
from bts_inventory.data.legacy_import import import_file
from bts_inventory.data.local_store import LocalStore
from bts_inventory.services.auth_service import AuthService
from bts_inventory.services.sync_manager import SyncManager, SyncReport
from bts_inventory.services.sync_scheduler import SyncScheduler

logger = logging.getLogger("Main")


def log_report(report: SyncReport) -> None:
    if report.error:
        logger.warning("Sync %s: %s", report.status.value, report.error)
    else:
        logger.info("Sync %s", report.status.value)


def main() -> None:
    parser = argparse.ArgumentParser(description="BTS inventory local store and sync host")
    parser.add_argument("--import-legacy", metavar="DUMP.json", help="replace all local data with a legacy dump")
    parser.add_argument("--once", action="store_true", help="run a single sync cycle and exit")
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(name)s %(levelname)s %(message)s")
    config = AppConfig.from_env()

    # Migration failures propagate: the app must not start on a half-built schema
    store = LocalStore.open(config.db_path)
    store.notifier.subscribe(lambda table, ids: logger.debug("%s changed: %s", table, ids))

    if args.import_legacy:
        import_file(store, args.import_legacy)

    AuthService(store).create_admin_if_empty()
    store.settings.seed_defaults()

    manager = SyncManager(store, config=config)
    try:
        if args.once:
            log_report(manager.perform_sync())
            return

        scheduler = SyncScheduler(manager, config.sync_interval_seconds, on_report=log_report)
        done = threading.Event()
        signal.signal(signal.SIGINT, lambda *_: done.set())
        signal.signal(signal.SIGTERM, lambda *_: done.set())

        scheduler.start()
        done.wait()
        scheduler.stop()
    finally:
        manager.close()
        store.close()


if __name__ == "__main__":
    main()
