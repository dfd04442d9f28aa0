from contextlib import contextmanager
from typing import Dict, Iterator, Optional, Sequence

from sqlalchemy import event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker
from sqlmodel import Session

from bts_inventory.data.activity_repository import ActivityLogRepository
from bts_inventory.data.db_context import create_db_engine
from bts_inventory.data.employee_repository import EmployeeRepository
from bts_inventory.data.kv_store import KVStore
from bts_inventory.data.migrations import Migration, apply_migrations
from bts_inventory.data.outbox import OutboxQueue
from bts_inventory.data.product_repository import ProductRepository
from bts_inventory.data.return_repository import ReturnRepository
from bts_inventory.data.schema import MIGRATIONS
from bts_inventory.data.settings_repository import SettingsRepository
from bts_inventory.data.sync_repository import SyncRepository
from bts_inventory.models.base import EntityType
from bts_inventory.services.notifications import ChangeNotifier


class LocalStore:
    """
    The local database as one object: engine, session factory, outbox and
    one repository per entity kind. Passed explicitly to every consumer.
    """

    def __init__(self, engine: Engine, notifier: Optional[ChangeNotifier] = None):
        self.engine = engine
        self.notifier = notifier or ChangeNotifier()
        self._sessions = sessionmaker(engine, class_=Session, expire_on_commit=False)
        event.listen(self._sessions, "after_commit", self._publish_changes)
        event.listen(self._sessions, "after_rollback", self._discard_changes)

        self.meta = KVStore(engine)
        self.outbox = OutboxQueue()
        self.employees = EmployeeRepository(self)
        self.products = ProductRepository(self)
        self.returns = ReturnRepository(self)
        self.activity_logs = ActivityLogRepository(self)
        self.settings = SettingsRepository(self)

        self.repositories: Dict[EntityType, SyncRepository] = {
            EntityType.EMPLOYEES: self.employees,
            EntityType.PRODUCTS: self.products,
            EntityType.RETURNS: self.returns,
            EntityType.ACTIVITY_LOGS: self.activity_logs,
            EntityType.SETTINGS: self.settings,
        }

    @classmethod
    def open(
        cls,
        db_path: Optional[str] = None,
        migrations: Sequence[Migration] = MIGRATIONS,
        notifier: Optional[ChangeNotifier] = None,
        echo: bool = False,
    ) -> "LocalStore":
        """Creates the engine and brings the schema up to date. MigrationError aborts startup."""
        engine = create_db_engine(db_path, echo=echo)
        apply_migrations(engine, migrations)
        return cls(engine, notifier=notifier)

    def close(self) -> None:
        self.engine.dispose()

    def repository(self, entity_type: EntityType) -> Optional[SyncRepository]:
        return self.repositories.get(entity_type)

    @contextmanager
    def transaction(self, session: Optional[Session] = None) -> Iterator[Session]:
        """
        Joins the caller's session when given one. Otherwise opens a session
        that commits on success and rolls back on any exception.
        """
        if session is not None:
            yield session
            return
        with self._sessions.begin() as new_session:
            yield new_session

    def _publish_changes(self, session: Session) -> None:
        changes = session.info.pop("changes", {})
        for table, ids in changes.items():
            self.notifier.notify(table, ids)

    def _discard_changes(self, session: Session) -> None:
        session.info.pop("changes", None)
