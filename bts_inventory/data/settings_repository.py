import base64
import secrets
from typing import Optional

from sqlmodel import Session

from bts_inventory.data.sync_repository import SyncRepository
from bts_inventory.models.base import SYNC_COLUMNS, EntityType
from bts_inventory.models.settings import SYSTEM_SETTINGS_ID, SettingsField, SystemSettings


def generate_api_key() -> str:
    return base64.b64encode(secrets.token_bytes(24)).decode("ascii").rstrip("=")


class SettingsRepository(SyncRepository[SystemSettings]):
    model_type = SystemSettings
    entity_type = EntityType.SETTINGS
    fields = SettingsField

    def current(self, session: Optional[Session] = None) -> Optional[SystemSettings]:
        return self.get(SYSTEM_SETTINGS_ID, session=session)

    def put(self, settings: SystemSettings, session: Optional[Session] = None) -> SystemSettings:
        """Insert-or-update keyed on the settings id."""
        with self.store.transaction(session) as s:
            existing = s.get(SystemSettings, settings.id)
            if existing is None:
                return self._write_new(s, settings)

            existing.deleted_at = None
            changes = settings.model_dump(exclude=set(SYNC_COLUMNS | {"id"}))
            return self._write_changes(s, existing, changes)

    def seed_defaults(self, session: Optional[Session] = None) -> Optional[SystemSettings]:
        """Creates the system row on first run. Returns None when it already exists."""
        with self.store.transaction(session) as s:
            if s.get(SystemSettings, SYSTEM_SETTINGS_ID) is not None:
                return None
            return self._write_new(s, SystemSettings(api_key=generate_api_key()))
