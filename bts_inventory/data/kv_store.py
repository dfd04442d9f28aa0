import uuid
from typing import Optional

from sqlalchemy import text
from sqlalchemy.engine import Engine

CLIENT_ID_KEY = "client_id"
LAST_SYNC_KEY = "last_sync_at"


class KVStore:
    """Simple key/value metadata kept in sys_meta (client id, last sync time)."""

    def __init__(self, engine: Engine):
        self.engine = engine

    def get(self, key: str) -> Optional[str]:
        with self.engine.begin() as conn:
            row = conn.execute(text("SELECT value FROM sys_meta WHERE key = :key"), {"key": key}).first()
            return row[0] if row else None

    def set(self, key: str, value: str) -> None:
        with self.engine.begin() as conn:
            conn.execute(
                text("INSERT OR REPLACE INTO sys_meta (key, value) VALUES (:key, :value)"),
                {"key": key, "value": value},
            )

    def get_client_id(self) -> str:
        """Stable id of this installation, created on first use."""
        with self.engine.begin() as conn:
            row = conn.execute(text("SELECT value FROM sys_meta WHERE key = :key"), {"key": CLIENT_ID_KEY}).first()
            if row:
                return row[0]
            client_id = str(uuid.uuid4())
            conn.execute(
                text("INSERT INTO sys_meta (key, value) VALUES (:key, :value)"),
                {"key": CLIENT_ID_KEY, "value": client_id},
            )
            return client_id

    def get_last_sync(self) -> Optional[str]:
        """ISO timestamp of the last successful cycle, or None if it never synced."""
        return self.get(LAST_SYNC_KEY)

    def set_last_sync(self, timestamp: str) -> None:
        self.set(LAST_SYNC_KEY, timestamp)
