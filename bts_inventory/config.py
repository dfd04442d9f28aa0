import os
from dataclasses import dataclass

from dotenv import load_dotenv

from bts_inventory.data.db_context import DATABASE_NAME

DEFAULT_SYNC_ENDPOINT = "http://localhost:4000/sync"


@dataclass(frozen=True)
class AppConfig:
    db_path: str = DATABASE_NAME
    sync_endpoint: str = DEFAULT_SYNC_ENDPOINT
    sync_timeout_seconds: float = 10.0
    sync_batch_size: int = 100
    sync_interval_seconds: float = 60.0

    @classmethod
    def from_env(cls) -> "AppConfig":
        """Reads the environment, after loading a .env file if there is one."""
        load_dotenv()
        return cls(
            db_path=os.getenv("BTS_DB_PATH", DATABASE_NAME),
            sync_endpoint=os.getenv("SYNC_ENDPOINT", DEFAULT_SYNC_ENDPOINT).rstrip("/"),
            sync_timeout_seconds=float(os.getenv("SYNC_TIMEOUT_SECONDS", "10")),
            sync_batch_size=int(os.getenv("SYNC_BATCH_SIZE", "100")),
            sync_interval_seconds=float(os.getenv("SYNC_INTERVAL_SECONDS", "60")),
        )
