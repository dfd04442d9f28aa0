"""
Versioned schema migrations.

Each script runs in its own transaction together with the ledger insert for
its version, so a failure leaves earlier versions of the same run applied
and the failing one absent from the ledger.
"""
import logging
import re
import sqlite3
from pathlib import Path
from typing import List, NamedTuple, Sequence, Set, Union

from sqlalchemy import text
from sqlalchemy.engine import Engine

from bts_inventory.errors import MigrationError
from bts_inventory.models.base import utc_now

logger = logging.getLogger("Migrations")

MIGRATION_FILE = re.compile(r"^(\d+)_.*\.sql$")

LEDGER_DDL = """
CREATE TABLE IF NOT EXISTS schema_migrations (
    version INTEGER PRIMARY KEY,
    applied_at TEXT NOT NULL
)
"""


class Migration(NamedTuple):
    version: int
    script: str


def load_migrations(directory: Union[str, Path]) -> List[Migration]:
    """Reads NNNN_description.sql files from a directory, sorted by version."""
    migrations = []
    for path in Path(directory).iterdir():
        match = MIGRATION_FILE.match(path.name)
        if not match:
            continue
        migrations.append(Migration(int(match.group(1)), path.read_text(encoding="utf-8")))
    return sorted(migrations, key=lambda m: m.version)


def applied_versions(engine: Engine) -> Set[int]:
    with engine.begin() as conn:
        conn.exec_driver_sql(LEDGER_DDL)
        rows = conn.execute(text("SELECT version FROM schema_migrations ORDER BY version"))
        return {row[0] for row in rows}


def apply_migrations(engine: Engine, migrations: Sequence[Migration]) -> List[int]:
    """
    Applies every migration not yet in the ledger, lowest version first.
    Returns the versions applied by this call (empty when up to date).
    Raises MigrationError on the first failing script.
    """
    versions = [m.version for m in migrations]
    if len(versions) != len(set(versions)):
        raise ValueError("Duplicate migration versions")

    applied = applied_versions(engine)
    newly_applied = []
    for migration in sorted(migrations, key=lambda m: m.version):
        if migration.version in applied:
            continue
        _run_script(engine, migration)
        newly_applied.append(migration.version)
        logger.info("Applied migration %s", migration.version)

    if not newly_applied:
        logger.debug("Schema up to date (%s migrations)", len(applied))
    return newly_applied


def _run_script(engine: Engine, migration: Migration) -> None:
    script = migration.script.strip()
    if not script.endswith(";"):
        script += ";"
    ledger_insert = (
        "INSERT INTO schema_migrations (version, applied_at) "
        f"VALUES ({int(migration.version)}, '{utc_now().isoformat()}');"
    )
    raw = engine.raw_connection()
    try:
        conn = raw.driver_connection
        try:
            conn.executescript(f"BEGIN;\n{script}\n{ledger_insert}\nCOMMIT;")
        except sqlite3.Error as exc:
            if conn.in_transaction:
                conn.rollback()
            raise MigrationError(migration.version, exc) from exc
    finally:
        raw.close()
