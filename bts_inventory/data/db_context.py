import os
from typing import Optional

from sqlalchemy import event
from sqlalchemy.engine import Engine
from sqlmodel import create_engine

DATABASE_NAME = "bts-inventory.db"


def get_db_path() -> str:
    """
    Resolves the local database file.
    BTS_DB_PATH overrides the default file in the working directory.
    """
    return os.getenv("BTS_DB_PATH", DATABASE_NAME)


def _configure_connection(dbapi_connection, connection_record) -> None:
    # The "begin" listener below emits BEGIN itself
    dbapi_connection.isolation_level = None

    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA journal_mode=WAL;")
    cursor.execute("PRAGMA synchronous=NORMAL;")
    cursor.execute("PRAGMA temp_store=MEMORY;")
    cursor.execute("PRAGMA foreign_keys=ON;")
    cursor.close()


def _begin_immediate(conn) -> None:
    # Take the write lock up front: one writer at a time, no lost updates
    # on read-modify-write of the sync columns.
    conn.exec_driver_sql("BEGIN IMMEDIATE")


def create_db_engine(db_path: Optional[str] = None, echo: bool = False) -> Engine:
    """
    Engine for the local store. Safe to share between the UI thread and
    the background sync thread.
    """
    engine = create_engine(
        f"sqlite:///{db_path or get_db_path()}",
        echo=echo,
        connect_args={"check_same_thread": False, "timeout": 10.0},
    )
    event.listen(engine, "connect", _configure_connection)
    event.listen(engine, "begin", _begin_immediate)
    return engine


def record_change(session, table: str, ids) -> None:
    """
    Remembers that rows of ``table`` changed inside this session's transaction.
    LocalStore publishes the collected changes after the commit.
    """
    changes = session.info.setdefault("changes", {})
    changes.setdefault(table, set()).update(ids)
