import os
from typing import AsyncIterator, Optional

from dotenv import load_dotenv
from fastapi import Request
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine
from sqlmodel import SQLModel
from sqlmodel.ext.asyncio.session import AsyncSession

from backend.models import ClientCursor, ServerRecord

# Loads variables from the .env file
load_dotenv()

SERVER_TABLES = [ServerRecord.__table__, ClientCursor.__table__]


def get_database_url() -> str:
    database_url = os.getenv("DATABASE_URL")
    if not database_url:
        raise ValueError("The DATABASE_URL environment variable is not set!")
    return database_url


def build_engine(database_url: Optional[str] = None, echo: bool = False) -> AsyncEngine:
    return create_async_engine(database_url or get_database_url(), echo=echo, future=True)


async def init_db(engine: AsyncEngine) -> None:
    """
    Creates the server tables on startup. The client table models share
    SQLModel.metadata, so only the server's own tables are created here.
    """
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all, tables=SERVER_TABLES)


async def get_session(request: Request) -> AsyncIterator[AsyncSession]:
    """Dependency injection for FastAPI routes"""
    async with request.app.state.sessions() as session:
        yield session
