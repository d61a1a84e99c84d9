"""
SQLite Database Adapter

Default backend for local development, single-instance deployments and the
in-memory test database.

SQLite stores timestamps as ISO text, so DATE() over a timestamp column
yields a 'YYYY-MM-DD' string. Every event timestamp is written in UTC, which
makes that string the UTC calendar day the aggregates bucket by.
"""

from typing import Any

from sqlalchemy import func
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine
from sqlalchemy.pool import NullPool
from sqlalchemy.sql.elements import ColumnElement

from app.db.interface import DatabaseAdapter


class SQLiteAdapter(DatabaseAdapter):
    """DatabaseAdapter for sqlite+aiosqlite URLs."""

    def create_engine(self, database_url: str, **kwargs) -> AsyncEngine:
        """
        Create the SQLite async engine.

        Defaults to NullPool (one short-lived connection per session); an
        in-memory database needs StaticPool instead, passed through kwargs.
        """
        engine_kwargs = {**self.get_engine_kwargs(), **kwargs}
        engine_kwargs.setdefault("poolclass", self.get_pool_class())

        return create_async_engine(
            database_url,
            connect_args=self.get_connect_args(),
            **engine_kwargs
        )

    def get_pool_class(self) -> type[NullPool]:
        return NullPool

    def get_connect_args(self) -> dict[str, Any]:
        # aiosqlite runs the connection in a worker thread
        return {"check_same_thread": False}

    def get_engine_kwargs(self) -> dict[str, Any]:
        return {"echo": False}

    def day_expression(self, column: Any) -> ColumnElement:
        return func.date(column)

    def get_dialect_name(self) -> str:
        return "sqlite"


def get_database_adapter() -> DatabaseAdapter:
    """Adapter for the configured database (SQLite is the only bundled backend)."""
    return SQLiteAdapter()
