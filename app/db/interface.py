"""
Database Adapter Interface

Engine configuration and dialect-specific SQL for the analytics queries live
behind this interface, so the event source can run on SQLite locally and on
a server database in production.

The only dialect-specific expression the analytics queries need is the
truncation of a timestamp column to its calendar day. Everything else is
plain COUNT/SUM ... GROUP BY.
"""

from abc import ABC, abstractmethod
from typing import Any, Optional

from sqlalchemy.ext.asyncio import AsyncEngine
from sqlalchemy.pool import Pool
from sqlalchemy.sql.elements import ColumnElement


class DatabaseAdapter(ABC):
    """
    Base class for database adapters.

    A new backend implements every abstract method and is returned by
    ``get_database_adapter``.
    """

    @abstractmethod
    def create_engine(self, database_url: str, **kwargs) -> AsyncEngine:
        """
        Build the async engine.

        Keyword arguments override the adapter defaults (tests pass their
        own ``poolclass``).
        """

    @abstractmethod
    def get_pool_class(self) -> Optional[type[Pool]]:
        """Pool class used when the caller does not choose one (None for the SQLAlchemy default)."""

    @abstractmethod
    def get_connect_args(self) -> dict[str, Any]:
        pass

    @abstractmethod
    def get_engine_kwargs(self) -> dict[str, Any]:
        pass

    @abstractmethod
    def day_expression(self, column: Any) -> ColumnElement:
        """
        Truncate a timestamp column to its UTC calendar day.

        Depending on the driver the result is a ``date`` or a ``YYYY-MM-DD``
        string; callers normalize it.
        """

    @abstractmethod
    def get_dialect_name(self) -> str:
        pass
