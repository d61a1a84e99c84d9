"""
Database package: table models, the dialect adapter and session handling.

Only SQLite ships with the package; another backend is added by
implementing DatabaseAdapter (including day_expression) and returning it
from get_database_adapter().
"""

from app.db.interface import DatabaseAdapter
from app.db.session import async_session_maker, create_tables, engine, get_session

__all__ = [
    "DatabaseAdapter",
    "async_session_maker",
    "create_tables",
    "engine",
    "get_session",
]
