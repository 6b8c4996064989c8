"""Database module for the link service."""
from shortlink.db.base import DatabaseHealthCheck, async_session_factory, engine, get_engine, init_models
from shortlink.db.session import SessionManager, db_transaction, get_db

__all__ = [
    "engine",
    "get_engine",
    "init_models",
    "async_session_factory",
    "DatabaseHealthCheck",
    "get_db",
    "db_transaction",
    "SessionManager",
]
