"""Database package: declarative base, engine lifecycle and session factory."""

from virl.db.base import Base
from virl.db.session import close_db, get_session_factory, init_db, ping_db

__all__ = [
    "Base",
    "close_db",
    "get_session_factory",
    "init_db",
    "ping_db",
]
