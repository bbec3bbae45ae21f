"""
Infrastructure module: database and the Redis change-feed.

- db.py: SQLAlchemy engine, sessions, safe_commit()
- correlation.py: request correlation IDs
- events/: change-feed schema, channels and publishing
"""

from shared.infrastructure.db import (
    SessionLocal,
    engine,
    get_db,
    get_db_context,
    safe_commit,
)

__all__ = [
    "engine",
    "SessionLocal",
    "get_db",
    "get_db_context",
    "safe_commit",
]
