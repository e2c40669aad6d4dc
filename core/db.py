"""
core/db.py -- Engine construction shared by every store.

Both auth/store.py and content/store.py build their engine here so SQLite
connections get the same connect_args and PRAGMAs regardless of which store
opened them. Any other SQLAlchemy URL (PostgreSQL, MySQL) is passed through
untouched.
"""

from __future__ import annotations

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode for concurrent read safety.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


def make_engine(db_url: str) -> Engine:
    """Create an Engine for db_url, applying SQLite-specific settings when needed.

    check_same_thread=False is required because FastAPI runs sync route
    handlers in a threadpool, so a pooled connection may be used by a thread
    other than the one that opened it.
    """
    connect_args: dict = {}
    if db_url.startswith("sqlite"):
        connect_args["check_same_thread"] = False
    engine = create_engine(db_url, connect_args=connect_args)
    if db_url.startswith("sqlite"):
        event.listen(engine, "connect", _set_wal_mode)
    return engine
