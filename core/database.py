"""
core/database.py -- Shared SQLAlchemy engine factory and schema metadata.

users, posts and oauth_states live in ONE database because posts.user_id is a
foreign key to users.id. Each store declares its own tables against the
shared `metadata` here and receives the same Engine.

Usage:
    engine = create_db_engine("sqlite:///instacatalog.db")
    users = UserStore(engine)
    posts = PostStore(engine)
    ...
    engine.dispose()

Layer rule: core/ is the kernel. No imports from api/, auth/, or posts/.
"""

from datetime import datetime, timezone

from sqlalchemy import MetaData, create_engine, event
from sqlalchemy.engine import Engine

metadata = MetaData()


def _set_sqlite_pragmas(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode and foreign key enforcement.

    WAL lets readers proceed while a writer holds the lock. SQLite ships
    with foreign keys OFF, so posts.user_id would not be enforced without
    the second pragma. Both are per-connection settings.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")
    dbapi_conn.execute("PRAGMA foreign_keys=ON")


def create_db_engine(db_url: str) -> Engine:
    """Build an Engine for db_url, applying SQLite-specific connection setup."""
    connect_args: dict = {}
    if db_url.startswith("sqlite"):
        # FastAPI runs sync handlers in a threadpool, so a pooled connection
        # may be used from a thread other than the one that opened it.
        connect_args["check_same_thread"] = False
    engine = create_engine(db_url, connect_args=connect_args)
    if db_url.startswith("sqlite"):
        event.listen(engine, "connect", _set_sqlite_pragmas)
    return engine


def now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()
