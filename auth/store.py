"""
auth/store.py -- SQLAlchemy Core persistence layer for auth entities.

Pattern: Repository + Data Mapper (same as posts/store.py).
UserStore is the repository; _row_to_user / _row_to_state are the mappers.
Route and dependency code never touches SQL directly.

Security:
  All queries use bound parameters. No f-strings in SQL.

  users.email carries a UNIQUE constraint. create_user() lets the resulting
  IntegrityError propagate; register_user() in auth/tokens.py turns it into a
  Conflict. A duplicate email is never overwritten.

OAuth states are consume-once: consume_oauth_state() deletes the row in the
same transaction that reads it, so a replayed callback finds nothing.

Layer rule: no imports from api/ or posts/. Import from core/ is allowed.
"""

from __future__ import annotations

import secrets
from datetime import datetime, timedelta, timezone

from sqlalchemy import Column, ForeignKey, Integer, String, Table, Text, delete, select
from sqlalchemy.engine import Engine

from auth.models import InstagramLinkage, OAuthState, User
from core.database import metadata, now_iso

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

users_table = Table(
    "users",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("email", String(255), nullable=False, unique=True),
    Column("hashed_password", Text, nullable=False),
    Column("created_at", String(32), nullable=False),
    # Instagram linkage -- NULL until the OAuth flow completes
    Column("page_id", Text),
    Column("ig_user_id", Text),
    Column("ig_access_token", Text),
    Column("ig_token_expires_at", String(32)),
)

_oauth_states = Table(
    "oauth_states",
    metadata,
    Column("state", String(64), primary_key=True),
    Column("user_id", Integer, ForeignKey(users_table.c.id), nullable=False),
    Column("created_at", String(32), nullable=False),
)


def _cutoff_iso(max_age_seconds: int) -> str:
    return (datetime.now(timezone.utc) - timedelta(seconds=max_age_seconds)).isoformat()


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class UserStore:
    """Repository for User and OAuthState entities.

    Usage:
        store = UserStore(create_db_engine("sqlite:///instacatalog.db"))
        user_id = store.create_user(User(email="a@x.com", hashed_password=hash_password("secret1")))
        user = store.get_by_email("a@x.com")
    """

    def __init__(self, engine: Engine) -> None:
        self.engine = engine
        metadata.create_all(self.engine)

    # ------------------------------------------------------------------
    # User queries
    # ------------------------------------------------------------------

    def create_user(self, user: User) -> int:
        """Insert a new user and return its assigned database ID.

        Raises sqlalchemy.exc.IntegrityError if the email already exists.
        """
        with self.engine.connect() as conn:
            result = conn.execute(
                users_table.insert().values(
                    email=user.email,
                    hashed_password=user.hashed_password,
                    created_at=now_iso(),
                )
            )
            conn.commit()
            return result.inserted_primary_key[0]

    def get_by_email(self, email: str) -> User | None:
        """Look up a user by exact email (case-sensitive). Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(users_table.select().where(users_table.c.email == email)).fetchone()
        return _row_to_user(row) if row is not None else None

    def get_by_id(self, user_id: int) -> User | None:
        """Look up a user by primary key. Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(users_table.select().where(users_table.c.id == user_id)).fetchone()
        return _row_to_user(row) if row is not None else None

    def update_external_linkage(self, user_id: int, linkage: InstagramLinkage) -> bool:
        """Overwrite all four Instagram linkage columns.

        All four are written together so a reconnect never leaves a token from
        one account paired with the page of another. Pass InstagramLinkage()
        to clear them.

        Returns True if a row was updated, False if user_id was not found.
        """
        with self.engine.connect() as conn:
            result = conn.execute(
                users_table.update()
                .where(users_table.c.id == user_id)
                .values(
                    page_id=linkage.page_id,
                    ig_user_id=linkage.ig_user_id,
                    ig_access_token=linkage.ig_access_token,
                    ig_token_expires_at=linkage.ig_token_expires_at,
                )
            )
            conn.commit()
        return result.rowcount > 0

    # ------------------------------------------------------------------
    # OAuth states
    # ------------------------------------------------------------------

    def create_oauth_state(self, user_id: int) -> str:
        """Generate, persist and return a fresh state value for user_id."""
        state = secrets.token_urlsafe(32)
        with self.engine.connect() as conn:
            conn.execute(_oauth_states.insert().values(state=state, user_id=user_id, created_at=now_iso()))
            conn.commit()
        return state

    def consume_oauth_state(self, state: str, max_age_seconds: int) -> OAuthState | None:
        """Delete the state row and return it, or None if it cannot be used.

        None covers three cases the callback treats identically: the value
        was never issued, it was already consumed, or it is older than
        max_age_seconds. The expired row is still deleted.

        The DELETE rowcount decides the winner when two callbacks race on the
        same state -- only one of them gets the record back.
        """
        with self.engine.begin() as conn:
            row = conn.execute(select(_oauth_states).where(_oauth_states.c.state == state)).fetchone()
            if row is None:
                return None
            result = conn.execute(delete(_oauth_states).where(_oauth_states.c.state == state))
            if result.rowcount == 0:
                return None
        record = _row_to_state(row)
        if record.created_at < _cutoff_iso(max_age_seconds):
            return None
        return record

    def purge_oauth_states(self, max_age_seconds: int) -> int:
        """Delete abandoned states older than max_age_seconds. Returns rows removed."""
        with self.engine.connect() as conn:
            result = conn.execute(delete(_oauth_states).where(_oauth_states.c.created_at < _cutoff_iso(max_age_seconds)))
            conn.commit()
        return result.rowcount


# ---------------------------------------------------------------------------
# Row mappers (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_user(row) -> User:
    return User(
        id=row.id,
        email=row.email,
        hashed_password=row.hashed_password,
        created_at=row.created_at,
        page_id=row.page_id,
        ig_user_id=row.ig_user_id,
        ig_access_token=row.ig_access_token,
        ig_token_expires_at=row.ig_token_expires_at,
    )


def _row_to_state(row) -> OAuthState:
    return OAuthState(state=row.state, user_id=row.user_id, created_at=row.created_at)
