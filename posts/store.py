"""
posts/store.py -- SQLAlchemy-backed persistence layer for catalog posts.

Uses SQLAlchemy Core (not ORM) so the dataclass in posts/models.py remains
the authoritative domain representation.

Pattern: Repository + Data Mapper. PostStore is the repository; _row_to_post
is the mapper. Route handlers never touch SQL directly.

Ownership: every read and write takes the owner's user_id and puts it in the
WHERE clause. A post owned by someone else is indistinguishable from a post
that does not exist.

Atomic transitions: transition() is a single conditional UPDATE
(... WHERE id = ? AND user_id = ? AND status = ?). Its rowcount tells the
caller whether it won; two concurrent publishes cannot both move a post out
of `ready`.

Security: all queries use bound parameters. No f-strings in SQL.
"""

from __future__ import annotations

from sqlalchemy import Column, ForeignKey, Integer, String, Table, Text
from sqlalchemy.engine import Engine

from auth.store import users_table
from core.database import metadata, now_iso
from posts.models import Post, PostStatus

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_posts = Table(
    "posts",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("user_id", Integer, ForeignKey(users_table.c.id), nullable=False, index=True),
    Column("product_name", Text, nullable=False),
    Column("image_url", Text, nullable=False),
    Column("caption", Text, nullable=False),
    Column("status", String(20), nullable=False, server_default=PostStatus.pending.value),
    Column("created_at", String(32), nullable=False),
    Column("published_at", String(32)),
)


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class PostStore:
    """Repository for Post entities.

    Usage:
        store = PostStore(engine)
        post_id = store.create_post(Post(user_id=1, product_name="Shoe", image_url="...", caption="..."))
        posts = store.list_posts(user_id=1)
        won = store.transition(post_id, 1, PostStatus.ready, PostStatus.posting)
    """

    def __init__(self, engine: Engine) -> None:
        self.engine = engine
        metadata.create_all(self.engine)

    def create_post(self, post: Post) -> int:
        """Insert a new post and return its assigned database ID."""
        with self.engine.connect() as conn:
            result = conn.execute(
                _posts.insert().values(
                    user_id=post.user_id,
                    product_name=post.product_name,
                    image_url=post.image_url,
                    caption=post.caption,
                    status=post.status.value,
                    created_at=now_iso(),
                )
            )
            conn.commit()
            return result.inserted_primary_key[0]

    def get_post(self, post_id: int, user_id: int) -> Post | None:
        """Return the post if it exists AND belongs to user_id, else None."""
        with self.engine.connect() as conn:
            row = conn.execute(
                _posts.select().where((_posts.c.id == post_id) & (_posts.c.user_id == user_id))
            ).fetchone()
        return _row_to_post(row) if row is not None else None

    def list_posts(self, user_id: int) -> list[Post]:
        """Return all posts owned by user_id, most recently created first.

        Ordered by id rather than created_at: ids are strictly increasing,
        timestamps can collide.
        """
        with self.engine.connect() as conn:
            rows = conn.execute(
                _posts.select().where(_posts.c.user_id == user_id).order_by(_posts.c.id.desc())
            ).fetchall()
        return [_row_to_post(r) for r in rows]

    def transition(
        self,
        post_id: int,
        user_id: int,
        from_status: PostStatus,
        to_status: PostStatus,
        published_at: str | None = None,
    ) -> bool:
        """Move a post from from_status to to_status if it is still in from_status.

        Returns True if this call performed the change, False if the post is
        missing, not owned by user_id, or no longer in from_status.
        """
        values: dict = {"status": to_status.value}
        if published_at is not None:
            values["published_at"] = published_at
        with self.engine.connect() as conn:
            result = conn.execute(
                _posts.update()
                .where(
                    (_posts.c.id == post_id)
                    & (_posts.c.user_id == user_id)
                    & (_posts.c.status == from_status.value)
                )
                .values(**values)
            )
            conn.commit()
        return result.rowcount == 1


# ---------------------------------------------------------------------------
# Row mappers (Data Mapper pattern -- DB row -> domain dataclass)
# ---------------------------------------------------------------------------


def _row_to_post(row) -> Post:
    return Post(
        id=row.id,
        user_id=row.user_id,
        product_name=row.product_name,
        image_url=row.image_url,
        caption=row.caption,
        status=PostStatus(row.status),
        created_at=row.created_at,
        published_at=row.published_at,
    )
