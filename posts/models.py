"""
posts/models.py -- Domain dataclass and status enum for catalog posts.

These are pure data containers with zero logic. Transition rules live in
posts/lifecycle.py; persistence in posts/store.py.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class PostStatus(str, Enum):
    pending = "pending"  # moderated mode: awaiting approval
    ready = "ready"  # self-posting mode: publishable immediately
    approved = "approved"  # moderated mode: publishable
    posting = "posting"  # claimed by a publish call, external call in flight
    posted = "posted"  # terminal
    failed = "failed"  # external publish gave up after retries


@dataclass
class Post:
    """A product post owned by exactly one user.

    user_id is fixed at creation; no store method updates it.
    id and created_at are None before the record is written to the database.
    published_at is set when the post reaches `posted`.
    """

    user_id: int
    product_name: str
    image_url: str
    caption: str
    status: PostStatus = PostStatus.ready
    id: int | None = None
    created_at: str | None = None
    published_at: str | None = None
