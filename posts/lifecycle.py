"""
posts/lifecycle.py -- Post status state machine and owner-scoped operations.

Two deployment modes share one controller (PostLifecycle) and differ only in
the LifecyclePolicy they are given:

  SelfPostingLifecycle  ready -> posting -> posted
  ModeratedLifecycle    pending -> approved -> posting -> posted

In both, posting -> failed when the external publish gives up, and a failed
post can be put back into the publishable state through update_status().
posted is terminal.

Publish protocol:
  1. Claim: conditional UPDATE publishable -> posting. Only one concurrent
     caller can win; losers get InvalidState and never reach the publisher.
  2. Call the publisher with retries and exponential backoff. No database
     lock or transaction is held while the remote call runs.
  3. Finalize posting -> posted (stamping published_at) or posting -> failed.
"""

from __future__ import annotations

import logging
import time
from typing import Callable

from core.database import now_iso
from core.errors import ExternalServiceFailure, InvalidInput, InvalidState, NotFound
from posts.models import Post, PostStatus
from posts.publisher import Publisher, PublishResult
from posts.store import PostStore

logger = logging.getLogger("instacatalog.lifecycle")


# ---------------------------------------------------------------------------
# Policies
# ---------------------------------------------------------------------------


class LifecyclePolicy:
    """Which status a new post starts in, which status may be published,
    and which transitions the owner may request directly."""

    name: str = ""
    creation_status: PostStatus
    publishable_status: PostStatus
    manual_transitions: dict[PostStatus, frozenset[PostStatus]] = {}

    def can_transition(self, current: PostStatus, target: PostStatus) -> bool:
        return target in self.manual_transitions.get(current, frozenset())


class SelfPostingLifecycle(LifecyclePolicy):
    name = "self-posting"
    creation_status = PostStatus.ready
    publishable_status = PostStatus.ready
    manual_transitions = {
        PostStatus.failed: frozenset({PostStatus.ready}),
    }


class ModeratedLifecycle(LifecyclePolicy):
    name = "moderated"
    creation_status = PostStatus.pending
    publishable_status = PostStatus.approved
    manual_transitions = {
        PostStatus.pending: frozenset({PostStatus.approved}),
        PostStatus.failed: frozenset({PostStatus.approved}),
    }


def policy_for(creation_status: str) -> LifecyclePolicy:
    """Map the POST_CREATION_STATUS setting to its policy."""
    if creation_status == PostStatus.pending.value:
        return ModeratedLifecycle()
    if creation_status == PostStatus.ready.value:
        return SelfPostingLifecycle()
    raise ValueError(f"Unknown post creation status: {creation_status!r}")


# ---------------------------------------------------------------------------
# Controller
# ---------------------------------------------------------------------------


class PostLifecycle:
    """Create, list and move posts through the configured state machine.

    Every operation takes the authenticated user_id from the Authorization
    Gate; PostStore scopes all queries by it.
    """

    def __init__(
        self,
        store: PostStore,
        policy: LifecyclePolicy,
        publisher: Publisher,
        max_attempts: int = 3,
        backoff_seconds: float = 1.0,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.store = store
        self.policy = policy
        self.publisher = publisher
        self.max_attempts = max_attempts
        self.backoff_seconds = backoff_seconds
        self._sleep = sleep

    def create_post(self, user_id: int, product_name: str, image_url: str, caption: str) -> int:
        fields = (product_name, image_url, caption)
        if any(not value or not value.strip() for value in fields):
            raise InvalidInput("Missing fields: productName, imageUrl and caption are required.")
        post = Post(
            user_id=user_id,
            product_name=product_name,
            image_url=image_url,
            caption=caption,
            status=self.policy.creation_status,
        )
        post_id = self.store.create_post(post)
        logger.info("User %d created post %d (%s)", user_id, post_id, post.status.value)
        return post_id

    def list_posts(self, user_id: int) -> list[Post]:
        return self.store.list_posts(user_id)

    def update_status(self, user_id: int, post_id: int, new_status: str) -> Post:
        """Apply an owner-requested transition allowed by the policy.

        Raises:
            InvalidInput: new_status is not a known status.
            NotFound:     no such post for this owner.
            InvalidState: the policy forbids current -> new_status, or the
                          post changed status concurrently.
        """
        try:
            target = PostStatus(new_status)
        except ValueError:
            raise InvalidInput(f"Unknown status: {new_status!r}") from None

        post = self._get_owned(user_id, post_id)
        if not self.policy.can_transition(post.status, target):
            raise InvalidState(f"Cannot change status from {post.status.value} to {target.value}.")
        if not self.store.transition(post_id, user_id, post.status, target):
            raise InvalidState("Post status changed; reload and try again.")

        logger.info("Post %d: %s -> %s", post_id, post.status.value, target.value)
        post.status = target
        return post

    def publish(self, user_id: int, post_id: int) -> Post:
        """Publish an eligible post exactly once.

        Raises:
            NotFound:               no such post for this owner.
            InvalidState:           not in the publishable status, or another
                                    publish call claimed it first.
            ExternalServiceFailure: the publisher failed on every attempt;
                                    the post is left in `failed`.

        Any other exception from the publisher is not retried. The post is
        moved to `failed` and the exception propagates.
        """
        post = self._get_owned(user_id, post_id)
        publishable = self.policy.publishable_status
        if post.status != publishable:
            raise InvalidState(f"Post not ready to publish (status: {post.status.value}).")

        if not self.store.transition(post_id, user_id, publishable, PostStatus.posting):
            raise InvalidState("Post is already being published.")

        post.status = PostStatus.posting
        try:
            self._publish_with_retry(post)
        except ExternalServiceFailure:
            self._mark_failed(post)
            logger.error("Post %d: publish failed after %d attempts", post_id, self.max_attempts)
            raise
        except Exception:
            # Not retryable, but the claimed post must not stay in `posting`.
            self._mark_failed(post)
            logger.exception("Post %d: publisher raised an unexpected error", post_id)
            raise

        published_at = now_iso()
        self.store.transition(post_id, user_id, PostStatus.posting, PostStatus.posted, published_at=published_at)
        post.status = PostStatus.posted
        post.published_at = published_at
        logger.info("Post %d published", post_id)
        return post

    def _get_owned(self, user_id: int, post_id: int) -> Post:
        post = self.store.get_post(post_id, user_id)
        if post is None:
            raise NotFound("Post not found.")
        return post

    def _mark_failed(self, post: Post) -> None:
        self.store.transition(post.id, post.user_id, PostStatus.posting, PostStatus.failed)
        post.status = PostStatus.failed

    def _publish_with_retry(self, post: Post) -> PublishResult:
        """Call the publisher up to max_attempts times with exponential backoff."""
        for attempt in range(self.max_attempts):
            try:
                return self.publisher.publish(post)
            except ExternalServiceFailure as exc:
                if attempt + 1 >= self.max_attempts:
                    raise
                delay = self.backoff_seconds * (2**attempt)
                logger.warning(
                    "Post %s: publish attempt %d/%d failed (%s); retrying in %.1fs",
                    post.id,
                    attempt + 1,
                    self.max_attempts,
                    exc,
                    delay,
                )
                self._sleep(delay)
        raise ExternalServiceFailure("Publish was not attempted.")
