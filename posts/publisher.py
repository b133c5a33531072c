"""
posts/publisher.py -- External publish collaborator interface.

PostLifecycle depends only on the Publisher protocol, so the transition logic
is testable without a network. SimulatedPublisher is the default: it logs and
succeeds, standing in for the Instagram Graph API media publish call.

A real implementation must:
  - apply a timeout to every remote call,
  - raise ExternalServiceFailure (core/errors.py) on any failure it considers
    retryable; PostLifecycle retries with backoff and marks the post failed
    once attempts are exhausted.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Protocol

from posts.models import Post

logger = logging.getLogger("instacatalog.publisher")


@dataclass(frozen=True)
class PublishResult:
    """Outcome of a successful publish. external_id is the platform's media ID, if any."""

    external_id: str | None = None


class Publisher(Protocol):
    """Interface for services that push a post to a social platform."""

    def publish(self, post: Post) -> PublishResult:
        """Publish post and return the result.

        Raises:
            ExternalServiceFailure: the platform call failed.
        """
        ...


class SimulatedPublisher:
    """Publisher that performs no remote call and always succeeds."""

    def publish(self, post: Post) -> PublishResult:
        logger.info("Posted to Instagram (simulated): post=%s product=%r", post.id, post.product_name)
        return PublishResult()
