"""
api/routes/posts.py -- Post creation, listing and lifecycle endpoints.

Routes:
  POST /post           -- create a post (status per configured lifecycle mode)
  GET  /posts          -- list the caller's posts, newest first
  POST /update-status  -- owner-requested transition (e.g. pending -> approved)
  POST /publish        -- publish an eligible post exactly once

All routes sit behind the Authorization Gate (get_current_user_id). The user
id it returns is the only owner value handed to PostLifecycle -- request
bodies never carry one.

IDOR guard: a post owned by another user produces the same 404 as a post that
does not exist. PostLifecycle raises NotFound in both cases.

Handlers are plain `def`: FastAPI runs them in its threadpool, so the
blocking SQLAlchemy calls and publish retries do not stall the event loop.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request

from api.models import CreatedResponse, PostCreate, PostResponse, PublishRequest, StatusUpdate, SuccessResponse
from auth.dependencies import get_current_user_id
from posts.lifecycle import PostLifecycle

router = APIRouter()


def _lifecycle(request: Request) -> PostLifecycle:
    return request.app.state.lifecycle


@router.post("/post", response_model=CreatedResponse)
def create_post(
    body: PostCreate,
    user_id: int = Depends(get_current_user_id),
    lifecycle: PostLifecycle = Depends(_lifecycle),
) -> CreatedResponse:
    post_id = lifecycle.create_post(user_id, body.product_name, body.image_url, body.caption)
    return CreatedResponse(id=post_id)


@router.get("/posts", response_model=list[PostResponse])
def list_posts(
    user_id: int = Depends(get_current_user_id),
    lifecycle: PostLifecycle = Depends(_lifecycle),
) -> list[PostResponse]:
    """Return only the authenticated user's posts, most recent first."""
    return [PostResponse.from_post(p) for p in lifecycle.list_posts(user_id)]


@router.post("/update-status", response_model=SuccessResponse)
def update_status(
    body: StatusUpdate,
    user_id: int = Depends(get_current_user_id),
    lifecycle: PostLifecycle = Depends(_lifecycle),
) -> SuccessResponse:
    lifecycle.update_status(user_id, body.id, body.status)
    return SuccessResponse()


@router.post("/publish", response_model=SuccessResponse)
def publish(
    body: PublishRequest,
    user_id: int = Depends(get_current_user_id),
    lifecycle: PostLifecycle = Depends(_lifecycle),
) -> SuccessResponse:
    """Publish to Instagram.

    400 invalid_state if the post is not in the publishable status (or a
    concurrent publish claimed it); 502 if the platform call failed on every
    retry, in which case the post is now `failed`.
    """
    lifecycle.publish(user_id, body.id)
    return SuccessResponse()
