"""
auth/dependencies.py -- FastAPI Depends() helpers for authentication.

The identity token is read from, in priority order:
  1. `token` header -- the contract the InstaCatalog frontend uses.
  2. Authorization: Bearer <token> header -- generic API clients.

get_current_user_id() is the Authorization Gate: it runs before the route
body, so a request with a bad token never reaches a store. It raises
Unauthenticated, which the app-level handler renders as 401.

get_current_user() additionally loads the User record for routes that need
the linkage fields (ig/*).

Layer rule: no imports from posts/. May import from fastapi because this
module is part of the FastAPI dependency injection system.
"""

from __future__ import annotations

from fastapi import Depends, Request

from auth.models import User
from auth.store import UserStore
from auth.tokens import TokenService
from core.errors import Unauthenticated


def extract_token(request: Request) -> str | None:
    """Return the raw token from the request headers, or None if absent."""
    token = request.headers.get("token")
    if token:
        return token
    auth_header = request.headers.get("Authorization", "")
    if auth_header.startswith("Bearer "):
        return auth_header[7:] or None
    return None


def get_current_user_id(request: Request) -> int:
    """Require a valid identity token and return its user ID.

    Use as a FastAPI dependency:
        @router.get("/posts")
        def route(user_id: int = Depends(get_current_user_id)): ...
    """
    token_service: TokenService = request.app.state.token_service
    return token_service.verify(extract_token(request))


def get_current_user(request: Request, user_id: int = Depends(get_current_user_id)) -> User:
    """Require authentication and return the full User record.

    A well-signed token whose user no longer exists is treated as
    unauthenticated rather than 404 -- the caller has no account.
    """
    user_store: UserStore = request.app.state.user_store
    user = user_store.get_by_id(user_id)
    if user is None:
        raise Unauthenticated("Token expired or invalid.")
    return user
