"""
api/routes/instagram.py -- Instagram account linkage endpoints.

Routes:
  GET  /ig/status                -- is an Instagram business account linked?
  POST /ig/disconnect            -- clear the stored linkage
  GET  /auth/instagram/start     -- begin OAuth; 302 to the Facebook dialog
  GET  /auth/instagram/callback  -- Facebook redirects here with code + state

Auth policy:
  The first three require the identity token. The callback cannot: it is a
  browser redirect from Facebook and carries no token header. It is
  authenticated by the single-use state value instead, which was bound to the
  user id when /start created it.

State handling:
  UserStore.consume_oauth_state() deletes the record as it reads it. Unknown,
  already-used and expired states all produce the same 400 and no token
  exchange is attempted.
"""

from __future__ import annotations

import logging
from urllib.parse import urlencode

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import RedirectResponse

from api.models import InstagramStatusResponse, SuccessResponse
from auth.dependencies import get_current_user, get_current_user_id
from auth.instagram import InstagramConnector
from auth.models import InstagramLinkage, User
from auth.store import UserStore
from core.config import Settings
from core.errors import InvalidInput

logger = logging.getLogger("instacatalog.api.instagram")

router = APIRouter()


@router.get("/ig/status", response_model=InstagramStatusResponse)
def instagram_status(user: User = Depends(get_current_user)) -> InstagramStatusResponse:
    return InstagramStatusResponse(connected=bool(user.ig_user_id and user.ig_access_token))


@router.post("/ig/disconnect", response_model=SuccessResponse)
def instagram_disconnect(request: Request, user_id: int = Depends(get_current_user_id)) -> SuccessResponse:
    user_store: UserStore = request.app.state.user_store
    user_store.update_external_linkage(user_id, InstagramLinkage())
    logger.info("User %d disconnected Instagram", user_id)
    return SuccessResponse()


@router.get("/auth/instagram/start")
def instagram_start(request: Request, user: User = Depends(get_current_user)) -> RedirectResponse:
    """Create a fresh state for this user and redirect to Facebook Login."""
    connector: InstagramConnector = request.app.state.instagram
    if not connector.configured:
        raise InvalidInput("Instagram integration is not configured on this server.")

    user_store: UserStore = request.app.state.user_store
    state = user_store.create_oauth_state(user.id)
    return RedirectResponse(connector.authorization_url(state), status_code=302)


@router.get("/auth/instagram/callback")
def instagram_callback(
    request: Request,
    code: str = Query(default="", max_length=2048),
    state: str = Query(default="", max_length=128),
) -> RedirectResponse:
    """Consume the state, exchange the code, store the linkage, return to the frontend."""
    settings: Settings = request.app.state.settings
    user_store: UserStore = request.app.state.user_store
    connector: InstagramConnector = request.app.state.instagram

    if not state:
        raise InvalidInput("Missing OAuth state.")
    record = user_store.consume_oauth_state(state, settings.oauth_state_ttl_seconds)
    if record is None:
        raise InvalidInput("Invalid or expired OAuth state.")
    if not code:
        raise InvalidInput("Missing authorization code.")

    linkage = connector.complete(code)
    user_store.update_external_linkage(record.user_id, linkage)
    logger.info("User %d connected Instagram account %s", record.user_id, linkage.ig_user_id)
    return RedirectResponse(f"{settings.frontend_url}?{urlencode({'ig': 'connected'})}", status_code=302)
