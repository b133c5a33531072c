"""
auth/instagram.py -- Facebook Login / Instagram Graph API account linkage.

Flow:
  1. GET /auth/instagram/start: the route stores a fresh state value
     (UserStore.create_oauth_state) and redirects to authorization_url(state).
  2. Facebook redirects back to GET /auth/instagram/callback?code=&state=.
     The route consumes the state (single use) and calls complete(code).
  3. complete() exchanges the code for a short-lived user token (Authlib),
     swaps it for a long-lived token, and finds the first Facebook page that
     has an Instagram business account attached (requests, Graph API).

The connector is built once from Settings in the lifespan. It is "configured"
only when app id, app secret and redirect URI are all set; the start route
answers 400 otherwise.

Security notes:
  The OAuth state parameter is not kept in a session cookie. It is persisted
  in oauth_states and deleted on first use, so a replayed or forged callback
  is rejected before any token exchange happens.

Layer rule: no imports from api/ or posts/. Import from core/ is allowed.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone

import requests
from authlib.common.errors import AuthlibBaseError
from authlib.integrations.requests_client import OAuth2Session

from auth.models import InstagramLinkage
from core.config import Settings
from core.errors import ExternalServiceFailure, InvalidInput

logger = logging.getLogger("instacatalog.auth.instagram")

GRAPH_VERSION = "v19.0"
AUTHORIZE_URL = f"https://www.facebook.com/{GRAPH_VERSION}/dialog/oauth"
GRAPH_API = f"https://graph.facebook.com/{GRAPH_VERSION}/"
TOKEN_URL = f"{GRAPH_API}oauth/access_token"

# Facebook expects a comma-separated scope string.
SCOPES = "instagram_basic,instagram_content_publish,pages_show_list,pages_read_engagement"

_GRAPH_TIMEOUT = 10


class InstagramConnector:
    """Builds authorization URLs and completes the code exchange."""

    def __init__(self, settings: Settings, session: requests.Session | None = None) -> None:
        self._client_id = settings.meta_app_id
        self._client_secret = settings.meta_app_secret
        self._redirect_uri = settings.meta_redirect_uri
        # Shared session for Graph API calls. max_redirects=3 replaces the
        # requests default of 30 -- these are known endpoints.
        self._session = session or requests.Session()
        self._session.max_redirects = 3

    @property
    def configured(self) -> bool:
        return bool(self._client_id and self._client_secret and self._redirect_uri)

    def _oauth_client(self) -> OAuth2Session:
        return OAuth2Session(
            client_id=self._client_id,
            client_secret=self._client_secret,
            scope=SCOPES,
            redirect_uri=self._redirect_uri,
            token_endpoint_auth_method="client_secret_post",
        )

    def authorization_url(self, state: str) -> str:
        """Return the Facebook Login dialog URL carrying the given state."""
        url, _state = self._oauth_client().create_authorization_url(AUTHORIZE_URL, state=state)
        return url

    def complete(self, code: str) -> InstagramLinkage:
        """Exchange an authorization code for a linked Instagram business account.

        Raises:
            ExternalServiceFailure: any Graph API / token endpoint failure.
            InvalidInput: the Facebook account has no page with an Instagram
                business account attached.
        """
        try:
            short_lived = self._oauth_client().fetch_token(TOKEN_URL, code=code)
            access_token, expires_at = self._exchange_long_lived(short_lived["access_token"])
            page_id, ig_user_id = self._find_business_account(access_token)
        except (requests.RequestException, AuthlibBaseError, KeyError, ValueError) as exc:
            logger.warning("Instagram OAuth exchange failed: %s", exc)
            raise ExternalServiceFailure("Could not complete Instagram authorization.") from exc

        if ig_user_id is None:
            raise InvalidInput("No Instagram business account is linked to your Facebook pages.")

        return InstagramLinkage(
            page_id=page_id,
            ig_user_id=ig_user_id,
            ig_access_token=access_token,
            ig_token_expires_at=expires_at,
        )

    def _exchange_long_lived(self, short_lived_token: str) -> tuple[str, str | None]:
        """Swap a short-lived user token for a ~60 day token.

        Returns (access_token, ISO expiry or None when the Graph API omits expires_in).
        """
        resp = self._session.get(
            TOKEN_URL,
            params={
                "grant_type": "fb_exchange_token",
                "client_id": self._client_id,
                "client_secret": self._client_secret,
                "fb_exchange_token": short_lived_token,
            },
            timeout=_GRAPH_TIMEOUT,
        )
        resp.raise_for_status()
        data = resp.json()
        expires_in = data.get("expires_in")
        expires_at = None
        if expires_in:
            expires_at = (datetime.now(timezone.utc) + timedelta(seconds=int(expires_in))).isoformat()
        return data["access_token"], expires_at

    def _find_business_account(self, access_token: str) -> tuple[str | None, str | None]:
        """Return (page_id, ig_user_id) for the first page with a business account."""
        resp = self._session.get(
            f"{GRAPH_API}me/accounts",
            params={"fields": "id,instagram_business_account", "access_token": access_token},
            timeout=_GRAPH_TIMEOUT,
        )
        resp.raise_for_status()
        for page in resp.json().get("data", []):
            account = page.get("instagram_business_account")
            if account and account.get("id"):
                return page["id"], account["id"]
        return None, None
