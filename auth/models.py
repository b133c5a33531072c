"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, zero logic). Stores and routes do
the work; these own the domain shape.

Layer rule: no imports from api/ or posts/.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class User:
    """A registered InstaCatalog account.

    email is unique and compared case-sensitively, exactly as stored.

    The four Instagram linkage fields stay None until the user completes the
    Facebook/Instagram OAuth flow, and return to None on disconnect:
      page_id             -- Facebook page that owns the business account
      ig_user_id          -- Instagram business account ID (publish target)
      ig_access_token     -- long-lived Graph API token
      ig_token_expires_at -- ISO 8601 expiry of that token, if the Graph API sent one
    """

    email: str
    hashed_password: str
    id: int | None = None
    created_at: str | None = None
    page_id: str | None = None
    ig_user_id: str | None = None
    ig_access_token: str | None = None
    ig_token_expires_at: str | None = None


@dataclass
class InstagramLinkage:
    """The set of external-account fields written by update_external_linkage().

    An all-None instance clears the linkage (disconnect).
    """

    page_id: str | None = None
    ig_user_id: str | None = None
    ig_access_token: str | None = None
    ig_token_expires_at: str | None = None


@dataclass
class OAuthState:
    """A single-use correlation value for one Instagram authorization attempt."""

    state: str
    user_id: int
    created_at: str
