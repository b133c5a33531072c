"""
auth/tokens.py -- JWT token service, password hashing, and credential checks.

Security design decisions:
  JWT: python-jose with HS256. Tokens are signed with Settings.secret_key and
       carry user_id and expiry (30 days by default). TokenService.verify()
       raises Unauthenticated on any failure -- the error handler in
       api/main.py turns that into a 401. There is no server-side session
       and no revocation list; a token stays valid until it expires.

  Passwords: bcrypt directly. The _DUMMY_HASH constant enables timing
       equalization in authenticate_user() so response time does not reveal
       whether an email is registered [C1].

  SECRET_KEY: TokenService is built once in the lifespan from the frozen
       Settings instance and kept on app.state. Nothing here reads
       configuration at import time.

Layer rule: no imports from api/ or posts/. Import from core/ is allowed --
core/ is the kernel and has no reverse dependencies.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING

import bcrypt
from jose import JWTError, jwt
from sqlalchemy.exc import IntegrityError

from auth.models import User
from core.config import Settings
from core.errors import Conflict, InvalidInput, Unauthenticated

if TYPE_CHECKING:
    from auth.store import UserStore

logger = logging.getLogger("instacatalog.auth")

_ALGORITHM = "HS256"

MIN_PASSWORD_LENGTH = 6

# ---------------------------------------------------------------------------
# Password hashing (bcrypt -- direct usage, no passlib wrapper)
# ---------------------------------------------------------------------------


def hash_password(plain: str) -> str:
    """Return a bcrypt hash of the given plaintext password.

    Passwords longer than 72 bytes are truncated by bcrypt. The API layer
    caps the field at 255 characters.
    """
    return bcrypt.hashpw(plain.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    """Return True if the plaintext password matches the bcrypt hash."""
    try:
        return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        # Malformed stored hash
        return False


# Timing equalization dummy hash [C1]. Computed once at module load so the
# first login attempt is not measurably slower than later ones.
_DUMMY_HASH: str = hash_password("instacatalog_timing_dummy")


# ---------------------------------------------------------------------------
# Token service
# ---------------------------------------------------------------------------


class TokenService:
    """Issues and verifies signed, time-limited identity tokens.

    Usage:
        tokens = TokenService(get_settings())
        token = tokens.issue(user_id)
        user_id = tokens.verify(token)   # raises Unauthenticated
    """

    def __init__(self, settings: Settings) -> None:
        self._secret_key = settings.secret_key
        self._lifetime = timedelta(days=settings.token_expire_days)

    def issue(self, user_id: int) -> str:
        """Encode a signed JWT for user_id, expiring after the configured lifetime."""
        expire = datetime.now(timezone.utc) + self._lifetime
        payload = {
            "sub": str(user_id),
            "user_id": user_id,
            "exp": expire,
        }
        return jwt.encode(payload, self._secret_key, algorithm=_ALGORITHM)

    def verify(self, token: str | None) -> int:
        """Decode token and return the user_id it carries.

        Raises Unauthenticated if the token is missing, malformed, expired,
        signed with a different key, or carries anything other than a
        positive integer user_id.
        """
        if not token:
            raise Unauthenticated("Not logged in (missing token).")
        try:
            payload = jwt.decode(token, self._secret_key, algorithms=[_ALGORITHM])
        except JWTError as exc:
            raise Unauthenticated("Token expired or invalid.") from exc

        user_id = payload.get("user_id")
        # bool is a subclass of int; a token carrying `true` is not user 1.
        if isinstance(user_id, bool) or not isinstance(user_id, int) or user_id <= 0:
            raise Unauthenticated("Invalid token payload.")
        return user_id


# ---------------------------------------------------------------------------
# Account registration and login
# ---------------------------------------------------------------------------


def register_user(store: UserStore, email: str | None, password: str | None) -> int:
    """Create an account and return its user ID.

    Raises:
        InvalidInput: email or password missing, or password too short.
        Conflict:     email already registered.
    """
    if not email or not password:
        raise InvalidInput("Email and password required.")
    if len(password) < MIN_PASSWORD_LENGTH:
        raise InvalidInput(f"Password must be at least {MIN_PASSWORD_LENGTH} characters.")

    if store.get_by_email(email) is not None:
        raise Conflict("Email already registered.")

    try:
        user_id = store.create_user(User(email=email, hashed_password=hash_password(password)))
    except IntegrityError as exc:
        # A concurrent signup inserted the same email after our pre-check.
        raise Conflict("Email already registered.") from exc

    logger.info("Registered user %d", user_id)
    return user_id


def authenticate_user(store: UserStore, email: str, password: str) -> User | None:
    """Check an email/password login with timing equalization [C1].

    Always runs bcrypt whether or not the user exists:
    - Unknown email: bcrypt runs against _DUMMY_HASH (same cost as real check)
    - Wrong password: bcrypt runs against the real hash (same cost)

    Returns the User on success, None on any failure.
    """
    user = store.get_by_email(email)
    if user is None:
        # Equalize timing -- do NOT return early before running bcrypt [C1]
        verify_password(password, _DUMMY_HASH)
        return None
    if not verify_password(password, user.hashed_password):
        return None
    return user
