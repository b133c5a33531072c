"""
api/routes/auth.py -- Account signup and login endpoints.

Routes:
  POST /signup  -- create an account; 409 if the email is taken
  POST /login   -- email/password login; returns an identity token

Both are public: they are how a client obtains a token in the first place.

Security:
  [C1] authenticate_user() provides timing equalization -- use it, never inline.
  [M5] Cache-Control: no-store on login responses (they carry a token).
  Wrong email and wrong password return the same 401 "unauthorized" error so
  the response does not reveal whether an email is registered.
"""

from __future__ import annotations

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from api.models import Credentials, ErrorDetail, ErrorResponse, LoginResponse, SignupResponse
from auth.store import UserStore
from auth.tokens import TokenService, authenticate_user, register_user
from core.errors import InvalidInput, Unauthenticated

router = APIRouter()


@router.post("/signup", response_model=SignupResponse)
def signup(request: Request, body: Credentials) -> SignupResponse:
    """Register a new account.

    register_user() raises InvalidInput / Conflict; the app-level handler
    renders them as 400 / 409.
    """
    user_store: UserStore = request.app.state.user_store
    user_id = register_user(user_store, body.email, body.password)
    return SignupResponse(user_id=user_id)


@router.post("/login", response_model=LoginResponse)
def login(request: Request, body: Credentials) -> JSONResponse:
    """Authenticate with email and password; return a signed identity token."""
    if not body.email or not body.password:
        raise InvalidInput("Email and password required.")

    user_store: UserStore = request.app.state.user_store
    user = authenticate_user(user_store, body.email, body.password)
    if user is None:
        exc = Unauthenticated("Invalid credentials.")
        resp = JSONResponse(
            status_code=exc.status_code,
            content=ErrorResponse(error=ErrorDetail(code=exc.code, message=exc.message)).model_dump(),
        )
        resp.headers["Cache-Control"] = "no-store"  # [M5]
        return resp

    token_service: TokenService = request.app.state.token_service
    resp = JSONResponse(
        status_code=200,
        content=LoginResponse(token=token_service.issue(user.id), user_id=user.id).model_dump(by_alias=True),
    )
    resp.headers["Cache-Control"] = "no-store"  # [M5]
    return resp
