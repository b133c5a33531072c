"""
API request and response models for InstaCatalog REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in auth/models.py and
posts/models.py, which own the internal domain representation. Route handlers
map between the two.

JSON keys are camelCase (productName, userId, ...) to match the frontend;
Python attributes stay snake_case via the alias generator. Response models
are serialized by alias because FastAPI's response_model does that by default.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from posts.models import Post

_CAMEL = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class Credentials(BaseModel):
    """Request body for POST /signup and POST /login.

    Presence is enforced here (a missing key is a 400). Emptiness and the
    minimum password length are enforced by register_user() so the rule holds
    for every caller, not only HTTP.
    """

    email: str = Field(max_length=255)
    password: str = Field(max_length=255)


class PostCreate(BaseModel):
    """Request body for POST /post."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, str_strip_whitespace=True)

    product_name: str = Field(max_length=500)
    image_url: str = Field(max_length=2048)
    caption: str = Field(max_length=2200)  # Instagram caption limit


class StatusUpdate(BaseModel):
    """Request body for POST /update-status."""

    id: int = Field(gt=0)
    status: str = Field(min_length=1, max_length=20)


class PublishRequest(BaseModel):
    """Request body for POST /publish."""

    id: int = Field(gt=0)


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class SignupResponse(BaseModel):
    model_config = _CAMEL

    success: bool = True
    user_id: int


class LoginResponse(BaseModel):
    model_config = _CAMEL

    success: bool = True
    token: str
    user_id: int


class CreatedResponse(BaseModel):
    success: bool = True
    id: int


class SuccessResponse(BaseModel):
    success: bool = True


class PostResponse(BaseModel):
    """One post as returned by GET /posts."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    id: int
    user_id: int
    product_name: str
    image_url: str
    caption: str
    status: str
    created_at: str
    published_at: Optional[str] = None

    @classmethod
    def from_post(cls, post: Post) -> "PostResponse":
        """Build a PostResponse from a domain Post."""
        return cls(
            id=post.id,
            user_id=post.user_id,
            product_name=post.product_name,
            image_url=post.image_url,
            caption=post.caption,
            status=post.status.value,
            created_at=post.created_at or "",
            published_at=post.published_at,
        )


class InstagramStatusResponse(BaseModel):
    connected: bool


class ErrorDetail(BaseModel):
    """Machine-readable error payload."""

    model_config = ConfigDict(frozen=True)

    code: str
    message: str
    detail: Optional[str] = None


class ErrorResponse(BaseModel):
    """Top-level error envelope returned on 4xx/5xx responses."""

    model_config = ConfigDict(frozen=True)

    error: ErrorDetail


class HealthResponse(BaseModel):
    """Response for GET /health."""

    model_config = ConfigDict(frozen=True)

    status: str = "ok"
    version: str
