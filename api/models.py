"""
API request and response models for the Postboard REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in auth/models.py and
content/models.py, which own the internal domain representation. Route
handlers map between the two.

Request models reject missing or blank fields at the boundary; the
RequestValidationError handler in api/main.py turns that into a 400.
"""

from typing import Annotated, Optional

from pydantic import AfterValidator, BaseModel, ConfigDict, Field, StringConstraints, model_validator

# bcrypt ignores everything past 72 bytes
_PASSWORD_MAX = 72


def _not_blank(value: str) -> str:
    if not value.strip():
        raise ValueError("must not be blank")
    return value


# Passwords are hashed exactly as sent; only the other credential fields are stripped.
_Password = Annotated[str, StringConstraints(min_length=1, max_length=_PASSWORD_MAX), AfterValidator(_not_blank)]
_Name = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=255)]
_Email = Annotated[
    str,
    StringConstraints(strip_whitespace=True, min_length=3, max_length=255, pattern=r"^[^@\s]+@[^@\s]+$"),
]


# ---------------------------------------------------------------------------
# Errors and health
# ---------------------------------------------------------------------------


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

    status: str = "healthy"
    version: str
    components: dict[str, str]


# ---------------------------------------------------------------------------
# Auth
# ---------------------------------------------------------------------------


class RegisterRequest(BaseModel):
    username: _Name
    email: _Email
    password: _Password


class LoginRequest(BaseModel):
    """identifier is matched against both username and email."""

    identifier: _Name
    password: _Password


class TokenPairResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_in: int
    user_id: int


class MessageResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    message: str


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------


class UserResponse(BaseModel):
    """Public view of a User. hashed_password is never serialized."""

    model_config = ConfigDict(from_attributes=True, frozen=True)

    id: int
    username: str
    email: str
    created_at: str


class AuthorSummary(BaseModel):
    """Embedded author info on post and comment detail views."""

    model_config = ConfigDict(from_attributes=True, frozen=True)

    id: int
    username: str
    email: str


class UserUpdate(BaseModel):
    """Partial update for PUT /users. At least one field is required."""

    username: Optional[_Name] = None
    email: Optional[_Email] = None
    password: Optional[_Password] = None

    @model_validator(mode="after")
    def require_a_field(self) -> "UserUpdate":
        if self.username is None and self.email is None and self.password is None:
            raise ValueError("At least one of username, email, or password is required.")
        return self


# ---------------------------------------------------------------------------
# Posts
# ---------------------------------------------------------------------------


class PostCreate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    message: str = Field(min_length=1, max_length=10_000)


class PostUpdate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    message: str = Field(min_length=1, max_length=10_000)


class PostResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True, frozen=True)

    id: int
    user_id: int
    message: str
    created_at: str


class PostDetailResponse(PostResponse):
    """A post with its author embedded. author is None if the account was removed."""

    author: Optional[AuthorSummary] = None


# ---------------------------------------------------------------------------
# Comments
# ---------------------------------------------------------------------------


class CommentCreate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    post_id: int
    text: str = Field(min_length=1, max_length=5_000)


class CommentUpdate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    text: str = Field(min_length=1, max_length=5_000)


class CommentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True, frozen=True)

    id: int
    post_id: int
    user_id: int
    text: str
    created_at: str


class CommentDetailResponse(CommentResponse):
    author: Optional[AuthorSummary] = None
