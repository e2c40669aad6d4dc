"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, zero logic). Mirrors the approach
in content/models.py -- dataclasses own domain shape; stores and routes do
the work.

Layer rule: no imports from api/ or content/.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class User:
    """A registered account.

    hashed_password is a bcrypt hash and never leaves the server; response
    models in api/models.py omit it. Active refresh tokens are not carried
    here -- they live in the refresh_tokens table and are managed only by
    UserStore's token methods.
    """

    username: str
    email: str
    hashed_password: str
    id: int | None = None
    created_at: str | None = None


@dataclass
class RefreshTokenRecord:
    """One active refresh-token identifier in a user's session set.

    Only the jti is stored, never the encoded token itself. A row with
    rotated_at unset is active; rotated_at marks a jti already exchanged by
    /auth/refresh. Logout deletes the row.
    """

    user_id: int
    jti: str
    issued_at: str
    expires_at: str
    rotated_at: str | None = None
    id: int | None = None


@dataclass(frozen=True)
class Identity:
    """The authenticated caller, resolved from a verified access token.

    Returned by auth.dependencies.get_current_identity() and passed to route
    handlers explicitly instead of being attached to the request object.
    """

    user_id: int


@dataclass(frozen=True)
class TokenPair:
    user_id: int
    access_token: str
    refresh_token: str
    expires_in: int  # access-token lifetime in seconds
