"""
auth/dependencies.py -- FastAPI Depends() helpers for authentication.

Credentials arrive only as an "Authorization: Bearer <token>" header. The
same header carries the access token on API calls and the refresh token on
GET /auth/refresh and GET /auth/logout.

get_current_identity() verifies the access token and returns an Identity.
Handlers receive it as an ordinary argument; nothing is written onto the
request object. Access tokens are stateless, so no store lookup happens here.

Layer rule: no imports from api/ or content/.
  auth/dependencies.py may import from fastapi (for Request) because this
  module is part of the FastAPI dependency injection system.
"""

from __future__ import annotations

from fastapi import Request

from auth.models import Identity
from auth.tokens import TokenService
from core.errors import Unauthenticated


def bearer_token(request: Request) -> str | None:
    """Return the token from an Authorization: Bearer header, or None if absent/malformed."""
    scheme, _, token = request.headers.get("Authorization", "").partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


def require_bearer_token(request: Request) -> str:
    """Require a bearer credential. Raises Unauthenticated (401) if the header is missing."""
    token = bearer_token(request)
    if token is None:
        raise Unauthenticated("Bearer token required.")
    return token


def get_current_identity(request: Request) -> Identity:
    """Require a valid access token. Raises Unauthenticated (401) otherwise.

    Token Service failures (InvalidToken, TokenExpired) are Unauthenticated
    subclasses and propagate unchanged so clients can tell an expired token
    (refresh and retry) from a bad one (log in again).

    Use as a FastAPI dependency:
        @router.get("/protected")
        def route(identity: Identity = Depends(get_current_identity)): ...
    """
    token = require_bearer_token(request)
    tokens: TokenService = request.app.state.tokens
    return Identity(user_id=tokens.verify_access(token))
