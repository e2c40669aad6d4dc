"""
api/routes/auth.py -- Registration, login, token refresh, and logout.

Routes:
  POST /auth/register  -- create an account; 201 with the public user view
  POST /auth/login     -- username-or-email + password; 200 with a token pair
  GET  /auth/refresh   -- bearer refresh token; consumes it, 200 with a new pair
  GET  /auth/logout    -- bearer refresh token; revokes it

Security:
  POST /login and /register are rate-limited per client IP.
  authenticate_user() provides timing equalization -- use it, never inline.
  Cache-Control: no-store on every response that carries tokens.
  Every token failure on /refresh and /logout is a 401, including a
  garbled token that cannot be decoded at all.
"""

import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from api.crud import CrudController
from api.limiter import limiter
from api.models import (
    LoginRequest,
    MessageResponse,
    RegisterRequest,
    TokenPairResponse,
    UserResponse,
)
from auth.dependencies import require_bearer_token
from auth.models import TokenPair, User
from auth.store import UserStore
from auth.tokens import TokenService, authenticate_user, hash_password
from core.config import get_settings
from core.errors import BadCredentials, Conflict

logger = logging.getLogger("postboard.auth")

_AUTH_LIMIT = get_settings().login_rate_limit

router = APIRouter(prefix="/auth")


def _token_response(pair: TokenPair) -> JSONResponse:
    resp = JSONResponse(
        status_code=200,
        content=TokenPairResponse(
            access_token=pair.access_token,
            refresh_token=pair.refresh_token,
            token_type="bearer",  # noqa: S106 -- OAuth token type, not a password
            expires_in=pair.expires_in,
            user_id=pair.user_id,
        ).model_dump(),
    )
    resp.headers["Cache-Control"] = "no-store"
    return resp


@router.post("/register", response_model=UserResponse, status_code=201)
@limiter.limit(_AUTH_LIMIT)
def register(request: Request, body: RegisterRequest) -> UserResponse:
    """Create a new account.

    Duplicate username or email is a 409. The pre-check gives a precise
    message; the UNIQUE constraints still catch a concurrent duplicate, which
    the controller maps to Conflict as well.
    """
    user_store: UserStore = request.app.state.user_store
    users: CrudController[User] = request.app.state.users

    taken = user_store.find_conflict(body.username, body.email)
    if taken is not None:
        raise Conflict(f"That {taken} is already registered.")

    user = users.create(
        username=body.username,
        email=body.email,
        hashed_password=hash_password(body.password),
    )
    logger.info("Registered user_id=%d", user.id)
    return UserResponse.model_validate(user)


@router.post("/login", response_model=TokenPairResponse)
@limiter.limit(_AUTH_LIMIT)
def login(request: Request, body: LoginRequest) -> JSONResponse:
    """Authenticate with username-or-email and password; return a token pair.

    Returns the same generic error for an unknown identifier and a wrong
    password ("bad_credentials") to avoid leaking account existence.
    """
    user_store: UserStore = request.app.state.user_store
    tokens: TokenService = request.app.state.tokens

    user = authenticate_user(user_store, body.identifier, body.password)
    if user is None:
        logger.info("Failed login attempt")
        raise BadCredentials()

    return _token_response(tokens.issue_pair(user.id))


@router.get("/refresh", response_model=TokenPairResponse)
def refresh(request: Request, refresh_token: str = Depends(require_bearer_token)) -> JSONResponse:
    """Exchange a refresh token for a new pair. The presented token is consumed."""
    tokens: TokenService = request.app.state.tokens
    return _token_response(tokens.rotate(refresh_token))


@router.get("/logout", response_model=MessageResponse)
def logout(request: Request, refresh_token: str = Depends(require_bearer_token)) -> MessageResponse:
    """Revoke the presented refresh token. Other sessions stay active."""
    tokens: TokenService = request.app.state.tokens
    tokens.revoke(refresh_token)
    return MessageResponse(message="Logged out.")
