"""
auth/tokens.py -- Password hashing, JWT encoding, and the refresh-token lifecycle.

Security design decisions:
  JWT: python-jose with HS256. Access tokens carry sub=user_id, type="access",
       iat and exp, and are never persisted. Refresh tokens additionally carry
       a jti and are signed with a *different* secret; the jti is recorded in
       the owner's active set (UserStore refresh_tokens table).

  Rotation: every successful /auth/refresh consumes the presented refresh
       token and issues a new pair. The consume-and-replace is a single
       conditional transaction in UserStore.rotate_refresh_token().

  Reuse: a correctly signed refresh token whose jti was already rotated means
       the token was used twice -- most likely by someone else. A jti removed
       by logout is merely unrecognized and leaves other sessions alone. When
       Settings.revoke_all_on_reuse is on, every session for that user is
       revoked and the user must log in again everywhere.

  Passwords: bcrypt directly (no passlib wrapper). The _DUMMY_HASH constant
       enables timing equalization in authenticate_user() so response time
       does not reveal whether an identifier exists.

Layer rule: no imports from api/ or content/. Import from core/ is allowed.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING

import bcrypt
from jose import ExpiredSignatureError, JWTError, jwt

from auth.models import TokenPair
from auth.store import expiry_iso
from core.config import Settings, get_settings
from core.errors import InvalidToken, TokenExpired, TokenNotRecognized

if TYPE_CHECKING:
    from auth.models import User
    from auth.store import UserStore

logger = logging.getLogger("postboard.auth")

_ALGORITHM = "HS256"

# ---------------------------------------------------------------------------
# Password hashing (bcrypt -- direct usage, no passlib wrapper)
# ---------------------------------------------------------------------------


def hash_password(plain: str) -> str:
    """Return a bcrypt hash of the given plaintext password.

    Passwords longer than 72 bytes are silently truncated by bcrypt. The API
    layer caps password length at 72 characters to stay below that threshold
    for ASCII input.
    """
    salt = bcrypt.gensalt(rounds=get_settings().bcrypt_rounds)
    return bcrypt.hashpw(plain.encode("utf-8"), salt).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    """Return True if the plaintext password matches the bcrypt hash."""
    try:
        return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        # Malformed stored hash
        return False


# Computed once at module load so the first login attempt is not measurably
# slower than subsequent ones.
_DUMMY_HASH: str = hash_password("postboard_timing_dummy")


def authenticate_user(store: UserStore, identifier: str, password: str) -> User | None:
    """Authenticate a username-or-email / password pair with timing equalization.

    Always runs bcrypt whether or not the user exists:
    - Unknown identifier: bcrypt runs against _DUMMY_HASH (same cost as real check)
    - Wrong password: bcrypt runs against the real hash (same cost)

    Returns the User on success, None on any failure.
    """
    user = store.get_by_identifier(identifier)
    if user is None:
        verify_password(password, _DUMMY_HASH)
        return None
    if not verify_password(password, user.hashed_password):
        return None
    return user


def new_jti() -> str:
    return uuid.uuid4().hex


# ---------------------------------------------------------------------------
# Token service
# ---------------------------------------------------------------------------


class TokenService:
    """Issues, verifies, rotates, and revokes access/refresh token pairs.

    One instance lives on app.state.tokens for the lifetime of the app. It
    holds no per-request state; everything mutable is in the UserStore.
    """

    def __init__(self, store: UserStore, settings: Settings) -> None:
        self.store = store
        self.settings = settings

    # ------------------------------------------------------------------
    # Encoding
    # ------------------------------------------------------------------

    def create_access_token(self, user_id: int, expires_delta: timedelta | None = None) -> str:
        """Encode a signed access token for user_id.

        expires_delta defaults to Settings.access_token_expire_seconds. Tests
        pass a negative delta to mint an already-expired token.
        """
        now = datetime.now(timezone.utc)
        if expires_delta is None:
            expires_delta = timedelta(seconds=self.settings.access_token_expire_seconds)
        payload = {
            "sub": str(user_id),
            "type": "access",
            "iat": now,
            "exp": now + expires_delta,
        }
        return jwt.encode(payload, self.settings.access_token_secret, algorithm=_ALGORITHM)

    def create_refresh_token(self, user_id: int, jti: str, expires_delta: timedelta | None = None) -> str:
        now = datetime.now(timezone.utc)
        if expires_delta is None:
            expires_delta = timedelta(seconds=self.settings.refresh_token_expire_seconds)
        payload = {
            "sub": str(user_id),
            "jti": jti,
            "type": "refresh",
            "iat": now,
            "exp": now + expires_delta,
        }
        return jwt.encode(payload, self.settings.refresh_token_secret, algorithm=_ALGORITHM)

    # ------------------------------------------------------------------
    # Decoding
    # ------------------------------------------------------------------

    @staticmethod
    def _decode(token: str, secret: str, expected_type: str) -> dict:
        """Verify signature, expiry, and token type. Raises InvalidToken or TokenExpired.

        ExpiredSignatureError is a JWTError subclass, so it must be caught first.
        """
        try:
            payload = jwt.decode(token, secret, algorithms=[_ALGORITHM])
        except ExpiredSignatureError as exc:
            raise TokenExpired() from exc
        except JWTError as exc:
            raise InvalidToken(detail=str(exc)) from exc
        if payload.get("type") != expected_type:
            raise InvalidToken(detail=f"expected a {expected_type} token")
        try:
            payload["sub"] = int(payload["sub"])
        except (KeyError, TypeError, ValueError) as exc:
            raise InvalidToken(detail="missing or malformed subject") from exc
        return payload

    def verify_access(self, token: str) -> int:
        """Return the user id carried by a valid access token."""
        payload = self._decode(token, self.settings.access_token_secret, "access")
        return payload["sub"]

    def _decode_refresh(self, token: str) -> tuple[int, str]:
        payload = self._decode(token, self.settings.refresh_token_secret, "refresh")
        jti = payload.get("jti")
        if not jti:
            raise InvalidToken(detail="missing jti")
        return payload["sub"], jti

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def issue_pair(self, user_id: int) -> TokenPair:
        """Mint an access/refresh pair and add the refresh jti to the user's active set."""
        jti = new_jti()
        refresh_token = self.create_refresh_token(user_id, jti)
        self.store.add_refresh_token(user_id, jti, expiry_iso(self.settings.refresh_token_expire_seconds))
        return TokenPair(
            user_id=user_id,
            access_token=self.create_access_token(user_id),
            refresh_token=refresh_token,
            expires_in=self.settings.access_token_expire_seconds,
        )

    def rotate(self, refresh_token: str) -> TokenPair:
        """Consume refresh_token and return a fresh pair.

        Raises InvalidToken / TokenExpired for a bad signature or expiry, and
        TokenNotRecognized if the jti is not in the user's active set -- the
        signature alone never makes a refresh token usable.
        """
        user_id, jti = self._decode_refresh(refresh_token)
        replacement = new_jti()
        rotated = self.store.rotate_refresh_token(
            user_id,
            jti,
            replacement,
            expiry_iso(self.settings.refresh_token_expire_seconds),
        )
        if not rotated:
            if self.store.was_rotated(user_id, jti):
                self._on_reuse(user_id)
            raise TokenNotRecognized()
        return TokenPair(
            user_id=user_id,
            access_token=self.create_access_token(user_id),
            refresh_token=self.create_refresh_token(user_id, replacement),
            expires_in=self.settings.access_token_expire_seconds,
        )

    def revoke(self, refresh_token: str) -> None:
        """Remove refresh_token's jti from the active set (logout)."""
        user_id, jti = self._decode_refresh(refresh_token)
        if not self.store.remove_refresh_token(user_id, jti):
            raise TokenNotRecognized()
        logger.info("Refresh token revoked for user_id=%d", user_id)

    def _on_reuse(self, user_id: int) -> None:
        """Respond to a refresh token that was already exchanged once.

        Logged-out and never-issued jtis do not come through here.
        """
        if not self.settings.revoke_all_on_reuse:
            logger.warning("Refresh token reuse detected for user_id=%d", user_id)
            return
        revoked = self.store.revoke_all_refresh_tokens(user_id)
        logger.warning(
            "Refresh token reuse detected for user_id=%d; revoked %d active session(s)",
            user_id,
            revoked,
        )
