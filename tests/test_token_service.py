"""Unit tests for auth/tokens.py -- TokenService lifecycle and password helpers.

Covers:
- issue_pair() records the refresh jti and returns verifiable tokens
- verify_access() rejects expired, garbled, and refresh-typed tokens
- rotate() consumes the presented token exactly once
- reuse of a consumed token revokes every session (and only when enabled)
- revoke() removes one token; a second revoke is TokenNotRecognized
- a logged-out token is unrecognized but never counts as reuse
- concurrent rotations of one token: exactly one wins
- authenticate_user() by username or email
"""

import threading
from datetime import timedelta

import pytest

from auth.store import UserStore
from auth.tokens import TokenService, authenticate_user, hash_password, verify_password
from core.config import Settings
from core.errors import InvalidToken, TokenExpired, TokenNotRecognized

# ---------------------------------------------------------------------------
# Shared fixtures
# ---------------------------------------------------------------------------


def _settings(**overrides) -> Settings:
    values = {
        "debug": True,
        "access_token_secret": "a" * 32,
        "refresh_token_secret": "r" * 32,
        "bcrypt_rounds": 4,
    }
    values.update(overrides)
    return Settings(**values)


@pytest.fixture
def store():
    s = UserStore("sqlite:///:memory:")
    yield s
    s.close()


@pytest.fixture
def user_id(store) -> int:
    user = store.users.create(username="alice", email="alice@example.com", hashed_password=hash_password("pw-alice"))
    return user.id


@pytest.fixture
def tokens(store) -> TokenService:
    return TokenService(store, _settings())


# ---------------------------------------------------------------------------
# Passwords
# ---------------------------------------------------------------------------


def test_password_hash_round_trip():
    hashed = hash_password("s3cret")
    assert hashed != "s3cret"
    assert verify_password("s3cret", hashed)
    assert not verify_password("wrong", hashed)


def test_verify_password_tolerates_malformed_hash():
    assert verify_password("anything", "not-a-bcrypt-hash") is False


def test_authenticate_by_username_or_email(store, user_id):
    assert authenticate_user(store, "alice", "pw-alice").id == user_id
    assert authenticate_user(store, "alice@example.com", "pw-alice").id == user_id
    assert authenticate_user(store, "alice", "nope") is None
    assert authenticate_user(store, "bob", "pw-alice") is None


# ---------------------------------------------------------------------------
# Issue / verify
# ---------------------------------------------------------------------------


def test_issue_pair_records_refresh_token(tokens, store, user_id):
    pair = tokens.issue_pair(user_id)
    assert pair.user_id == user_id
    assert pair.expires_in == 900
    assert tokens.verify_access(pair.access_token) == user_id
    assert len(store.active_refresh_tokens(user_id)) == 1


def test_expired_access_token(tokens, user_id):
    expired = tokens.create_access_token(user_id, timedelta(seconds=-5))
    with pytest.raises(TokenExpired):
        tokens.verify_access(expired)


def test_garbled_access_token(tokens):
    with pytest.raises(InvalidToken):
        tokens.verify_access("abc.def.ghi")


def test_refresh_token_rejected_as_access(tokens, user_id):
    pair = tokens.issue_pair(user_id)
    with pytest.raises(InvalidToken):
        tokens.verify_access(pair.refresh_token)


def test_token_signed_with_other_secret_is_rejected(store, user_id):
    foreign = TokenService(store, _settings(access_token_secret="x" * 32))
    with pytest.raises(InvalidToken):
        TokenService(store, _settings()).verify_access(foreign.create_access_token(user_id))


# ---------------------------------------------------------------------------
# Rotation
# ---------------------------------------------------------------------------


def test_rotate_replaces_the_token(tokens, store, user_id):
    pair = tokens.issue_pair(user_id)
    old_jti = store.active_refresh_tokens(user_id)[0].jti

    rotated = tokens.rotate(pair.refresh_token)
    assert rotated.refresh_token != pair.refresh_token
    active = [r.jti for r in store.active_refresh_tokens(user_id)]
    assert len(active) == 1
    assert old_jti not in active


def test_rotate_twice_fails(tokens, user_id):
    pair = tokens.issue_pair(user_id)
    tokens.rotate(pair.refresh_token)
    with pytest.raises(TokenNotRecognized):
        tokens.rotate(pair.refresh_token)


def test_reuse_revokes_all_sessions(tokens, store, user_id):
    first = tokens.issue_pair(user_id)
    second = tokens.issue_pair(user_id)
    rotated = tokens.rotate(first.refresh_token)

    with pytest.raises(TokenNotRecognized):
        tokens.rotate(first.refresh_token)

    assert store.active_refresh_tokens(user_id) == []
    with pytest.raises(TokenNotRecognized):
        tokens.rotate(rotated.refresh_token)
    with pytest.raises(TokenNotRecognized):
        tokens.rotate(second.refresh_token)


def test_reuse_without_revoke_all_keeps_other_sessions(store, user_id):
    tokens = TokenService(store, _settings(revoke_all_on_reuse=False))
    pair = tokens.issue_pair(user_id)
    rotated = tokens.rotate(pair.refresh_token)

    with pytest.raises(TokenNotRecognized):
        tokens.rotate(pair.refresh_token)
    assert tokens.rotate(rotated.refresh_token).user_id == user_id


def test_rotate_expired_refresh_token(tokens, store, user_id):
    stale = tokens.create_refresh_token(user_id, "stale-jti", timedelta(seconds=-5))
    with pytest.raises(TokenExpired):
        tokens.rotate(stale)


def test_rotate_unknown_jti(tokens, user_id):
    forged = tokens.create_refresh_token(user_id, "never-issued")
    with pytest.raises(TokenNotRecognized):
        tokens.rotate(forged)


def test_rotate_for_deleted_user(tokens, store, user_id):
    pair = tokens.issue_pair(user_id)
    store.delete_user(user_id)
    with pytest.raises(TokenNotRecognized):
        tokens.rotate(pair.refresh_token)


# ---------------------------------------------------------------------------
# Revocation
# ---------------------------------------------------------------------------


def test_revoke_removes_only_that_token(tokens, store, user_id):
    kept = tokens.issue_pair(user_id)
    dropped = tokens.issue_pair(user_id)
    tokens.revoke(dropped.refresh_token)

    assert len(store.active_refresh_tokens(user_id)) == 1
    with pytest.raises(TokenNotRecognized):
        tokens.revoke(dropped.refresh_token)
    assert tokens.rotate(kept.refresh_token).user_id == user_id


def test_revoke_garbled_token(tokens):
    with pytest.raises(InvalidToken):
        tokens.revoke("garbage")


def test_logged_out_token_is_not_treated_as_reuse(tokens, store, user_id):
    """Refreshing with a logged-out token fails without touching other sessions."""
    kept = tokens.issue_pair(user_id)
    logged_out = tokens.issue_pair(user_id)
    tokens.revoke(logged_out.refresh_token)

    with pytest.raises(TokenNotRecognized):
        tokens.rotate(logged_out.refresh_token)

    assert len(store.active_refresh_tokens(user_id)) == 1
    assert tokens.rotate(kept.refresh_token).user_id == user_id


def test_logout_of_rotated_token_is_unrecognized(tokens, user_id):
    pair = tokens.issue_pair(user_id)
    tokens.rotate(pair.refresh_token)
    with pytest.raises(TokenNotRecognized):
        tokens.revoke(pair.refresh_token)


# ---------------------------------------------------------------------------
# Concurrency
# ---------------------------------------------------------------------------


@pytest.mark.parametrize("attempt", range(5))
def test_concurrent_rotation_has_one_winner(tmp_path, attempt):
    """N threads race to rotate the same refresh token; exactly one succeeds.

    Uses a file-backed database so each thread gets its own pooled connection.
    """
    file_store = UserStore(f"sqlite:///{tmp_path / 'race.db'}")
    try:
        uid = file_store.users.create(username="racer", email="racer@example.com", hashed_password="x").id
        service = TokenService(file_store, _settings())
        pair = service.issue_pair(uid)

        workers = 8
        barrier = threading.Barrier(workers)
        results: list[str] = []
        lock = threading.Lock()

        def race() -> None:
            barrier.wait()
            try:
                service.rotate(pair.refresh_token)
                outcome = "ok"
            except TokenNotRecognized:
                outcome = "not_recognized"
            except Exception as exc:  # noqa: BLE001 -- recorded and asserted below
                outcome = repr(exc)
            with lock:
                results.append(outcome)

        threads = [threading.Thread(target=race) for _ in range(workers)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert results.count("ok") == 1, results
        assert results.count("not_recognized") == workers - 1, results
    finally:
        file_store.close()
