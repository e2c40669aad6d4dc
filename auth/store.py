"""
auth/store.py -- SQLAlchemy Core persistence layer for auth entities.

Pattern: Repository + Data Mapper (same as content/store.py).
UserStore owns two tables:
  users           -- exposed as the generic Repository `store.users`
  refresh_tokens  -- each user's set of active refresh-token identifiers (jti)

Route and service code never touches SQL directly.

Rotation atomicity:
  rotate_refresh_token() runs mark-old-rotated + INSERT-new inside one
  engine.begin() transaction, and the UPDATE is conditional on the jti still
  being active (rowcount must be 1). Two concurrent refreshes with the same
  token serialize on the UPDATE; only the first sees rowcount 1, the second
  inserts nothing. There is never a moment where both old and new are valid.

How a jti leaves the active set:
  rotation  -- the row stays, with rotated_at set, until it expires. Seeing
               that jti again is reuse (was_rotated() is True).
  logout    -- the row is deleted. Seeing that jti again is just unknown.

Security:
  All queries use bound parameters. No f-strings in SQL.

Layer rule: no imports from api/ or content/.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

from sqlalchemy import Column, Integer, MetaData, String, Table, Text, UniqueConstraint, or_, text

from auth.models import RefreshTokenRecord, User
from core.db import make_engine
from core.repository import Repository, now_iso

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_users = Table(
    "users",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("username", String(255), nullable=False, unique=True),
    Column("email", String(255), nullable=False, unique=True),
    Column("hashed_password", Text, nullable=False),
    Column("created_at", String(32), nullable=False),
)

_refresh_tokens = Table(
    "refresh_tokens",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("user_id", Integer, nullable=False, index=True),
    Column("jti", String(64), nullable=False),
    Column("issued_at", String(32), nullable=False),
    Column("expires_at", String(32), nullable=False),
    Column("rotated_at", String(32), nullable=True),
    UniqueConstraint("jti", name="uq_refresh_jti"),
)


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class UserStore:
    """Repository for User records and their refresh-token sets.

    Usage:
        store = UserStore("sqlite:///postboard.db")
        user = store.users.create(username="alice", email="a@x.com", hashed_password=...)
        store.add_refresh_token(user.id, jti, expires_at)
        store.rotate_refresh_token(user.id, jti, new_jti, new_expires_at)
        store.close()
    """

    def __init__(self, db_url: str) -> None:
        self.engine = make_engine(db_url)
        _metadata.create_all(self.engine)
        self.users: Repository[User] = Repository(self.engine, _users, _row_to_user)

    # ------------------------------------------------------------------
    # User queries
    # ------------------------------------------------------------------

    def get_by_id(self, user_id: int) -> User | None:
        return self.users.get_by_id(user_id)

    def get_by_identifier(self, identifier: str) -> User | None:
        """Look up a user whose username OR email equals identifier (case-sensitive).

        Usernames and emails share no namespace check, so in the unlikely case
        one user's username equals another user's email, the lowest id wins.
        """
        with self.engine.connect() as conn:
            row = conn.execute(
                _users.select()
                .where(or_(_users.c.username == identifier, _users.c.email == identifier))
                .order_by(_users.c.id)
            ).first()
        return _row_to_user(row) if row is not None else None

    def find_conflict(self, username: str | None, email: str | None, exclude_id: int | None = None) -> str | None:
        """Return "username" or "email" if either value is already taken by another user.

        Used by register and PUT /users to produce a readable 409 before the
        INSERT/UPDATE. The UNIQUE constraints remain the final authority for
        concurrent writers.
        """
        with self.engine.connect() as conn:
            for field, value in (("username", username), ("email", email)):
                if value is None:
                    continue
                stmt = _users.select().where(_users.c[field] == value)
                if exclude_id is not None:
                    stmt = stmt.where(_users.c.id != exclude_id)
                if conn.execute(stmt).first() is not None:
                    return field
        return None

    def delete_user(self, user_id: int) -> User | None:
        """Delete a user and every refresh token they hold, in one transaction."""
        with self.engine.begin() as conn:
            row = conn.execute(_users.select().where(_users.c.id == user_id)).fetchone()
            if row is None:
                return None
            conn.execute(_refresh_tokens.delete().where(_refresh_tokens.c.user_id == user_id))
            conn.execute(_users.delete().where(_users.c.id == user_id))
        return _row_to_user(row)

    # ------------------------------------------------------------------
    # Refresh-token set
    # ------------------------------------------------------------------

    def add_refresh_token(self, user_id: int, jti: str, expires_at: str) -> None:
        """Record a newly issued refresh token and prune the user's expired ones."""
        with self.engine.begin() as conn:
            conn.execute(
                _refresh_tokens.delete().where(
                    (_refresh_tokens.c.user_id == user_id) & (_refresh_tokens.c.expires_at < now_iso())
                )
            )
            conn.execute(
                _refresh_tokens.insert().values(
                    user_id=user_id,
                    jti=jti,
                    issued_at=now_iso(),
                    expires_at=expires_at,
                )
            )

    def rotate_refresh_token(self, user_id: int, old_jti: str, new_jti: str, expires_at: str) -> bool:
        """Atomically replace old_jti with new_jti in the user's active set.

        old_jti is marked rotated rather than deleted so a later replay can be
        told apart from a logged-out token. Returns False (and writes nothing)
        if old_jti is not currently active for user_id.
        """
        now = now_iso()
        with self.engine.begin() as conn:
            result = conn.execute(
                _refresh_tokens.update()
                .where(
                    (_refresh_tokens.c.user_id == user_id)
                    & (_refresh_tokens.c.jti == old_jti)
                    & _refresh_tokens.c.rotated_at.is_(None)
                )
                .values(rotated_at=now)
            )
            if result.rowcount != 1:
                return False
            conn.execute(
                _refresh_tokens.insert().values(
                    user_id=user_id,
                    jti=new_jti,
                    issued_at=now,
                    expires_at=expires_at,
                )
            )
        return True

    def was_rotated(self, user_id: int, jti: str) -> bool:
        """True if jti belonged to user_id and was already consumed by a rotation."""
        with self.engine.connect() as conn:
            row = conn.execute(
                _refresh_tokens.select().where(
                    (_refresh_tokens.c.user_id == user_id)
                    & (_refresh_tokens.c.jti == jti)
                    & _refresh_tokens.c.rotated_at.is_not(None)
                )
            ).first()
        return row is not None

    def remove_refresh_token(self, user_id: int, jti: str) -> bool:
        """Remove one active jti (logout). Returns False if it was not active."""
        with self.engine.begin() as conn:
            result = conn.execute(
                _refresh_tokens.delete().where(
                    (_refresh_tokens.c.user_id == user_id)
                    & (_refresh_tokens.c.jti == jti)
                    & _refresh_tokens.c.rotated_at.is_(None)
                )
            )
        return result.rowcount > 0

    def revoke_all_refresh_tokens(self, user_id: int) -> int:
        """Drop every token row for the user. Returns how many were still active."""
        with self.engine.begin() as conn:
            active = conn.execute(
                _refresh_tokens.delete().where(
                    (_refresh_tokens.c.user_id == user_id) & _refresh_tokens.c.rotated_at.is_(None)
                )
            ).rowcount
            conn.execute(_refresh_tokens.delete().where(_refresh_tokens.c.user_id == user_id))
        return active

    def active_refresh_tokens(self, user_id: int) -> list[RefreshTokenRecord]:
        """Return the user's unexpired, unrotated refresh tokens, oldest first."""
        with self.engine.connect() as conn:
            rows = conn.execute(
                _refresh_tokens.select()
                .where(
                    (_refresh_tokens.c.user_id == user_id)
                    & _refresh_tokens.c.rotated_at.is_(None)
                    & (_refresh_tokens.c.expires_at >= now_iso())
                )
                .order_by(_refresh_tokens.c.id)
            ).fetchall()
        return [_row_to_refresh_token(r) for r in rows]

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def ping(self) -> None:
        """Run a trivial query. Raises SQLAlchemyError if the database is unreachable."""
        with self.engine.connect() as conn:
            conn.execute(text("SELECT 1"))

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mappers (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_user(row) -> User:
    return User(
        id=row.id,
        username=row.username,
        email=row.email,
        hashed_password=row.hashed_password,
        created_at=row.created_at,
    )


def _row_to_refresh_token(row) -> RefreshTokenRecord:
    return RefreshTokenRecord(
        id=row.id,
        user_id=row.user_id,
        jti=row.jti,
        issued_at=row.issued_at,
        expires_at=row.expires_at,
        rotated_at=row.rotated_at,
    )


def expiry_iso(seconds: int) -> str:
    """ISO 8601 UTC timestamp `seconds` from now, in the same format as now_iso()."""
    return (datetime.now(timezone.utc) + timedelta(seconds=seconds)).isoformat()
