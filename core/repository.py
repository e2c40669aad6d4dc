"""
core/repository.py -- Generic SQLAlchemy Core table gateway.

Pattern: Repository + Data Mapper. A Repository wraps one Table and one
row-mapper function; it knows nothing about the entity beyond the columns
it is asked to read or write. UserStore and ContentStore each build one
Repository per table and expose it as an attribute, so the generic CRUD
controller (api/crud.py) can drive Users, Posts, and Comments identically.

Errors: SQLAlchemy exceptions propagate untouched. Mapping them onto the
application taxonomy is the controller's job, not the store's.

Security: all queries use bound parameters. Column names for filters and
updates are checked against the Table's own columns before use.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Callable, Generic, TypeVar

from sqlalchemy import Table
from sqlalchemy.engine import Engine, Row

T = TypeVar("T")


def now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class Repository(Generic[T]):
    """CRUD operations over a single table with an integer "id" primary key.

    Usage:
        posts = Repository(engine, _posts, _row_to_post)
        post = posts.create(user_id=1, message="hello")
        posts.list(user_id=1)
        posts.update(post.id, message="edited")
        posts.delete(post.id)
    """

    def __init__(self, engine: Engine, table: Table, mapper: Callable[[Row], T]) -> None:
        self.engine = engine
        self.table = table
        self._mapper = mapper

    def _check_columns(self, names) -> None:
        unknown = set(names) - set(self.table.c.keys())
        if unknown:
            raise ValueError(f"Unknown {self.table.name} columns: {sorted(unknown)!r}")

    def list(self, newest_first: bool = False, **filters: Any) -> list[T]:
        """Return all rows, optionally narrowed by column equality filters.

        Filters whose value is None are ignored so route handlers can pass
        optional query parameters straight through.
        """
        filters = {k: v for k, v in filters.items() if v is not None}
        self._check_columns(filters)
        stmt = self.table.select()
        for name, value in filters.items():
            stmt = stmt.where(self.table.c[name] == value)
        order = self.table.c.id.desc() if newest_first else self.table.c.id
        with self.engine.connect() as conn:
            rows = conn.execute(stmt.order_by(order)).fetchall()
        return [self._mapper(r) for r in rows]

    def get_by_id(self, entity_id: int) -> T | None:
        with self.engine.connect() as conn:
            row = conn.execute(self.table.select().where(self.table.c.id == entity_id)).fetchone()
        return self._mapper(row) if row is not None else None

    def create(self, **values: Any) -> T:
        """Insert a row and return the mapped entity.

        Stamps created_at when the table has that column and the caller did
        not supply it. Raises IntegrityError on unique-constraint violations.
        """
        self._check_columns(values)
        if "created_at" in self.table.c and "created_at" not in values:
            values["created_at"] = now_iso()
        with self.engine.begin() as conn:
            result = conn.execute(self.table.insert().values(**values))
            new_id = result.inserted_primary_key[0]
            row = conn.execute(self.table.select().where(self.table.c.id == new_id)).fetchone()
        return self._mapper(row)

    def update(self, entity_id: int, **values: Any) -> T | None:
        """Apply a partial update. Returns the updated entity, or None if id is unknown."""
        self._check_columns(values)
        with self.engine.begin() as conn:
            if values:
                result = conn.execute(self.table.update().where(self.table.c.id == entity_id).values(**values))
                if result.rowcount == 0:
                    return None
            row = conn.execute(self.table.select().where(self.table.c.id == entity_id)).fetchone()
        return self._mapper(row) if row is not None else None

    def delete(self, entity_id: int) -> T | None:
        """Delete a row and return it as it was, or None if id is unknown."""
        with self.engine.begin() as conn:
            row = conn.execute(self.table.select().where(self.table.c.id == entity_id)).fetchone()
            if row is None:
                return None
            conn.execute(self.table.delete().where(self.table.c.id == entity_id))
        return self._mapper(row)
