"""
content/store.py -- SQLAlchemy-backed persistence layer for posts and comments.

Uses SQLAlchemy Core (not ORM) so the domain dataclasses in content/models.py
remain the authoritative domain representation. Swapping SQLite for
PostgreSQL is a connection string change, not a rewrite.

Pattern: Repository + Data Mapper. ContentStore exposes one generic
Repository per table (store.posts, store.comments) for plain CRUD and adds
the few queries that span both tables (cascading deletes, comments for a
post). The _row_to_* functions are the mappers.

No foreign keys are declared: users live in auth/store.py's metadata, and
cascades are performed explicitly inside a single transaction instead.

Usage:
    store = ContentStore("sqlite:///postboard.db")
    post = store.posts.create(user_id=1, message="hello")
    store.comments.create(post_id=post.id, user_id=2, text="hi")
    store.comments_for_post(post.id)
    store.delete_post(post.id)
    store.close()
"""

from sqlalchemy import Column, Integer, MetaData, String, Table, Text, select

from content.models import Comment, Post
from core.db import make_engine
from core.repository import Repository

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

metadata = MetaData()

_posts = Table(
    "posts",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("user_id", Integer, nullable=False, index=True),
    Column("message", Text, nullable=False),
    Column("created_at", String(32), nullable=False),
)

_comments = Table(
    "comments",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("post_id", Integer, nullable=False, index=True),
    Column("user_id", Integer, nullable=False, index=True),
    Column("text", Text, nullable=False),
    Column("created_at", String(32), nullable=False),
)


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class ContentStore:
    def __init__(self, db_url: str) -> None:
        self.engine = make_engine(db_url)
        metadata.create_all(self.engine)
        self.posts: Repository[Post] = Repository(self.engine, _posts, _row_to_post)
        self.comments: Repository[Comment] = Repository(self.engine, _comments, _row_to_comment)

    def comments_for_post(self, post_id: int) -> list[Comment]:
        """Return a post's comments, newest first."""
        return self.comments.list(newest_first=True, post_id=post_id)

    def delete_post(self, post_id: int) -> Post | None:
        """Delete a post together with its comments. Returns the deleted post, or None."""
        with self.engine.begin() as conn:
            row = conn.execute(_posts.select().where(_posts.c.id == post_id)).fetchone()
            if row is None:
                return None
            conn.execute(_comments.delete().where(_comments.c.post_id == post_id))
            conn.execute(_posts.delete().where(_posts.c.id == post_id))
        return _row_to_post(row)

    def delete_by_user(self, user_id: int) -> None:
        """Remove everything a user authored, plus comments left on their posts.

        Called when the account itself is deleted.
        """
        with self.engine.begin() as conn:
            owned_posts = select(_posts.c.id).where(_posts.c.user_id == user_id)
            conn.execute(_comments.delete().where(_comments.c.post_id.in_(owned_posts)))
            conn.execute(_comments.delete().where(_comments.c.user_id == user_id))
            conn.execute(_posts.delete().where(_posts.c.user_id == user_id))

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mappers (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_post(row) -> Post:
    return Post(
        id=row.id,
        user_id=row.user_id,
        message=row.message,
        created_at=row.created_at,
    )


def _row_to_comment(row) -> Comment:
    return Comment(
        id=row.id,
        post_id=row.post_id,
        user_id=row.user_id,
        text=row.text,
        created_at=row.created_at,
    )
