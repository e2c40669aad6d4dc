"""
content/models.py -- Domain dataclasses for user-authored content.

These are pure data containers with zero logic. Persistence lives in
content/store.py; ownership rules live in auth/ownership.py.

Both entities carry user_id, the owning User's id, which is the only field
the ownership guard inspects.
"""

from dataclasses import dataclass
from typing import Optional


@dataclass
class Post:
    """A message published by one user.

    id is None before the record is written to the database.
    """

    user_id: int
    message: str
    id: Optional[int] = None
    created_at: str = ""  # ISO 8601, set by store on insert


@dataclass
class Comment:
    """A reply to a Post, owned by the user who wrote it."""

    post_id: int
    user_id: int
    text: str
    id: Optional[int] = None
    created_at: str = ""
