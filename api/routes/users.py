"""
api/routes/users.py -- User account routes.

Routes (in registration order to avoid FastAPI path capture conflicts):
  GET    /users            -- list users, optional ?username= filter (public)
  GET    /users/me         -- the caller's own account (auth)
  GET    /users/{user_id}  -- one user (public)
  PUT    /users            -- partial update of the caller's account (auth)
  DELETE /users/{user_id}  -- delete an account; only its owner may (auth)

Deleting an account revokes all its refresh tokens and removes the posts
and comments it authored.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Request

from api.crud import CrudController
from api.models import UserResponse, UserUpdate
from auth.dependencies import get_current_identity
from auth.models import Identity, User
from auth.ownership import ensure_owner
from auth.store import UserStore
from auth.tokens import hash_password
from content.store import ContentStore
from core.errors import Conflict

logger = logging.getLogger("postboard.api")

router = APIRouter(prefix="/users")


@router.get("", response_model=list[UserResponse])
def list_users(request: Request, username: Optional[str] = None) -> list[UserResponse]:
    users: CrudController[User] = request.app.state.users
    return [UserResponse.model_validate(u) for u in users.list(username=username)]


@router.get("/me", response_model=UserResponse)
def me(request: Request, identity: Identity = Depends(get_current_identity)) -> UserResponse:
    """Return the account behind the presented access token.

    A valid token for an account deleted since it was issued is a 404.
    """
    users: CrudController[User] = request.app.state.users
    return UserResponse.model_validate(users.get(identity.user_id))


@router.get("/{user_id}", response_model=UserResponse)
def get_user(request: Request, user_id: int) -> UserResponse:
    users: CrudController[User] = request.app.state.users
    return UserResponse.model_validate(users.get(user_id))


@router.put("", response_model=UserResponse)
def update_me(
    request: Request,
    body: UserUpdate,
    identity: Identity = Depends(get_current_identity),
) -> UserResponse:
    """Apply a partial update to the caller's account. A new password is re-hashed."""
    user_store: UserStore = request.app.state.user_store
    users: CrudController[User] = request.app.state.users

    taken = user_store.find_conflict(body.username, body.email, exclude_id=identity.user_id)
    if taken is not None:
        raise Conflict(f"That {taken} is already registered.")

    updates = body.model_dump(exclude_none=True)
    if "password" in updates:
        updates["hashed_password"] = hash_password(updates.pop("password"))
    return UserResponse.model_validate(users.update(identity.user_id, **updates))


@router.delete("/{user_id}", response_model=UserResponse)
def delete_user(
    request: Request,
    user_id: int,
    identity: Identity = Depends(get_current_identity),
) -> UserResponse:
    """Delete an account and everything it owns. Callers may only delete themselves."""
    users: CrudController[User] = request.app.state.users
    content_store: ContentStore = request.app.state.content_store

    target = users.get(user_id)
    ensure_owner(target.id, identity, "account")
    # Content goes first so a failed cascade never leaves ownerless rows.
    content_store.delete_by_user(user_id)
    deleted = users.delete(user_id)
    logger.info("Deleted user_id=%d and their content", user_id)
    return UserResponse.model_validate(deleted)
