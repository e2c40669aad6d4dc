"""
api/routes/posts.py -- Post routes.

Routes (in registration order to avoid FastAPI path capture conflicts):
  GET    /posts            -- list posts, optional ?user_id= filter (public)
  GET    /posts/user/me    -- the caller's own posts (auth)
  GET    /posts/{post_id}  -- one post with its author summary (public)
  POST   /posts            -- publish a post owned by the caller (auth)
  PUT    /posts/{post_id}  -- edit a post; owner only (auth)
  DELETE /posts/{post_id}  -- delete a post and its comments; owner only (auth)

Mutations check existence before ownership: a missing post is a 404 even
for a caller who could never have owned it.
"""

import logging
from dataclasses import asdict
from typing import Optional

from fastapi import APIRouter, Depends, Request

from api.crud import CrudController
from api.models import AuthorSummary, PostCreate, PostDetailResponse, PostResponse, PostUpdate
from auth.dependencies import get_current_identity
from auth.models import Identity
from auth.ownership import ensure_owner
from auth.store import UserStore
from content.models import Post

logger = logging.getLogger("postboard.api")

router = APIRouter(prefix="/posts")


def _author(user_store: UserStore, user_id: int) -> Optional[AuthorSummary]:
    user = user_store.get_by_id(user_id)
    return AuthorSummary.model_validate(user) if user is not None else None


@router.get("", response_model=list[PostResponse])
def list_posts(request: Request, user_id: Optional[int] = None) -> list[PostResponse]:
    posts: CrudController[Post] = request.app.state.posts
    return [PostResponse.model_validate(p) for p in posts.list(user_id=user_id)]


@router.get("/user/me", response_model=list[PostResponse])
def my_posts(request: Request, identity: Identity = Depends(get_current_identity)) -> list[PostResponse]:
    posts: CrudController[Post] = request.app.state.posts
    return [PostResponse.model_validate(p) for p in posts.list(user_id=identity.user_id)]


@router.get("/{post_id}", response_model=PostDetailResponse)
def get_post(request: Request, post_id: int) -> PostDetailResponse:
    """Return one post with its author embedded.

    author is null when the owning account no longer exists.
    """
    posts: CrudController[Post] = request.app.state.posts
    post = posts.get(post_id)
    return PostDetailResponse(**asdict(post), author=_author(request.app.state.user_store, post.user_id))


@router.post("", response_model=PostResponse, status_code=201)
def create_post(
    request: Request,
    body: PostCreate,
    identity: Identity = Depends(get_current_identity),
) -> PostResponse:
    """Publish a post. A token outliving its deleted account gets a 404."""
    posts: CrudController[Post] = request.app.state.posts
    request.app.state.users.get(identity.user_id)
    post = posts.create(user_id=identity.user_id, message=body.message)
    logger.info("user_id=%d created post_id=%d", identity.user_id, post.id)
    return PostResponse.model_validate(post)


@router.put("/{post_id}", response_model=PostResponse)
def update_post(
    request: Request,
    post_id: int,
    body: PostUpdate,
    identity: Identity = Depends(get_current_identity),
) -> PostResponse:
    posts: CrudController[Post] = request.app.state.posts
    ensure_owner(posts.get(post_id).user_id, identity, "post")
    return PostResponse.model_validate(posts.update(post_id, message=body.message))


@router.delete("/{post_id}", response_model=PostResponse)
def delete_post(
    request: Request,
    post_id: int,
    identity: Identity = Depends(get_current_identity),
) -> PostResponse:
    """Delete a post. Its comments are removed in the same transaction."""
    posts: CrudController[Post] = request.app.state.posts
    ensure_owner(posts.get(post_id).user_id, identity, "post")
    deleted = posts.delete(post_id)
    logger.info("user_id=%d deleted post_id=%d", identity.user_id, post_id)
    return PostResponse.model_validate(deleted)
