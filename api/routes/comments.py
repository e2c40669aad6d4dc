"""
api/routes/comments.py -- Comment routes.

Routes (in registration order to avoid FastAPI path capture conflicts):
  GET    /comments                 -- list comments, optional ?post_id= filter (public)
  GET    /comments/post/{post_id}  -- a post's comments, newest first, with authors (public)
  GET    /comments/{comment_id}    -- one comment (public)
  POST   /comments                 -- comment on an existing post (auth)
  PUT    /comments/{comment_id}    -- edit a comment; owner only (auth)
  DELETE /comments/{comment_id}    -- delete a comment; owner only (auth)
"""

import logging
from dataclasses import asdict
from typing import Optional

from fastapi import APIRouter, Depends, Request

from api.crud import CrudController
from api.models import (
    AuthorSummary,
    CommentCreate,
    CommentDetailResponse,
    CommentResponse,
    CommentUpdate,
)
from auth.dependencies import get_current_identity
from auth.models import Identity
from auth.ownership import ensure_owner
from auth.store import UserStore
from content.models import Comment, Post
from content.store import ContentStore

logger = logging.getLogger("postboard.api")

router = APIRouter(prefix="/comments")


@router.get("", response_model=list[CommentResponse])
def list_comments(request: Request, post_id: Optional[int] = None) -> list[CommentResponse]:
    comments: CrudController[Comment] = request.app.state.comments
    return [CommentResponse.model_validate(c) for c in comments.list(post_id=post_id)]


@router.get("/post/{post_id}", response_model=list[CommentDetailResponse])
def comments_for_post(request: Request, post_id: int) -> list[CommentDetailResponse]:
    """Return a post's comments newest first, each with its author embedded.

    404 when the post itself does not exist, so an empty list always means
    "no comments yet".
    """
    posts: CrudController[Post] = request.app.state.posts
    content_store: ContentStore = request.app.state.content_store
    user_store: UserStore = request.app.state.user_store

    posts.get(post_id)
    authors: dict[int, Optional[AuthorSummary]] = {}
    result = []
    for comment in content_store.comments_for_post(post_id):
        if comment.user_id not in authors:
            user = user_store.get_by_id(comment.user_id)
            authors[comment.user_id] = AuthorSummary.model_validate(user) if user is not None else None
        result.append(CommentDetailResponse(**asdict(comment), author=authors[comment.user_id]))
    return result


@router.get("/{comment_id}", response_model=CommentResponse)
def get_comment(request: Request, comment_id: int) -> CommentResponse:
    comments: CrudController[Comment] = request.app.state.comments
    return CommentResponse.model_validate(comments.get(comment_id))


@router.post("", response_model=CommentResponse, status_code=201)
def create_comment(
    request: Request,
    body: CommentCreate,
    identity: Identity = Depends(get_current_identity),
) -> CommentResponse:
    """Comment on a post. A missing post or a deleted caller account is a 404."""
    posts: CrudController[Post] = request.app.state.posts
    comments: CrudController[Comment] = request.app.state.comments

    request.app.state.users.get(identity.user_id)
    posts.get(body.post_id)
    comment = comments.create(post_id=body.post_id, user_id=identity.user_id, text=body.text)
    logger.info("user_id=%d commented on post_id=%d", identity.user_id, body.post_id)
    return CommentResponse.model_validate(comment)


@router.put("/{comment_id}", response_model=CommentResponse)
def update_comment(
    request: Request,
    comment_id: int,
    body: CommentUpdate,
    identity: Identity = Depends(get_current_identity),
) -> CommentResponse:
    comments: CrudController[Comment] = request.app.state.comments
    ensure_owner(comments.get(comment_id).user_id, identity, "comment")
    return CommentResponse.model_validate(comments.update(comment_id, text=body.text))


@router.delete("/{comment_id}", response_model=CommentResponse)
def delete_comment(
    request: Request,
    comment_id: int,
    identity: Identity = Depends(get_current_identity),
) -> CommentResponse:
    comments: CrudController[Comment] = request.app.state.comments
    ensure_owner(comments.get(comment_id).user_id, identity, "comment")
    return CommentResponse.model_validate(comments.delete(comment_id))
