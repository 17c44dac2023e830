"""Comment endpoints."""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from .. import models, schemas
from ..auth import get_current_user
from ..deps import get_db
from ..services import comments

router = APIRouter(prefix="/posts", tags=["Comments"])


@router.get("/{post_id}/comments", response_model=list[schemas.Comment])
def list_comments(
    post_id: int,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
) -> list[schemas.Comment]:
    """Comments on a post, newest first."""
    return [schemas.Comment.model_validate(c) for c in comments.list_comments(db, post_id)]


@router.post(
    "/{post_id}/comments",
    response_model=schemas.Comment,
    status_code=status.HTTP_201_CREATED,
)
def create_comment(
    post_id: int,
    payload: schemas.CommentCreate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
) -> schemas.Comment:
    comment = comments.add_comment(db, current_user, post_id, payload.content)
    return schemas.Comment.model_validate(comment)


@router.delete("/{post_id}/comments/{comment_id}", response_model=schemas.Message)
def delete_comment(
    post_id: int,
    comment_id: UUID,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
) -> schemas.Message:
    """Delete a comment. Allowed for the comment's author and the post's author."""
    comments.delete_comment(db, current_user, post_id, comment_id)
    return schemas.Message(msg="Comment deleted successfully")
