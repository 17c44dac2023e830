"""Comments on posts."""

from __future__ import annotations

import logging
from uuid import UUID

from sqlalchemy.orm import Session

from .. import models
from ..errors import Forbidden, NotFound
from .notifications import NotificationService
from .posts import get_post

logger = logging.getLogger(__name__)


def add_comment(db: Session, user: models.User, post_id: int, content: str) -> models.Comment:
    """
    Comment on a post and notify its author (unless commenting on one's own post).

    Raises:
        NotFound: If the post does not exist
    """
    post = get_post(db, post_id)

    comment = models.Comment(
        post_id=post.id,
        author_id=user.id,
        content=content,
        author_first_name=user.first_name,
        author_last_name=user.last_name,
        author_picture=user.picture or "",
    )
    db.add(comment)
    db.commit()
    db.refresh(comment)

    if post.author_id != user.id:
        NotificationService.create_notification(
            db=db,
            recipient_id=post.author_id,
            kind=models.NOTIFICATION_COMMENT,
            sender=user,
            post=post,
        )

    return comment


def delete_comment(db: Session, user: models.User, post_id: int, comment_id: UUID) -> None:
    """
    Delete a comment. Its author and the author of the post may do so.

    Raises:
        NotFound: If the post or the comment does not exist
        Forbidden: If the user is neither the comment's nor the post's author
    """
    post = get_post(db, post_id)

    comment = (
        db.query(models.Comment)
        .filter(models.Comment.id == comment_id, models.Comment.post_id == post.id)
        .first()
    )
    if not comment:
        raise NotFound("Comment not found")

    if user.id not in (comment.author_id, post.author_id):
        raise Forbidden("You don't have permission to delete this comment")

    db.delete(comment)
    db.commit()

    logger.info(f"User {user.id} deleted comment {comment_id} on post {post.id}")


def list_comments(db: Session, post_id: int) -> list[models.Comment]:
    """Comments on a post, newest first."""
    post = get_post(db, post_id)
    return (
        db.query(models.Comment)
        .filter(models.Comment.post_id == post.id)
        .order_by(models.Comment.created_at.desc())
        .all()
    )
