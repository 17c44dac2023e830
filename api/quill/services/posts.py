"""Posts and likes."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, time

from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from .. import models
from ..auth import require_ownership
from ..errors import BadRequest, NotFound
from ..settings import SEARCH_RESULT_LIMIT
from ..utils.markup import render_markup
from .notifications import NotificationService

logger = logging.getLogger(__name__)

SEARCH_SCOPES = ("all", "title", "content")


@dataclass(frozen=True)
class LikeState:
    likes: int
    is_liked: bool


def annotate_posts_with_counts(db: Session, posts: list[models.Post]) -> list[models.Post]:
    """
    Add like_count and comment_count to posts using grouped queries.

    Returns:
        Same list of posts with the count attributes attached
    """
    if not posts:
        return posts

    post_ids = [post.id for post in posts]

    like_counts = (
        db.query(models.PostLike.post_id, func.count(models.PostLike.id).label("count"))
        .filter(models.PostLike.post_id.in_(post_ids))
        .group_by(models.PostLike.post_id)
        .all()
    )
    comment_counts = (
        db.query(models.Comment.post_id, func.count(models.Comment.id).label("count"))
        .filter(models.Comment.post_id.in_(post_ids))
        .group_by(models.Comment.post_id)
        .all()
    )

    like_count_map = {post_id: count for post_id, count in like_counts}
    comment_count_map = {post_id: count for post_id, count in comment_counts}

    for post in posts:
        post.like_count = like_count_map.get(post.id, 0)
        post.comment_count = comment_count_map.get(post.id, 0)

    return posts


def get_post(db: Session, post_id: int) -> models.Post:
    post = db.query(models.Post).filter(models.Post.id == post_id).first()
    if not post:
        raise NotFound("Post not found")
    return post


def create_post(
    db: Session,
    author: models.User,
    title: str,
    raw_content: str,
    image_url: str = "",
) -> models.Post:
    """
    Publish a post and notify the author's subscribers.

    The author snapshot is copied from the author record as it is now. The
    subscriber fan-out runs after the post is committed and cannot undo it.
    """
    post = models.Post(
        author_id=author.id,
        title=title,
        content=render_markup(raw_content),
        image=image_url or "",
        author_first_name=author.first_name,
        author_last_name=author.last_name,
        author_picture=author.picture or "",
    )
    db.add(post)
    db.commit()
    db.refresh(post)

    logger.info(f"User {author.id} created post {post.id}")

    NotificationService.notify_subscribers(db, author, post)

    return post


def edit_post(
    db: Session,
    user: models.User,
    post_id: int,
    title: str,
    raw_content: str,
    image_url: str | None = None,
) -> models.Post:
    """
    Replace a post's title and content; the image only when a new one is given.

    Raises:
        NotFound: If the post does not exist
        Forbidden: If the user is not the author
    """
    post = get_post(db, post_id)
    require_ownership(post.author_id, user)

    post.title = title
    post.content = render_markup(raw_content)
    if image_url:
        post.image = image_url

    db.commit()
    db.refresh(post)
    return post


def delete_post(db: Session, user: models.User, post_id: int) -> None:
    """
    Delete a post together with its comments and likes.

    Notifications about the post are kept but detached from it.

    Raises:
        NotFound: If the post does not exist
        Forbidden: If the user is not the author
    """
    post = get_post(db, post_id)
    require_ownership(post.author_id, user)

    db.query(models.Comment).filter(models.Comment.post_id == post.id).delete(
        synchronize_session=False
    )
    db.query(models.PostLike).filter(models.PostLike.post_id == post.id).delete(
        synchronize_session=False
    )
    db.query(models.Notification).filter(models.Notification.post_id == post.id).update(
        {"post_id": None}, synchronize_session=False
    )
    db.query(models.Post).filter(models.Post.id == post.id).delete(synchronize_session=False)
    db.commit()

    logger.info(f"User {user.id} deleted post {post_id}")


def _like_count(db: Session, post_id: int) -> int:
    return (
        db.query(func.count(models.PostLike.id))
        .filter(models.PostLike.post_id == post_id)
        .scalar()
        or 0
    )


def toggle_like(db: Session, user: models.User, post_id: int) -> LikeState:
    """
    Like a post, or remove the like if already liked.

    A new like notifies the post's author unless the author liked their own
    post. Removing a like leaves any earlier notification in place.

    Raises:
        NotFound: If the post does not exist
    """
    post = get_post(db, post_id)

    existing = (
        db.query(models.PostLike)
        .filter(models.PostLike.post_id == post.id, models.PostLike.user_id == user.id)
        .first()
    )

    if existing:
        db.delete(existing)
        db.commit()
    else:
        db.add(models.PostLike(post_id=post.id, user_id=user.id))
        db.commit()

        if post.author_id != user.id:
            NotificationService.create_notification(
                db=db,
                recipient_id=post.author_id,
                kind=models.NOTIFICATION_LIKE,
                sender=user,
                post=post,
            )

    return LikeState(likes=_like_count(db, post.id), is_liked=existing is None)


def get_like_state(db: Session, user: models.User, post_id: int) -> LikeState:
    post = get_post(db, post_id)
    liked = (
        db.query(models.PostLike.id)
        .filter(models.PostLike.post_id == post.id, models.PostLike.user_id == user.id)
        .first()
        is not None
    )
    return LikeState(likes=_like_count(db, post.id), is_liked=liked)


def list_posts(db: Session) -> list[models.Post]:
    """All posts, newest first, with like and comment counts."""
    posts = (
        db.query(models.Post)
        .order_by(models.Post.created_at.desc(), models.Post.id.desc())
        .all()
    )
    return annotate_posts_with_counts(db, posts)


def list_user_posts(db: Session, author_id: int) -> list[models.Post]:
    posts = (
        db.query(models.Post)
        .filter(models.Post.author_id == author_id)
        .order_by(models.Post.created_at.desc(), models.Post.id.desc())
        .all()
    )
    return annotate_posts_with_counts(db, posts)


def search_posts(
    db: Session,
    term: str,
    scope: str = "all",
    author_id: int | None = None,
    date_from: date | None = None,
    date_to: date | None = None,
    limit: int = SEARCH_RESULT_LIMIT,
) -> list[models.Post]:
    """
    Case-insensitive search over post titles and/or content.

    ``date_to`` is inclusive: posts created at any time on that day match.

    Raises:
        BadRequest: If the scope is not one of all, title, content
    """
    if scope not in SEARCH_SCOPES:
        raise BadRequest(f"Invalid search scope '{scope}'")

    pattern = f"%{term}%"
    query = db.query(models.Post)

    if author_id is not None:
        query = query.filter(models.Post.author_id == author_id)

    if scope == "all":
        query = query.filter(
            or_(models.Post.title.ilike(pattern), models.Post.content.ilike(pattern))
        )
    elif scope == "title":
        query = query.filter(models.Post.title.ilike(pattern))
    else:
        query = query.filter(models.Post.content.ilike(pattern))

    if date_from is not None:
        query = query.filter(models.Post.created_at >= datetime.combine(date_from, time.min))
    if date_to is not None:
        query = query.filter(models.Post.created_at <= datetime.combine(date_to, time.max))

    posts = (
        query.order_by(models.Post.created_at.desc(), models.Post.id.desc())
        .limit(limit)
        .all()
    )
    return annotate_posts_with_counts(db, posts)
