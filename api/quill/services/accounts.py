"""
Account deletion.

Removing a user touches every table that references them. The steps run in
a fixed order so that nothing is left pointing at a row that is already
gone, and each step commits on its own. A failing step is rolled back,
logged and recorded; the following steps still run. Only the removal of the
user record itself is reported to the caller as a failure.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable

from sqlalchemy import or_
from sqlalchemy.orm import Session

from .. import models
from ..errors import Internal, NotFound
from ..vault import ImageVault
from .notifications import NotificationService

logger = logging.getLogger(__name__)


@dataclass
class CascadeReport:
    """Rows removed per step, and the steps that failed."""

    user_id: int
    removed: dict[str, int] = field(default_factory=dict)
    failed: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failed


def _authored_posts(db: Session, user_id: int):
    return db.query(models.Post.id).filter(models.Post.author_id == user_id)


def _find_authored_post_ids(db: Session, user_id: int) -> list[int]:
    return [row.id for row in _authored_posts(db, user_id).all()]


def _delete_comments_on_posts(db: Session, user_id: int) -> int:
    """Delete comments and likes on the user's posts.

    Selects by author rather than by the ids found earlier, so a failed lookup
    cannot leave children behind for the post deletion that follows.
    """
    authored = _authored_posts(db, user_id)
    count = (
        db.query(models.Comment)
        .filter(models.Comment.post_id.in_(authored))
        .delete(synchronize_session=False)
    )
    count += (
        db.query(models.PostLike)
        .filter(models.PostLike.post_id.in_(authored))
        .delete(synchronize_session=False)
    )
    db.commit()
    return count


def _delete_authored_posts(db: Session, user_id: int) -> int:
    db.query(models.Notification).filter(
        models.Notification.post_id.in_(_authored_posts(db, user_id))
    ).update({"post_id": None}, synchronize_session=False)
    count = (
        db.query(models.Post)
        .filter(models.Post.author_id == user_id)
        .delete(synchronize_session=False)
    )
    db.commit()
    return count


def _delete_authored_comments(db: Session, user_id: int) -> int:
    count = (
        db.query(models.Comment)
        .filter(models.Comment.author_id == user_id)
        .delete(synchronize_session=False)
    )
    db.commit()
    return count


def _delete_notifications(db: Session, user_id: int) -> tuple[int, set[int]]:
    """Delete notifications sent or received by the user.

    Returns the row count and the recipients whose unread counters changed.
    """
    involving_user = or_(
        models.Notification.sender_id == user_id,
        models.Notification.recipient_id == user_id,
    )
    recipient_ids = {
        row.recipient_id
        for row in db.query(models.Notification.recipient_id).filter(involving_user).distinct()
    }
    count = (
        db.query(models.Notification)
        .filter(involving_user)
        .delete(synchronize_session=False)
    )
    db.commit()
    return count, recipient_ids


def _detach_from_social_graph(db: Session, user_id: int) -> int:
    """Remove the user from all subscriber sets, drop their own set and their likes."""
    count = (
        db.query(models.Subscription)
        .filter(
            or_(
                models.Subscription.subscriber_id == user_id,
                models.Subscription.user_id == user_id,
            )
        )
        .delete(synchronize_session=False)
    )
    count += (
        db.query(models.PostLike)
        .filter(models.PostLike.user_id == user_id)
        .delete(synchronize_session=False)
    )
    db.commit()
    return count


def _delete_user_record(db: Session, user_id: int) -> int:
    count = db.query(models.User).filter(models.User.id == user_id).delete(
        synchronize_session=False
    )
    db.commit()
    return count


def _attempt(
    db: Session,
    report: CascadeReport,
    step: str,
    func: Callable[..., Any],
    *args: Any,
    default: Any = 0,
) -> Any:
    """Run one cascade step; on failure roll back, log, record and return ``default``."""
    try:
        return func(db, *args)
    except Exception as e:
        db.rollback()
        report.failed.append(step)
        logger.error(
            f"Account deletion step '{step}' failed for user {report.user_id}: {e}",
            exc_info=True,
        )
        return default


def delete_account(
    db: Session, user_id: int, vault: ImageVault | None = None
) -> CascadeReport:
    """
    Delete a user and everything that belongs to or points at them.

    Order:
        1. find the user's posts
        2. delete comments and likes on those posts
        3. delete the posts
        4. delete the user's comments on other posts
        5. delete notifications the user sent or received
        6. leave every subscriber set, drop own subscribers and likes
        7. delete the user record, then the stored avatar if any

    Raises:
        NotFound: If the user does not exist
        Internal: If the user record could not be deleted
    """
    user = db.query(models.User).filter(models.User.id == user_id).first()
    if not user:
        raise NotFound("User not found")
    picture = user.picture
    db.expunge(user)

    report = CascadeReport(user_id=user_id)

    post_ids = _attempt(
        db, report, "find_posts", _find_authored_post_ids, user_id, default=[]
    )
    logger.info(f"Deleting account {user_id}: {len(post_ids)} authored posts found")
    report.removed["post_comments_and_likes"] = _attempt(
        db, report, "post_comments_and_likes", _delete_comments_on_posts, user_id
    )
    report.removed["posts"] = _attempt(db, report, "posts", _delete_authored_posts, user_id)
    report.removed["comments"] = _attempt(
        db, report, "comments", _delete_authored_comments, user_id
    )
    report.removed["notifications"], recipient_ids = _attempt(
        db, report, "notifications", _delete_notifications, user_id, default=(0, set())
    )
    report.removed["subscriptions_and_likes"] = _attempt(
        db, report, "subscriptions_and_likes", _detach_from_social_graph, user_id
    )

    if recipient_ids:
        NotificationService.invalidate_unread_counts(recipient_ids)

    try:
        _delete_user_record(db, user_id)
    except Exception as e:
        db.rollback()
        logger.error(f"Failed to delete user record {user_id}: {e}", exc_info=True)
        raise Internal("Failed to delete account")

    if vault is not None and picture:
        vault.try_delete(picture)

    if report.ok:
        logger.info(f"Deleted account {user_id}: {report.removed}")
    else:
        logger.warning(
            f"Deleted account {user_id} with failed cleanup steps {report.failed}: {report.removed}"
        )

    return report
