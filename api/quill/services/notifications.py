"""
Notification Service.

Handles creation, retrieval, and management of notifications for likes,
comments, subscriptions and new posts from subscribed authors.
"""

from __future__ import annotations

import logging
from typing import Iterable

from sqlalchemy import func
from sqlalchemy.orm import Session, joinedload

from .. import models
from ..cache import cache_delete, cache_get_int, cache_incr, cache_set_int
from ..settings import NOTIFICATIONS_PAGE_SIZE

logger = logging.getLogger(__name__)

# Cache key patterns
UNREAD_COUNT_KEY = "notif:unread:{user_id}"


class NotificationService:
    """Service for managing notifications."""

    @staticmethod
    def create_notification(
        db: Session,
        recipient_id: int,
        kind: str,
        sender: models.User,
        post: models.Post | None = None,
    ) -> models.Notification | None:
        """
        Create a notification carrying the sender's current display snapshot.

        Notification failures never fail the action that triggered them: the
        error is logged and None is returned.

        Args:
            db: Database session
            recipient_id: ID of user to notify
            kind: 'like', 'comment', 'subscribe' or 'post_created'
            sender: The user who performed the action
            post: The related post, if any

        Returns:
            Created notification, or None if skipped (self-action) or failed
        """
        # Don't notify users about their own actions
        if sender.id == recipient_id:
            logger.debug(f"Skipping self-notification for user {recipient_id}")
            return None

        try:
            notification = models.Notification(
                recipient_id=recipient_id,
                sender_id=sender.id,
                sender_first_name=sender.first_name,
                sender_last_name=sender.last_name,
                sender_picture=sender.picture or "",
                post_id=post.id if post is not None else None,
                kind=kind,
            )
            db.add(notification)
            db.commit()
            db.refresh(notification)
        except Exception as e:
            db.rollback()
            logger.error(
                f"Failed to create {kind} notification for user {recipient_id}: {e}",
                exc_info=True,
            )
            return None

        logger.info(f"Created {kind} notification {notification.id} for user {recipient_id}")

        NotificationService._increment_unread_count(recipient_id)

        return notification

    @staticmethod
    def notify_subscribers(db: Session, author: models.User, post: models.Post) -> int:
        """
        Fan out one 'post_created' notification per subscriber of the author.

        Best-effort: failures are logged and the post is left untouched.

        Returns:
            Number of notifications created
        """
        try:
            recipient_ids = [
                row.subscriber_id
                for row in db.query(models.Subscription.subscriber_id)
                .filter(models.Subscription.user_id == author.id)
                .all()
                if row.subscriber_id != author.id
            ]
            if not recipient_ids:
                return 0

            db.add_all(
                [
                    models.Notification(
                        recipient_id=subscriber_id,
                        sender_id=author.id,
                        sender_first_name=author.first_name,
                        sender_last_name=author.last_name,
                        sender_picture=author.picture or "",
                        post_id=post.id,
                        kind=models.NOTIFICATION_POST_CREATED,
                    )
                    for subscriber_id in recipient_ids
                ]
            )
            db.commit()
        except Exception as e:
            db.rollback()
            logger.error(
                f"Error creating subscriber notifications for post {post.id}: {e}",
                exc_info=True,
            )
            return 0

        for recipient_id in recipient_ids:
            NotificationService._increment_unread_count(recipient_id)

        logger.info(
            f"Notified {len(recipient_ids)} subscribers of user {author.id} about post {post.id}"
        )
        return len(recipient_ids)

    @staticmethod
    def get_unread_count(db: Session, user_id: int) -> int:
        """
        Get unread notification count for a user.

        Uses Redis cache with database fallback.
        """
        cache_key = UNREAD_COUNT_KEY.format(user_id=user_id)
        cached = cache_get_int(cache_key)
        if cached is not None:
            return cached

        count = (
            db.query(func.count(models.Notification.id))
            .filter(
                models.Notification.recipient_id == user_id,
                models.Notification.is_read == False,
            )
            .scalar()
            or 0
        )

        cache_set_int(cache_key, count)

        return count

    @staticmethod
    def list_notifications(
        db: Session,
        user_id: int,
        limit: int = NOTIFICATIONS_PAGE_SIZE,
    ) -> tuple[list[models.Notification], int]:
        """
        List the most recent notifications for a user.

        Returns:
            Tuple of (notifications newest first, unread count)
        """
        notifications = (
            db.query(models.Notification)
            .options(joinedload(models.Notification.post))
            .filter(models.Notification.recipient_id == user_id)
            .order_by(models.Notification.created_at.desc())
            .limit(limit)
            .all()
        )

        return notifications, NotificationService.get_unread_count(db, user_id)

    @staticmethod
    def mark_all_as_read(db: Session, user_id: int) -> int:
        """
        Mark all notifications as read for a user.

        Returns:
            Number of notifications updated
        """
        count = (
            db.query(models.Notification)
            .filter(
                models.Notification.recipient_id == user_id,
                models.Notification.is_read == False,
            )
            .update({"is_read": True}, synchronize_session=False)
        )

        db.commit()

        cache_set_int(UNREAD_COUNT_KEY.format(user_id=user_id), 0)

        return count

    @staticmethod
    def invalidate_unread_counts(user_ids: Iterable[int]) -> None:
        """Drop cached unread counters so they are recomputed on next read."""
        keys = [UNREAD_COUNT_KEY.format(user_id=user_id) for user_id in set(user_ids)]
        if keys:
            cache_delete(*keys)

    # =========================================================================
    # Private helper methods
    # =========================================================================

    @staticmethod
    def _increment_unread_count(user_id: int) -> None:
        """Increment the unread count in Redis cache."""
        cache_incr(UNREAD_COUNT_KEY.format(user_id=user_id))
