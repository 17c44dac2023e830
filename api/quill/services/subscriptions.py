"""Subscriber sets: toggling and reading membership."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from sqlalchemy import func
from sqlalchemy.orm import Session

from .. import models
from ..errors import BadRequest, NotFound
from .notifications import NotificationService

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SubscriptionState:
    is_subscribed: bool
    subscriber_count: int


def _subscriber_count(db: Session, user_id: int) -> int:
    return (
        db.query(func.count(models.Subscription.id))
        .filter(models.Subscription.user_id == user_id)
        .scalar()
        or 0
    )


def _membership(db: Session, user_id: int, subscriber_id: int) -> models.Subscription | None:
    return (
        db.query(models.Subscription)
        .filter(
            models.Subscription.user_id == user_id,
            models.Subscription.subscriber_id == subscriber_id,
        )
        .first()
    )


def toggle_subscription(db: Session, actor: models.User, target_id: int) -> SubscriptionState:
    """
    Subscribe ``actor`` to ``target_id``, or unsubscribe if already subscribed.

    Repeated calls alternate between the two states. Subscribing notifies the
    target; unsubscribing does not.

    Raises:
        BadRequest: If a user tries to subscribe to themselves
        NotFound: If the target user does not exist
    """
    if actor.id == target_id:
        raise BadRequest("Cannot subscribe to yourself")

    target = db.query(models.User).filter(models.User.id == target_id).first()
    if not target:
        raise NotFound("User not found")

    existing = _membership(db, target.id, actor.id)
    if existing:
        db.delete(existing)
        db.commit()
        logger.info(f"User {actor.id} unsubscribed from user {target.id}")
    else:
        db.add(models.Subscription(user_id=target.id, subscriber_id=actor.id))
        db.commit()
        logger.info(f"User {actor.id} subscribed to user {target.id}")

        NotificationService.create_notification(
            db=db,
            recipient_id=target.id,
            kind=models.NOTIFICATION_SUBSCRIBE,
            sender=actor,
        )

    return SubscriptionState(
        is_subscribed=existing is None,
        subscriber_count=_subscriber_count(db, target.id),
    )


def get_subscription_state(db: Session, viewer: models.User, target_id: int) -> SubscriptionState:
    """
    Read whether ``viewer`` is subscribed to ``target_id``.

    Raises:
        NotFound: If the target user does not exist
    """
    target = db.query(models.User).filter(models.User.id == target_id).first()
    if not target:
        raise NotFound("User not found")

    return SubscriptionState(
        is_subscribed=_membership(db, target.id, viewer.id) is not None,
        subscriber_count=_subscriber_count(db, target.id),
    )
