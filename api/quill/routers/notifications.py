"""Notification endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from .. import models, schemas
from ..auth import get_current_user
from ..deps import get_db
from ..services.notifications import NotificationService

router = APIRouter(prefix="/notifications", tags=["Notifications"])


@router.get("", response_model=schemas.NotificationList)
def list_notifications(
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
) -> schemas.NotificationList:
    """
    List the caller's most recent notifications.

    The unread count covers all of the caller's notifications, not only the
    returned page.
    """
    notifications, unread_count = NotificationService.list_notifications(
        db=db,
        user_id=current_user.id,
    )
    return schemas.NotificationList(
        notifications=[schemas.Notification.model_validate(n) for n in notifications],
        unread_count=unread_count,
    )


@router.put("/read", response_model=schemas.MarkReadResponse)
def mark_notifications_read(
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
) -> schemas.MarkReadResponse:
    """Mark all of the caller's notifications as read."""
    updated = NotificationService.mark_all_as_read(db, current_user.id)
    return schemas.MarkReadResponse(msg="Notifications marked as read", updated=updated)
