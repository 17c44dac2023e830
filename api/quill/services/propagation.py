"""
Identity snapshot propagation.

Posts, comments and notifications carry a copy of their author's (or
sender's) first name, last name and picture so that listings never join
against users. Whenever one of those fields changes on a user, the copies
are rewritten here.

Each target table is updated and committed on its own. A failing bulk update
is rolled back and logged, and the remaining targets still run; the user
record itself has already been committed by the caller and is never undone.
Stale copies left behind by a failure are corrected by the next propagation.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from sqlalchemy.orm import Session

from .. import models

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class IdentitySnapshot:
    """The display fields copied onto content and notifications."""

    first_name: str
    last_name: str
    picture: str

    @classmethod
    def from_user(cls, user: models.User) -> "IdentitySnapshot":
        return cls(
            first_name=user.first_name,
            last_name=user.last_name,
            picture=user.picture or "",
        )


@dataclass
class PropagationReport:
    """Rows rewritten per target, and the targets whose update failed."""

    user_id: int
    updated: dict[str, int] = field(default_factory=dict)
    failed: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failed


def _targets(user_id: int, snapshot: IdentitySnapshot):
    author_values = {
        "author_first_name": snapshot.first_name,
        "author_last_name": snapshot.last_name,
        "author_picture": snapshot.picture,
    }
    return (
        ("posts", models.Post, models.Post.author_id == user_id, author_values),
        ("comments", models.Comment, models.Comment.author_id == user_id, author_values),
        (
            "notifications",
            models.Notification,
            models.Notification.sender_id == user_id,
            {
                "sender_first_name": snapshot.first_name,
                "sender_last_name": snapshot.last_name,
                "sender_picture": snapshot.picture,
            },
        ),
    )


def propagate_identity_snapshot(
    db: Session, user_id: int, snapshot: IdentitySnapshot
) -> PropagationReport:
    """
    Rewrite every denormalized copy of a user's display snapshot.

    Args:
        db: Database session
        user_id: The user whose snapshot changed
        snapshot: The user's current display fields

    Returns:
        A report of rows touched per target; never raises for store failures
    """
    report = PropagationReport(user_id=user_id)

    for label, model, condition, values in _targets(user_id, snapshot):
        try:
            count = (
                db.query(model)
                .filter(condition)
                .update(values, synchronize_session=False)
            )
            db.commit()
            report.updated[label] = count
        except Exception as e:
            db.rollback()
            report.failed.append(label)
            logger.error(
                f"Failed to propagate identity snapshot of user {user_id} to {label}: {e}",
                exc_info=True,
            )

    if report.ok:
        logger.info(f"Propagated identity snapshot of user {user_id}: {report.updated}")
    else:
        logger.warning(
            f"Identity snapshot of user {user_id} partially propagated; stale targets: {report.failed}"
        )

    return report
