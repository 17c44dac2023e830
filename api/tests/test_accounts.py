"""Tests for account deletion."""

from unittest.mock import MagicMock, patch

import pytest
from sqlalchemy import select
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from quill import models
from quill.errors import Internal, NotFound
from quill.services.accounts import delete_account
from quill.services.comments import add_comment
from quill.services.posts import create_post, toggle_like
from quill.services.subscriptions import toggle_subscription


def _build_world(db: Session, make_user):
    """The doomed user is followed by, follows, posts, comments and likes."""
    doomed = make_user("Doomed", "User", picture="/vault/avatars/d.png")
    friend = make_user("Friend", "One")
    stranger = make_user("Stranger", "Two")

    toggle_subscription(db, friend, doomed.id)
    toggle_subscription(db, doomed, stranger.id)

    doomed_post = create_post(db, doomed, "Mine", "content")
    friend_post = create_post(db, friend, "Friend's", "content")

    add_comment(db, friend, doomed_post.id, "on doomed's post")
    add_comment(db, doomed, friend_post.id, "on friend's post")
    add_comment(db, stranger, friend_post.id, "survivor")
    toggle_like(db, friend, doomed_post.id)
    toggle_like(db, doomed, friend_post.id)
    toggle_like(db, stranger, friend_post.id)

    return doomed, friend, stranger, doomed_post, friend_post


def _assert_nothing_references(db: Session, user_id: int) -> None:
    """No row may point at the deleted user or at a post that is gone."""
    db.expire_all()
    surviving_posts = select(models.Post.id)

    assert db.get(models.User, user_id) is None
    assert db.query(models.Post).filter(models.Post.author_id == user_id).count() == 0
    assert db.query(models.Comment).filter(models.Comment.author_id == user_id).count() == 0
    assert db.query(models.Comment).filter(~models.Comment.post_id.in_(surviving_posts)).count() == 0
    assert db.query(models.PostLike).filter(models.PostLike.user_id == user_id).count() == 0
    assert (
        db.query(models.PostLike).filter(~models.PostLike.post_id.in_(surviving_posts)).count()
        == 0
    )
    assert (
        db.query(models.Notification)
        .filter(
            (models.Notification.sender_id == user_id)
            | (models.Notification.recipient_id == user_id)
        )
        .count()
        == 0
    )
    assert (
        db.query(models.Subscription)
        .filter(
            (models.Subscription.subscriber_id == user_id)
            | (models.Subscription.user_id == user_id)
        )
        .count()
        == 0
    )


def test_leaves_no_dangling_references(db: Session, make_user):
    doomed, friend, stranger, doomed_post, friend_post = _build_world(db, make_user)
    doomed_id, friend_post_id = doomed.id, friend_post.id

    report = delete_account(db, doomed_id)

    assert report.ok
    _assert_nothing_references(db, doomed_id)

    # Everything belonging to survivors stays
    assert db.get(models.Post, friend_post_id) is not None
    survivors = db.query(models.Comment).filter(models.Comment.post_id == friend_post_id).all()
    assert [c.author_id for c in survivors] == [stranger.id]
    assert db.query(models.PostLike).filter(models.PostLike.post_id == friend_post_id).count() == 1


def test_missing_user(db: Session):
    with pytest.raises(NotFound):
        delete_account(db, 999_999)


def test_failed_step_does_not_abort_the_rest(db: Session, make_user):
    doomed, *_ = _build_world(db, make_user)
    doomed_id = doomed.id

    with patch(
        "quill.services.accounts._delete_notifications",
        side_effect=OperationalError("DELETE", {}, Exception("timeout")),
    ):
        report = delete_account(db, doomed_id)

    assert report.failed == ["notifications"]
    _assert_nothing_references(db, doomed_id)


def test_failed_lookup_leaves_no_orphans_on_deleted_posts(db: Session, make_user):
    doomed, friend, _, doomed_post, _ = _build_world(db, make_user)
    doomed_id, doomed_post_id = doomed.id, doomed_post.id

    with patch(
        "quill.services.accounts._find_authored_post_ids",
        side_effect=OperationalError("SELECT", {}, Exception("timeout")),
    ):
        report = delete_account(db, doomed_id)

    assert report.failed == ["find_posts"]
    assert report.removed["post_comments_and_likes"] == 2
    assert report.removed["posts"] == 1
    assert db.query(models.Comment).filter(models.Comment.post_id == doomed_post_id).count() == 0
    assert db.query(models.PostLike).filter(models.PostLike.post_id == doomed_post_id).count() == 0
    _assert_nothing_references(db, doomed_id)


def test_store_rules_remove_children_when_steps_are_skipped(db: Session, make_user):
    doomed, *_ = _build_world(db, make_user)
    doomed_id = doomed.id
    noop = MagicMock(return_value=0)

    with patch("quill.services.accounts._delete_comments_on_posts", noop), patch(
        "quill.services.accounts._delete_authored_comments", noop
    ), patch(
        "quill.services.accounts._delete_notifications", MagicMock(return_value=(0, set()))
    ), patch(
        "quill.services.accounts._detach_from_social_graph", noop
    ):
        report = delete_account(db, doomed_id)

    assert report.ok
    _assert_nothing_references(db, doomed_id)


def test_user_record_failure_is_internal(db: Session, make_user):
    doomed, *_ = _build_world(db, make_user)

    with patch(
        "quill.services.accounts._delete_user_record",
        side_effect=OperationalError("DELETE", {}, Exception("timeout")),
    ):
        with pytest.raises(Internal):
            delete_account(db, doomed.id)


def test_cascade_steps_run_in_order(db: Session, make_user):
    doomed = make_user()
    calls = []

    def recorder(name, result=0):
        def _step(*args):
            calls.append(name)
            return result

        return _step

    with patch("quill.services.accounts._find_authored_post_ids", recorder("find", [])), patch(
        "quill.services.accounts._delete_comments_on_posts", recorder("post_comments")
    ), patch("quill.services.accounts._delete_authored_posts", recorder("posts")), patch(
        "quill.services.accounts._delete_authored_comments", recorder("comments")
    ), patch(
        "quill.services.accounts._delete_notifications", recorder("notifications", (0, set()))
    ), patch(
        "quill.services.accounts._detach_from_social_graph", recorder("graph")
    ), patch(
        "quill.services.accounts._delete_user_record", recorder("user", 1)
    ):
        delete_account(db, doomed.id)

    assert calls == [
        "find",
        "post_comments",
        "posts",
        "comments",
        "notifications",
        "graph",
        "user",
    ]


def test_removes_stored_avatar(db: Session, make_user):
    doomed = make_user(picture="/vault/avatars/aa/bb/cc/x.png")
    vault = MagicMock()

    delete_account(db, doomed.id, vault=vault)

    vault.try_delete.assert_called_once_with("/vault/avatars/aa/bb/cc/x.png")


def test_invalidates_cached_unread_counts(db: Session, make_user):
    doomed, friend, stranger, *_ = _build_world(db, make_user)

    with patch(
        "quill.services.accounts.NotificationService.invalidate_unread_counts"
    ) as mock_invalidate:
        delete_account(db, doomed.id)

    (recipient_ids,), _ = mock_invalidate.call_args
    assert friend.id in recipient_ids
    assert stranger.id in recipient_ids
