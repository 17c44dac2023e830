"""Tests for posts, likes and the subscriber fan-out."""

from datetime import date, datetime, timedelta
from unittest.mock import patch

import pytest
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from quill import models
from quill.errors import BadRequest, Forbidden, NotFound
from quill.services.comments import add_comment
from quill.services.notifications import NotificationService
from quill.services.posts import (
    create_post,
    delete_post,
    edit_post,
    get_like_state,
    list_posts,
    search_posts,
    toggle_like,
)
from quill.services.subscriptions import toggle_subscription


def _notifications(db: Session, kind: str) -> list[models.Notification]:
    return db.query(models.Notification).filter(models.Notification.kind == kind).all()


class TestCreatePost:
    def test_formats_content_and_snapshots_author(self, db: Session, make_user):
        author = make_user("Grace", "Hopper", picture="/vault/avatars/g.png")

        post = create_post(db, author, "Hello", "**bold** and *it*")

        assert post.content == "<strong>bold</strong> and <em>it</em>"
        assert (post.author_first_name, post.author_last_name, post.author_picture) == (
            "Grace",
            "Hopper",
            "/vault/avatars/g.png",
        )
        assert post.image == ""

    def test_fans_out_to_each_subscriber(self, db: Session, make_user):
        author = make_user("Author", "X")
        a = make_user("Sub", "A")
        b = make_user("Sub", "B")
        make_user("Not", "Subscribed")
        toggle_subscription(db, a, author.id)
        toggle_subscription(db, b, author.id)

        post = create_post(db, author, "News", "content")

        created = _notifications(db, models.NOTIFICATION_POST_CREATED)
        assert len(created) == 2
        assert {n.recipient_id for n in created} == {a.id, b.id}
        assert all(n.sender_id == author.id and n.post_id == post.id for n in created)
        assert author.id not in {n.recipient_id for n in created}

    def test_fan_out_failure_keeps_post(self, db: Session, make_user):
        author = make_user()
        toggle_subscription(db, make_user(), author.id)

        with patch.object(db, "add_all", side_effect=OperationalError("INSERT", {}, Exception("boom"))):
            post = create_post(db, author, "Still here", "content")

        assert db.get(models.Post, post.id) is not None
        assert _notifications(db, models.NOTIFICATION_POST_CREATED) == []


class TestEditAndDelete:
    def test_edit_reformats_and_keeps_image(self, db: Session, make_user):
        author = make_user()
        post = create_post(db, author, "Old", "old", image_url="/vault/posts/a.png")

        edited = edit_post(db, author, post.id, "New", "__new__")

        assert edited.title == "New"
        assert edited.content == "<u>new</u>"
        assert edited.image == "/vault/posts/a.png"

        edited = edit_post(db, author, post.id, "New", "__new__", image_url="/vault/posts/b.png")
        assert edited.image == "/vault/posts/b.png"

    def test_only_author_may_edit_or_delete(self, db: Session, make_user):
        author = make_user()
        intruder = make_user()
        post = create_post(db, author, "Mine", "mine")

        with pytest.raises(Forbidden):
            edit_post(db, intruder, post.id, "Yours", "yours")
        with pytest.raises(Forbidden):
            delete_post(db, intruder, post.id)
        with pytest.raises(NotFound):
            delete_post(db, author, 999_999)

    def test_delete_removes_comments_and_likes_and_detaches_notifications(
        self, db: Session, make_user
    ):
        author = make_user()
        fan = make_user()
        post = create_post(db, author, "Doomed", "content")
        add_comment(db, fan, post.id, "nice")
        toggle_like(db, fan, post.id)

        delete_post(db, author, post.id)
        db.expire_all()

        assert db.get(models.Post, post.id) is None
        assert db.query(models.Comment).filter(models.Comment.post_id == post.id).count() == 0
        assert db.query(models.PostLike).filter(models.PostLike.post_id == post.id).count() == 0

        notifications = db.query(models.Notification).all()
        assert len(notifications) == 2
        assert all(n.post_id is None for n in notifications)


class TestLikes:
    def test_like_by_other_user_notifies_once(self, db: Session, make_user):
        author = make_user()
        fan = make_user()
        post = create_post(db, author, "Likeable", "content")

        state = toggle_like(db, fan, post.id)
        assert (state.likes, state.is_liked) == (1, True)
        assert len(_notifications(db, models.NOTIFICATION_LIKE)) == 1

        state = toggle_like(db, fan, post.id)
        assert (state.likes, state.is_liked) == (0, False)
        # No retraction and no new notification
        assert len(_notifications(db, models.NOTIFICATION_LIKE)) == 1

    def test_author_liking_own_post_never_notifies(self, db: Session, make_user):
        author = make_user()
        post = create_post(db, author, "Self", "content")

        state = toggle_like(db, author, post.id)

        assert state.is_liked is True
        assert _notifications(db, models.NOTIFICATION_LIKE) == []

    def test_like_state(self, db: Session, make_user):
        author = make_user()
        fan = make_user()
        post = create_post(db, author, "Likeable", "content")
        toggle_like(db, fan, post.id)

        assert get_like_state(db, fan, post.id).is_liked is True
        other_view = get_like_state(db, author, post.id)
        assert (other_view.likes, other_view.is_liked) == (1, False)

    def test_like_missing_post(self, db: Session, make_user):
        with pytest.raises(NotFound):
            toggle_like(db, make_user(), 999_999)


class TestListing:
    def test_list_posts_newest_first_with_counts(self, db: Session, make_user):
        author = make_user()
        fan = make_user()
        older = create_post(db, author, "Older", "content")
        newer = create_post(db, author, "Newer", "content")
        toggle_like(db, fan, older.id)
        add_comment(db, fan, older.id, "first")
        add_comment(db, author, older.id, "second")

        posts = list_posts(db)

        assert [p.id for p in posts] == [newer.id, older.id]
        assert (posts[1].like_count, posts[1].comment_count) == (1, 2)
        assert (posts[0].like_count, posts[0].comment_count) == (0, 0)


class TestSearch:
    def test_scopes(self, db: Session, make_user):
        author = make_user()
        create_post(db, author, "Python tips", "about snakes")
        create_post(db, author, "Gardening", "python in the garden")

        assert len(search_posts(db, "PYTHON")) == 2
        assert [p.title for p in search_posts(db, "python", scope="title")] == ["Python tips"]
        assert [p.title for p in search_posts(db, "python", scope="content")] == ["Gardening"]

        with pytest.raises(BadRequest):
            search_posts(db, "python", scope="everything")

    def test_author_filter_and_limit(self, db: Session, make_user):
        author = make_user()
        other = make_user()
        for i in range(12):
            create_post(db, author, f"Entry {i}", "text")
        create_post(db, other, "Entry by other", "text")

        assert len(search_posts(db, "entry")) == 10
        only_other = search_posts(db, "entry", author_id=other.id)
        assert [p.author_id for p in only_other] == [other.id]

    def test_end_date_is_inclusive(self, db: Session, make_user):
        author = make_user()
        post = create_post(db, author, "Dated", "text")
        post.created_at = datetime(2024, 3, 15, 18, 30)
        db.commit()

        assert search_posts(db, "dated", date_to=date(2024, 3, 15))
        assert search_posts(db, "dated", date_from=date(2024, 3, 15))
        assert not search_posts(db, "dated", date_to=date(2024, 3, 14))
        assert not search_posts(
            db, "dated", date_from=date(2024, 3, 15) + timedelta(days=1)
        )


def test_notify_subscribers_without_subscribers(db: Session, make_user):
    author = make_user()
    post = create_post(db, author, "Quiet", "content")

    assert NotificationService.notify_subscribers(db, author, post) == 0
