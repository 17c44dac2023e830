"""Tests for comments."""

import uuid

import pytest
from sqlalchemy.orm import Session

from quill import models
from quill.errors import Forbidden, NotFound
from quill.services.comments import add_comment, delete_comment, list_comments
from quill.services.posts import create_post


def test_comment_stores_snapshot_and_notifies_author(db: Session, make_user):
    author = make_user("Post", "Author")
    commenter = make_user("Chatty", "Reader", picture="/vault/avatars/c.png")
    post = create_post(db, author, "Topic", "content")

    comment = add_comment(db, commenter, post.id, "Great read")

    assert (comment.author_first_name, comment.author_last_name, comment.author_picture) == (
        "Chatty",
        "Reader",
        "/vault/avatars/c.png",
    )
    notifications = db.query(models.Notification).filter(
        models.Notification.kind == models.NOTIFICATION_COMMENT
    ).all()
    assert len(notifications) == 1
    assert notifications[0].recipient_id == author.id
    assert notifications[0].post_id == post.id


def test_comment_on_own_post_does_not_notify(db: Session, make_user):
    author = make_user()
    post = create_post(db, author, "Topic", "content")

    add_comment(db, author, post.id, "Talking to myself")

    assert db.query(models.Notification).count() == 0


def test_comment_on_missing_post(db: Session, make_user):
    with pytest.raises(NotFound):
        add_comment(db, make_user(), 999_999, "Hello?")


def test_list_comments(db: Session, make_user):
    author = make_user()
    post = create_post(db, author, "Topic", "content")
    add_comment(db, author, post.id, "one")
    add_comment(db, author, post.id, "two")

    assert {c.content for c in list_comments(db, post.id)} == {"one", "two"}


class TestDeleteComment:
    def test_comment_author_may_delete(self, db: Session, make_user):
        author = make_user()
        commenter = make_user()
        post = create_post(db, author, "Topic", "content")
        comment = add_comment(db, commenter, post.id, "oops")

        delete_comment(db, commenter, post.id, comment.id)

        assert db.query(models.Comment).count() == 0

    def test_post_author_may_delete(self, db: Session, make_user):
        author = make_user()
        commenter = make_user()
        post = create_post(db, author, "Topic", "content")
        comment = add_comment(db, commenter, post.id, "spam")

        delete_comment(db, author, post.id, comment.id)

        assert db.query(models.Comment).count() == 0

    def test_bystander_is_forbidden(self, db: Session, make_user):
        author = make_user()
        commenter = make_user()
        bystander = make_user()
        post = create_post(db, author, "Topic", "content")
        comment = add_comment(db, commenter, post.id, "mine")

        with pytest.raises(Forbidden):
            delete_comment(db, bystander, post.id, comment.id)

        assert db.query(models.Comment).count() == 1

    def test_missing_comment(self, db: Session, make_user):
        author = make_user()
        post = create_post(db, author, "Topic", "content")

        with pytest.raises(NotFound):
            delete_comment(db, author, post.id, uuid.uuid4())
