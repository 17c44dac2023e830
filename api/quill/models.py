from __future__ import annotations

import uuid

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    Uuid,
    func,
)
from sqlalchemy.orm import relationship

from .db import Base


# Notification kinds
NOTIFICATION_LIKE = "like"
NOTIFICATION_COMMENT = "comment"
NOTIFICATION_SUBSCRIBE = "subscribe"
NOTIFICATION_POST_CREATED = "post_created"

NOTIFICATION_KINDS = (
    NOTIFICATION_LIKE,
    NOTIFICATION_COMMENT,
    NOTIFICATION_SUBSCRIBE,
    NOTIFICATION_POST_CREATED,
)


# ============================================================================
# IDENTITY
# ============================================================================


class User(Base):
    """User account; source of truth for the display snapshot."""

    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True, index=True)
    email = Column(
        String(255), unique=True, nullable=False, index=True
    )  # Immutable identity key, stored lowercase
    password_hash = Column(String(255), nullable=False)
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False)
    date_of_birth = Column(Date, nullable=False)
    picture = Column(String(1000), nullable=False, default="")
    about = Column(Text, nullable=False, default="")

    # Timestamps
    created_at = Column(
        DateTime(timezone=True), nullable=False, server_default=func.now(), index=True
    )
    updated_at = Column(DateTime(timezone=True), nullable=True, onupdate=func.now())

    # Relationships
    posts = relationship(
        "Post", back_populates="author", foreign_keys="Post.author_id", passive_deletes=True
    )
    comments = relationship(
        "Comment", back_populates="author", foreign_keys="Comment.author_id", passive_deletes=True
    )

    @property
    def display_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


class Subscription(Base):
    """Membership of ``subscriber_id`` in the subscriber set of ``user_id``."""

    __tablename__ = "subscriptions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    subscriber_id = Column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )

    created_at = Column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )

    __table_args__ = (
        UniqueConstraint("user_id", "subscriber_id", name="uq_subscription_user_subscriber"),
        CheckConstraint("user_id <> subscriber_id", name="ck_subscription_not_self"),
    )


# ============================================================================
# CONTENT
# ============================================================================


class Post(Base):
    """Blog post with a denormalized snapshot of its author."""

    __tablename__ = "posts"

    id = Column(Integer, primary_key=True, autoincrement=True, index=True)
    author_id = Column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )

    # Content (already rendered from the raw markup)
    title = Column(String(300), nullable=False)
    content = Column(Text, nullable=False)
    image = Column(String(1000), nullable=False, default="")

    # Author snapshot, kept in sync by the consistency propagator
    author_first_name = Column(String(100), nullable=False)
    author_last_name = Column(String(100), nullable=False)
    author_picture = Column(String(1000), nullable=False, default="")

    # Timestamps
    created_at = Column(
        DateTime(timezone=True), nullable=False, server_default=func.now(), index=True
    )
    updated_at = Column(
        DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now()
    )

    # Relationships
    author = relationship("User", back_populates="posts", foreign_keys=[author_id])
    comments = relationship("Comment", back_populates="post", passive_deletes=True)
    likes = relationship("PostLike", back_populates="post", passive_deletes=True)

    __table_args__ = (Index("ix_posts_author_created", author_id, created_at.desc()),)


class PostLike(Base):
    """Membership of ``user_id`` in the liking-user set of ``post_id``."""

    __tablename__ = "post_likes"

    id = Column(Integer, primary_key=True, autoincrement=True)
    post_id = Column(
        Integer, ForeignKey("posts.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id = Column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )

    created_at = Column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )

    # Relationships
    post = relationship("Post", back_populates="likes")

    __table_args__ = (
        UniqueConstraint("post_id", "user_id", name="uq_post_like_post_user"),
    )


class Comment(Base):
    """Comment on a post with a denormalized snapshot of its author."""

    __tablename__ = "comments"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4, index=True)
    post_id = Column(
        Integer, ForeignKey("posts.id", ondelete="CASCADE"), nullable=False, index=True
    )
    author_id = Column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )

    content = Column(Text, nullable=False)

    author_first_name = Column(String(100), nullable=False)
    author_last_name = Column(String(100), nullable=False)
    author_picture = Column(String(1000), nullable=False, default="")

    created_at = Column(
        DateTime(timezone=True), nullable=False, server_default=func.now(), index=True
    )

    # Relationships
    post = relationship("Post", back_populates="comments")
    author = relationship("User", back_populates="comments", foreign_keys=[author_id])

    __table_args__ = (Index("ix_comments_post_created", post_id, created_at.desc()),)


# ============================================================================
# NOTIFICATIONS
# ============================================================================


class Notification(Base):
    """Notification with a denormalized snapshot of its sender."""

    __tablename__ = "notifications"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4, index=True)
    recipient_id = Column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    sender_id = Column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    post_id = Column(
        Integer, ForeignKey("posts.id", ondelete="SET NULL"), nullable=True, index=True
    )

    kind = Column(String(20), nullable=False)  # like, comment, subscribe, post_created

    sender_first_name = Column(String(100), nullable=False)
    sender_last_name = Column(String(100), nullable=False)
    sender_picture = Column(String(1000), nullable=False, default="")

    is_read = Column(Boolean, nullable=False, default=False, index=True)

    created_at = Column(
        DateTime(timezone=True), nullable=False, server_default=func.now(), index=True
    )

    # Relationships
    post = relationship("Post", foreign_keys=[post_id])

    __table_args__ = (
        CheckConstraint(
            "kind IN ('like', 'comment', 'subscribe', 'post_created')",
            name="ck_notification_kind",
        ),
        Index("ix_notifications_recipient_created", recipient_id, created_at.desc()),
    )

    @property
    def post_title(self) -> str | None:
        return self.post.title if self.post is not None else None
