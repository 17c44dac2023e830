from __future__ import annotations

from datetime import date, datetime
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


# ============================================================================
# BASE SCHEMAS
# ============================================================================


class Problem(BaseModel):
    """RFC 7807 Problem Details for HTTP APIs."""

    type: str = Field(default="about:blank")
    title: str
    status: int
    detail: str | None = None


class Message(BaseModel):
    """Plain acknowledgement."""

    msg: str


# ============================================================================
# HEALTH
# ============================================================================


class HealthResponse(BaseModel):
    """Health check response."""

    status: Literal["ok"] = "ok"
    uptime_s: float | None = None


# ============================================================================
# AUTH & USER SCHEMAS
# ============================================================================


class RegisterRequest(BaseModel):
    """Password registration request."""

    email: str = Field(..., min_length=3, max_length=255)
    password: str = Field(..., min_length=6, max_length=128)
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    date_of_birth: date


class LoginRequest(BaseModel):
    """Email/password login request."""

    email: str = Field(..., min_length=3, max_length=255)
    password: str


class TokenResponse(BaseModel):
    """Identity assertion returned by login, profile update and refresh."""

    token: str
    expires_at: datetime | None = None
    msg: str | None = None


class ProfileUpdate(BaseModel):
    """Profile edit; omitted fields are left unchanged."""

    first_name: str | None = Field(None, min_length=1, max_length=100)
    last_name: str | None = Field(None, min_length=1, max_length=100)
    current_password: str | None = None
    new_password: str | None = Field(None, min_length=6, max_length=128)
    picture: str | None = Field(None, max_length=1000)
    about: str | None = Field(None, max_length=5000)


class UserPublic(BaseModel):
    """Public user profile."""

    id: int
    first_name: str
    last_name: str
    picture: str = ""
    about: str = ""
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class UserFull(UserPublic):
    """User profile as seen by its owner."""

    email: str
    date_of_birth: date


class UserSearchResult(BaseModel):
    """User match returned by the search endpoint."""

    id: int
    first_name: str
    last_name: str
    email: str
    picture: str = ""

    model_config = ConfigDict(from_attributes=True)


class AvatarUploadResponse(BaseModel):
    """Public URL of a freshly uploaded avatar."""

    image_url: str


class SubscriptionStateResponse(BaseModel):
    """Subscriber-set membership of the caller and the resulting size."""

    is_subscribed: bool
    subscriber_count: int

    model_config = ConfigDict(from_attributes=True)


class AccountDeletionResponse(BaseModel):
    """Outcome of an account deletion."""

    msg: str
    failed_steps: list[str] = []


# ============================================================================
# POST SCHEMAS
# ============================================================================


class Post(BaseModel):
    """Post with its author snapshot."""

    id: int
    author_id: int
    title: str
    content: str
    image: str = ""
    author_first_name: str
    author_last_name: str
    author_picture: str = ""
    created_at: datetime
    updated_at: datetime | None = None

    # Counts attached for listings
    like_count: int | None = None
    comment_count: int | None = None

    model_config = ConfigDict(from_attributes=True)


class LikeState(BaseModel):
    """Like count of a post and whether the caller likes it."""

    likes: int
    is_liked: bool

    model_config = ConfigDict(from_attributes=True)


# ============================================================================
# COMMENT SCHEMAS
# ============================================================================


class CommentCreate(BaseModel):
    """Create comment request."""

    content: str = Field(..., min_length=1, max_length=5000)


class Comment(BaseModel):
    """Comment with its author snapshot."""

    id: UUID
    post_id: int
    author_id: int
    content: str
    author_first_name: str
    author_last_name: str
    author_picture: str = ""
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


# ============================================================================
# NOTIFICATION SCHEMAS
# ============================================================================


class Notification(BaseModel):
    """Notification with its sender snapshot."""

    id: UUID
    kind: Literal["like", "comment", "subscribe", "post_created"]
    sender_id: int
    sender_first_name: str
    sender_last_name: str
    sender_picture: str = ""
    post_id: int | None = None
    post_title: str | None = None
    is_read: bool
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class NotificationList(BaseModel):
    """Most recent notifications and the total unread count."""

    notifications: list[Notification]
    unread_count: int


class MarkReadResponse(BaseModel):
    """Number of notifications flipped to read."""

    msg: str
    updated: int


# ============================================================================
# AI SCHEMAS
# ============================================================================


class ImproveContentRequest(BaseModel):
    """Text to run through the grammar service."""

    content: str = Field(..., min_length=1)


class ImproveContentResponse(BaseModel):
    """Text with the grammar service's suggestions applied."""

    improved_content: str
    corrections: int
    original: str
