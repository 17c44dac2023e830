"""Post and like endpoints."""

from __future__ import annotations

import logging
from datetime import date

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile, status
from sqlalchemy.orm import Session

from .. import models, schemas
from ..auth import get_current_user, require_ownership
from ..deps import get_db, get_optional_vault
from ..errors import Internal
from ..services import identity, posts
from ..utils.uploads import save_upload
from ..vault import POST_IMAGES, ImageVault

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/posts", tags=["Posts"])


async def _store_post_image(image: UploadFile | None, vault: ImageVault | None) -> str | None:
    if image is None or not image.filename:
        return None
    if vault is None:
        raise Internal("Image storage not configured")
    return await save_upload(vault, POST_IMAGES, image)


@router.get("", response_model=list[schemas.Post])
def list_posts(db: Session = Depends(get_db)) -> list[schemas.Post]:
    """All posts, newest first, with like and comment counts."""
    return [schemas.Post.model_validate(p) for p in posts.list_posts(db)]


@router.post("", response_model=schemas.Post, status_code=status.HTTP_201_CREATED)
async def create_post(
    title: str = Form(..., min_length=1, max_length=300),
    content: str = Form(..., min_length=1),
    image: UploadFile | None = File(None),
    db: Session = Depends(get_db),
    vault: ImageVault | None = Depends(get_optional_vault),
    current_user: models.User = Depends(get_current_user),
) -> schemas.Post:
    """
    Create a post, optionally with an image.

    Subscribers of the author are notified.
    """
    image_url = await _store_post_image(image, vault)
    post = posts.create_post(db, current_user, title, content, image_url=image_url or "")
    return schemas.Post.model_validate(post)


@router.get("/user", response_model=list[schemas.Post])
def list_my_posts(
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
) -> list[schemas.Post]:
    return [schemas.Post.model_validate(p) for p in posts.list_user_posts(db, current_user.id)]


@router.get("/user/{user_id}", response_model=list[schemas.Post])
def list_user_posts(
    user_id: int,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
) -> list[schemas.Post]:
    return [schemas.Post.model_validate(p) for p in posts.list_user_posts(db, user_id)]


@router.get(
    "/search",
    response_model=list[schemas.Post] | list[schemas.UserSearchResult],
)
def search(
    q: str | None = Query(None),
    search_in: str = Query("all", alias="searchIn"),
    date_from: date | None = Query(None, alias="from"),
    date_to: date | None = Query(None, alias="to"),
    user_id: int | None = Query(None, alias="userId"),
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
) -> list[schemas.Post] | list[schemas.UserSearchResult]:
    """
    Search posts by title and/or content, or users when ``searchIn=users``.

    An empty query returns no results.
    """
    if not q:
        return []

    if search_in == "users" and user_id is None:
        return [
            schemas.UserSearchResult.model_validate(u)
            for u in identity.search_users(db, q)
        ]

    scope = "all" if search_in == "users" else search_in
    results = posts.search_posts(
        db,
        q,
        scope=scope,
        author_id=user_id,
        date_from=date_from,
        date_to=date_to,
    )
    return [schemas.Post.model_validate(p) for p in results]


@router.get("/{post_id}", response_model=schemas.Post)
def get_post(
    post_id: int,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
) -> schemas.Post:
    post = posts.get_post(db, post_id)
    posts.annotate_posts_with_counts(db, [post])
    return schemas.Post.model_validate(post)


@router.put("/{post_id}", response_model=schemas.Post)
async def edit_post(
    post_id: int,
    title: str = Form(..., min_length=1, max_length=300),
    content: str = Form(..., min_length=1),
    image: UploadFile | None = File(None),
    db: Session = Depends(get_db),
    vault: ImageVault | None = Depends(get_optional_vault),
    current_user: models.User = Depends(get_current_user),
) -> schemas.Post:
    """Edit a post. The image is only replaced when a new one is uploaded."""
    # Reject before storing an image for an edit that cannot succeed
    require_ownership(posts.get_post(db, post_id).author_id, current_user)

    image_url = await _store_post_image(image, vault)
    post = posts.edit_post(db, current_user, post_id, title, content, image_url=image_url)
    return schemas.Post.model_validate(post)


@router.delete("/{post_id}", response_model=schemas.Message)
def delete_post(
    post_id: int,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
) -> schemas.Message:
    posts.delete_post(db, current_user, post_id)
    return schemas.Message(msg="Post and associated comments deleted successfully")


@router.put("/{post_id}/like", response_model=schemas.LikeState)
def toggle_like(
    post_id: int,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
) -> schemas.LikeState:
    """Like a post, or remove the caller's like."""
    return schemas.LikeState.model_validate(posts.toggle_like(db, current_user, post_id))


@router.get("/{post_id}/likes", response_model=schemas.LikeState)
def get_likes(
    post_id: int,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
) -> schemas.LikeState:
    return schemas.LikeState.model_validate(posts.get_like_state(db, current_user, post_id))
