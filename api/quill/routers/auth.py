"""Authentication, profile and subscription endpoints."""

from __future__ import annotations

import logging
import secrets
from urllib.parse import urlencode

from fastapi import APIRouter, Depends, File, Query, Request, UploadFile, status
from fastapi.responses import RedirectResponse
from sqlalchemy.orm import Session

from .. import models, schemas
from ..auth import get_current_user, issue_identity_assertion, verify_identity_assertion
from ..deps import get_db, get_google_oauth_client, get_optional_vault, get_vault
from ..errors import BadRequest
from ..services import accounts, identity, subscriptions
from ..services.federation import GoogleOAuthClient
from ..settings import FRONTEND_URL
from ..utils.uploads import save_upload
from ..vault import AVATARS, ImageVault

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["Auth"])

OAUTH_STATE_COOKIE = "quill_oauth_state"
OAUTH_STATE_MAX_AGE = 600


def _token_response(user: models.User, msg: str | None = None) -> schemas.TokenResponse:
    token = issue_identity_assertion(user)
    claims = verify_identity_assertion(token)
    return schemas.TokenResponse(token=token, expires_at=claims.expires_at, msg=msg)


@router.post(
    "/register",
    response_model=schemas.UserFull,
    status_code=status.HTTP_201_CREATED,
)
def register(
    payload: schemas.RegisterRequest,
    db: Session = Depends(get_db),
) -> schemas.UserFull:
    """Register a new user with email and password."""
    user = identity.register_user(
        db,
        email=payload.email,
        password=payload.password,
        first_name=payload.first_name,
        last_name=payload.last_name,
        date_of_birth=payload.date_of_birth,
    )
    return schemas.UserFull.model_validate(user)


@router.post("/login", response_model=schemas.TokenResponse)
def login(
    payload: schemas.LoginRequest,
    db: Session = Depends(get_db),
) -> schemas.TokenResponse:
    """Exchange email and password for an identity assertion."""
    user = identity.authenticate(db, payload.email, payload.password)
    logger.info(f"User {user.id} logged in")
    return _token_response(user)


@router.get("/me", response_model=schemas.UserFull)
def me(current_user: models.User = Depends(get_current_user)) -> schemas.UserFull:
    return schemas.UserFull.model_validate(current_user)


@router.put("/update", response_model=schemas.TokenResponse)
def update_profile(
    payload: schemas.ProfileUpdate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
) -> schemas.TokenResponse:
    """
    Edit the caller's profile.

    Returns a fresh identity assertion carrying the new display snapshot.
    """
    user = identity.update_profile(
        db,
        current_user,
        identity.ProfileChanges(**payload.model_dump()),
    )
    return _token_response(user, msg="Profile updated successfully")


@router.get("/profile/{user_id}", response_model=schemas.UserPublic)
def get_profile(
    user_id: int,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
) -> schemas.UserPublic:
    return schemas.UserPublic.model_validate(identity.get_user(db, user_id))


@router.post("/refresh-token", response_model=schemas.TokenResponse)
def refresh_token(current_user: models.User = Depends(get_current_user)) -> schemas.TokenResponse:
    """Re-issue an identity assertion from the caller's current record."""
    return _token_response(current_user)


@router.post("/upload-avatar", response_model=schemas.AvatarUploadResponse)
async def upload_avatar(
    image: UploadFile = File(...),
    db: Session = Depends(get_db),
    vault: ImageVault = Depends(get_vault),
    current_user: models.User = Depends(get_current_user),
) -> schemas.AvatarUploadResponse:
    """
    Upload a new avatar for the caller.

    The previous avatar file is removed from the vault when it was stored there.
    """
    image_url = await save_upload(vault, AVATARS, image)

    old_picture = current_user.picture
    identity.set_picture(db, current_user, image_url)
    vault.try_delete(old_picture)

    return schemas.AvatarUploadResponse(image_url=image_url)


@router.put("/subscribe/{user_id}", response_model=schemas.SubscriptionStateResponse)
def toggle_subscription(
    user_id: int,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
) -> schemas.SubscriptionStateResponse:
    """Subscribe to a user, or unsubscribe if already subscribed."""
    state = subscriptions.toggle_subscription(db, current_user, user_id)
    return schemas.SubscriptionStateResponse.model_validate(state)


@router.get("/subscribe/{user_id}", response_model=schemas.SubscriptionStateResponse)
def get_subscription(
    user_id: int,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
) -> schemas.SubscriptionStateResponse:
    state = subscriptions.get_subscription_state(db, current_user, user_id)
    return schemas.SubscriptionStateResponse.model_validate(state)


@router.delete("/delete-account", response_model=schemas.AccountDeletionResponse)
def delete_account(
    db: Session = Depends(get_db),
    vault: ImageVault | None = Depends(get_optional_vault),
    current_user: models.User = Depends(get_current_user),
) -> schemas.AccountDeletionResponse:
    """Delete the caller's account and everything attached to it."""
    report = accounts.delete_account(db, current_user.id, vault=vault)
    return schemas.AccountDeletionResponse(
        msg="Account deleted successfully",
        failed_steps=report.failed,
    )


@router.get("/google/login")
def google_login(
    oauth: GoogleOAuthClient = Depends(get_google_oauth_client),
) -> RedirectResponse:
    """Redirect to Google's consent screen."""
    state = secrets.token_urlsafe(32)
    response = RedirectResponse(url=oauth.authorization_url(state))
    response.set_cookie(
        OAUTH_STATE_COOKIE,
        state,
        max_age=OAUTH_STATE_MAX_AGE,
        httponly=True,
        samesite="lax",
    )
    return response


@router.get("/google/callback")
def google_callback(
    request: Request,
    code: str | None = Query(None),
    state: str | None = Query(None),
    error: str | None = Query(None),
    db: Session = Depends(get_db),
    oauth: GoogleOAuthClient = Depends(get_google_oauth_client),
) -> RedirectResponse:
    """
    Handle Google's redirect: verify state, upsert the local user and hand the
    identity assertion to the frontend.
    """
    if error:
        logger.warning(f"Google OAuth denied: {error}")
        raise BadRequest(f"Google OAuth error: {error}")

    expected_state = request.cookies.get(OAUTH_STATE_COOKIE)
    if not code or not state or not expected_state or not secrets.compare_digest(
        state, expected_state
    ):
        raise BadRequest("Invalid OAuth state")

    profile = oauth.fetch_profile(code)
    user = identity.upsert_federated_user(db, profile)
    token = issue_identity_assertion(user)

    logger.info(f"User {user.id} signed in with Google")

    response = RedirectResponse(
        url=f"{FRONTEND_URL.rstrip('/')}/oauth-callback?{urlencode({'token': token})}",
        status_code=status.HTTP_302_FOUND,
    )
    response.delete_cookie(OAUTH_STATE_COOKIE)
    return response
