"""User accounts: registration, credentials and profile edits."""

from __future__ import annotations

import logging
import secrets
from dataclasses import dataclass
from datetime import date

from passlib.context import CryptContext
from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from .. import models
from ..errors import Conflict, Internal, NotFound, Unauthorized
from ..settings import SEARCH_RESULT_LIMIT
from .federation import FederatedProfile
from .propagation import IdentitySnapshot, propagate_identity_snapshot

logger = logging.getLogger(__name__)

# Password hashing context
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


def hash_password(password: str) -> str:
    """Hash a password using bcrypt."""
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a password against its hash."""
    try:
        return pwd_context.verify(plain_password, hashed_password)
    except ValueError:
        # Malformed or unusable hash (e.g. federated accounts)
        return False


def normalize_email(email: str) -> str:
    return email.lower().strip()


@dataclass
class ProfileChanges:
    """Fields a user may change on their own profile; None means unchanged."""

    first_name: str | None = None
    last_name: str | None = None
    current_password: str | None = None
    new_password: str | None = None
    picture: str | None = None
    about: str | None = None


def get_user(db: Session, user_id: int) -> models.User:
    user = db.query(models.User).filter(models.User.id == user_id).first()
    if not user:
        raise NotFound("User not found")
    return user


def register_user(
    db: Session,
    email: str,
    password: str,
    first_name: str,
    last_name: str,
    date_of_birth: date,
) -> models.User:
    """
    Register a new user.

    Raises:
        Conflict: If the email is already registered
    """
    email = normalize_email(email)

    existing_user = db.query(models.User).filter(models.User.email == email).first()
    if existing_user:
        raise Conflict("Email exists")

    user = models.User(
        email=email,
        password_hash=hash_password(password),
        first_name=first_name,
        last_name=last_name,
        date_of_birth=date_of_birth,
        picture="",
        about="",
    )
    db.add(user)
    try:
        db.commit()
        db.refresh(user)
    except IntegrityError as e:
        db.rollback()
        error_str = str(e.orig) if hasattr(e, "orig") else str(e)
        if "email" in error_str.lower():
            raise Conflict("Email exists")
        logger.error(f"Failed to create user: {e}", exc_info=True)
        raise Internal("Failed to create user account")

    logger.info(f"Registered user {user.id}")
    return user


def authenticate(db: Session, email: str, password: str) -> models.User:
    """
    Check an email/password pair.

    Raises:
        NotFound: If no account uses the email
        Unauthorized: If the password does not match
    """
    user = db.query(models.User).filter(models.User.email == normalize_email(email)).first()
    if not user:
        raise NotFound("Invalid email")

    if not verify_password(password, user.password_hash):
        raise Unauthorized("Wrong password")

    return user


def update_profile(db: Session, user: models.User, changes: ProfileChanges) -> models.User:
    """
    Apply a profile edit and propagate the display snapshot if it changed.

    A password change requires the current password. All field updates are
    committed together; propagation runs after the commit and its failures
    never fail the edit.

    Raises:
        Unauthorized: If a new password is requested and the current one does not verify
    """
    if changes.new_password:
        if not changes.current_password or not verify_password(
            changes.current_password, user.password_hash
        ):
            raise Unauthorized("Current password is incorrect")
        user.password_hash = hash_password(changes.new_password)

    before = IdentitySnapshot.from_user(user)

    if changes.first_name is not None:
        user.first_name = changes.first_name
    if changes.last_name is not None:
        user.last_name = changes.last_name
    if changes.about is not None:
        user.about = changes.about
    if changes.picture:
        user.picture = changes.picture

    after = IdentitySnapshot.from_user(user)

    db.commit()
    db.refresh(user)

    if after != before:
        propagate_identity_snapshot(db, user.id, after)

    return user


def set_picture(db: Session, user: models.User, picture_url: str) -> models.User:
    """Replace a user's picture and always propagate the new snapshot."""
    user.picture = picture_url
    db.commit()
    db.refresh(user)

    propagate_identity_snapshot(db, user.id, IdentitySnapshot.from_user(user))

    return user


def upsert_federated_user(db: Session, profile: FederatedProfile) -> models.User:
    """
    Create or refresh the local account for a federated sign-in.

    Accounts are keyed by email. An existing account only has its picture
    refreshed; a new one gets an unusable random password.
    """
    email = normalize_email(profile.email)
    user = db.query(models.User).filter(models.User.email == email).first()

    if user:
        if profile.picture and profile.picture != user.picture:
            set_picture(db, user, profile.picture)
        return user

    user = models.User(
        email=email,
        password_hash=f"federated${secrets.token_urlsafe(32)}",
        first_name=profile.first_name,
        last_name=profile.last_name,
        date_of_birth=date.today(),
        picture=profile.picture,
        about=f"Hi, I'm {profile.display_name}!",
    )
    db.add(user)
    db.commit()
    db.refresh(user)

    logger.info(f"Created user {user.id} via Google sign-in")
    return user


def search_users(db: Session, term: str, limit: int = SEARCH_RESULT_LIMIT) -> list[models.User]:
    """Case-insensitive search on first name, last name and email."""
    pattern = f"%{term}%"
    return (
        db.query(models.User)
        .filter(
            or_(
                models.User.first_name.ilike(pattern),
                models.User.last_name.ilike(pattern),
                models.User.email.ilike(pattern),
            )
        )
        .order_by(models.User.first_name.asc(), models.User.id.asc())
        .limit(limit)
        .all()
    )
