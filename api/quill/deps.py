from __future__ import annotations

import os
from pathlib import Path
from typing import Generator

from sqlalchemy.orm import Session

from .db import get_session
from .errors import Internal
from .services.federation import GoogleOAuthClient
from .services.grammar import GrammarClient
from .vault import ImageVault


def get_db() -> Generator[Session, None, None]:
    yield from get_session()


def get_optional_vault() -> ImageVault | None:
    vault_location = os.getenv("VAULT_LOCATION")
    if not vault_location:
        return None
    return ImageVault(
        root=Path(vault_location),
        public_prefix=os.getenv("VAULT_PUBLIC_URL", "/vault"),
    )


def get_vault() -> ImageVault:
    vault = get_optional_vault()
    if vault is None:
        raise Internal("Image storage not configured")
    return vault


def get_grammar_client() -> GrammarClient:
    api_key = os.getenv("TEXTGEARS_API_KEY")
    if not api_key:
        raise Internal("Grammar service not configured")
    return GrammarClient(
        api_key=api_key,
        base_url=os.getenv("TEXTGEARS_API_URL", "https://api.textgears.com"),
    )


def get_google_oauth_client() -> GoogleOAuthClient:
    client_id = os.getenv("GOOGLE_CLIENT_ID")
    client_secret = os.getenv("GOOGLE_CLIENT_SECRET")
    if not client_id or not client_secret:
        raise Internal("Google OAuth not configured")
    return GoogleOAuthClient(
        client_id=client_id,
        client_secret=client_secret,
        redirect_uri=os.getenv(
            "GOOGLE_REDIRECT_URI", "http://localhost/auth/google/callback"
        ),
    )
