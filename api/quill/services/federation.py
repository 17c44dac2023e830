"""Google sign-in (OAuth 2.0 authorization-code flow)."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from urllib.parse import urlencode

import httpx

from ..errors import BadRequest, Internal

logger = logging.getLogger(__name__)

GOOGLE_AUTHORIZE_URL = "https://accounts.google.com/o/oauth2/v2/auth"
GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"
GOOGLE_USERINFO_URL = "https://openidconnect.googleapis.com/v1/userinfo"


@dataclass(frozen=True)
class FederatedProfile:
    """Verified identity data supplied by the federation provider."""

    email: str
    first_name: str
    last_name: str
    picture: str
    display_name: str


def upscale_google_picture(url: str) -> str:
    """Ask Google for the 400px rendition instead of the default 96px one."""
    return url.replace("s96-c", "s400-c")


class GoogleOAuthClient:
    def __init__(
        self,
        client_id: str,
        client_secret: str,
        redirect_uri: str,
        timeout: float = 10.0,
    ) -> None:
        self.client_id = client_id
        self.client_secret = client_secret
        self.redirect_uri = redirect_uri
        self.timeout = timeout

    def authorization_url(self, state: str) -> str:
        params = {
            "client_id": self.client_id,
            "redirect_uri": self.redirect_uri,
            "response_type": "code",
            "scope": "openid profile email",
            "state": state,
        }
        return f"{GOOGLE_AUTHORIZE_URL}?{urlencode(params)}"

    def fetch_profile(self, code: str) -> FederatedProfile:
        """
        Exchange an authorization code and fetch the user's profile.

        Raises:
            BadRequest: If Google rejects the code or returns no verified email
            Internal: If Google cannot be reached
        """
        token_data = {
            "client_id": self.client_id,
            "client_secret": self.client_secret,
            "code": code,
            "grant_type": "authorization_code",
            "redirect_uri": self.redirect_uri,
        }

        logger.info("Exchanging Google OAuth code for access token")
        try:
            with httpx.Client(timeout=self.timeout) as client:
                response = client.post(
                    GOOGLE_TOKEN_URL,
                    data=token_data,
                    headers={"Accept": "application/json"},
                )
                token_response = response.json()

                if response.status_code >= 400 or "error" in token_response:
                    error_msg = (
                        "Google OAuth error: "
                        f"{token_response.get('error_description', token_response.get('error', 'Unknown error'))}"
                    )
                    logger.error(error_msg)
                    raise BadRequest(error_msg)

                access_token = token_response["access_token"]

                logger.info("Fetching Google user profile")
                user_response = client.get(
                    GOOGLE_USERINFO_URL,
                    headers={"Authorization": f"Bearer {access_token}"},
                )
                user_response.raise_for_status()
                info = user_response.json()
        except (httpx.HTTPError, KeyError, ValueError) as e:
            logger.error(f"Google OAuth exchange failed: {e}", exc_info=True)
            raise Internal("Failed to complete Google sign-in")

        email = (info.get("email") or "").lower().strip()
        if not email or info.get("email_verified") is False:
            raise BadRequest("Google account has no verified email")

        display_name = info.get("name") or email
        return FederatedProfile(
            email=email,
            first_name=info.get("given_name") or display_name,
            last_name=info.get("family_name") or "",
            picture=upscale_google_picture(info.get("picture") or ""),
            display_name=display_name,
        )
