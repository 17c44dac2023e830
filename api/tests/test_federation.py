"""Tests for Google sign-in and federated account upsert."""

from unittest.mock import MagicMock, patch
from urllib.parse import parse_qs, urlparse

import httpx
import pytest

from quill.errors import BadRequest, Internal
from quill.services.federation import GoogleOAuthClient, upscale_google_picture


@pytest.fixture
def oauth() -> GoogleOAuthClient:
    return GoogleOAuthClient(
        client_id="cid",
        client_secret="secret",
        redirect_uri="http://localhost/auth/google/callback",
    )


def _response(status_code: int, payload: dict) -> MagicMock:
    response = MagicMock()
    response.status_code = status_code
    response.json.return_value = payload
    response.raise_for_status.return_value = None
    return response


def _mock_httpx_client(token_response: MagicMock, userinfo_response: MagicMock | None = None):
    client = MagicMock()
    client.__enter__.return_value = client
    client.post.return_value = token_response
    if userinfo_response is not None:
        client.get.return_value = userinfo_response
    return client


def test_authorization_url(oauth: GoogleOAuthClient):
    url = urlparse(oauth.authorization_url("abc"))
    params = parse_qs(url.query)

    assert url.netloc == "accounts.google.com"
    assert params["client_id"] == ["cid"]
    assert params["state"] == ["abc"]
    assert params["response_type"] == ["code"]
    assert "email" in params["scope"][0]


def test_upscale_google_picture():
    assert upscale_google_picture("https://lh3/a/photo=s96-c") == "https://lh3/a/photo=s400-c"
    assert upscale_google_picture("https://lh3/a/photo") == "https://lh3/a/photo"


def test_fetch_profile(oauth: GoogleOAuthClient):
    client = _mock_httpx_client(
        _response(200, {"access_token": "at"}),
        _response(
            200,
            {
                "email": "Someone@Gmail.com",
                "email_verified": True,
                "name": "Some One",
                "given_name": "Some",
                "family_name": "One",
                "picture": "https://lh3/a/photo=s96-c",
            },
        ),
    )

    with patch("quill.services.federation.httpx.Client", return_value=client):
        profile = oauth.fetch_profile("code-123")

    assert profile.email == "someone@gmail.com"
    assert (profile.first_name, profile.last_name) == ("Some", "One")
    assert profile.picture.endswith("s400-c")
    assert profile.display_name == "Some One"
    assert client.post.call_args.kwargs["data"]["code"] == "code-123"
    assert client.get.call_args.kwargs["headers"] == {"Authorization": "Bearer at"}


def test_fetch_profile_rejected_code(oauth: GoogleOAuthClient):
    client = _mock_httpx_client(
        _response(400, {"error": "invalid_grant", "error_description": "Bad code"})
    )

    with patch("quill.services.federation.httpx.Client", return_value=client):
        with pytest.raises(BadRequest, match="Bad code"):
            oauth.fetch_profile("stale")

    client.get.assert_not_called()


def test_fetch_profile_unverified_email(oauth: GoogleOAuthClient):
    client = _mock_httpx_client(
        _response(200, {"access_token": "at"}),
        _response(200, {"email": "x@example.com", "email_verified": False}),
    )

    with patch("quill.services.federation.httpx.Client", return_value=client):
        with pytest.raises(BadRequest):
            oauth.fetch_profile("code")


def test_fetch_profile_unreachable(oauth: GoogleOAuthClient):
    client = MagicMock()
    client.__enter__.return_value = client
    client.post.side_effect = httpx.ConnectError("refused")

    with patch("quill.services.federation.httpx.Client", return_value=client):
        with pytest.raises(Internal):
            oauth.fetch_profile("code")
