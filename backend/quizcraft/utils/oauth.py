"""Google OAuth authorization-code exchange.

Only the network half of Google sign-in lives here: trading the code
for an access token and reading the user's profile. Deciding which
local account the profile belongs to is done by `AuthService`.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

import httpx

from ..config import settings

logger = logging.getLogger("quizcraft.oauth")

GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"
GOOGLE_USERINFO_URL = "https://www.googleapis.com/oauth2/v2/userinfo"


class OAuthError(Exception):
    """Raised when Google rejects the code or returns an unusable profile."""


@dataclass(frozen=True)
class GoogleProfile:
    google_id: str
    email: str
    name: str
    avatar: Optional[str] = None


def exchange_code(code: str, redirect_uri: Optional[str] = None, timeout: float = 10.0) -> GoogleProfile:
    """Exchange an authorization `code` for the signed-in user's Google profile."""
    try:
        with httpx.Client(timeout=timeout) as client:
            token_response = client.post(
                GOOGLE_TOKEN_URL,
                data={
                    "code": code,
                    "client_id": settings.GOOGLE_CLIENT_ID,
                    "client_secret": settings.GOOGLE_CLIENT_SECRET,
                    "redirect_uri": redirect_uri or settings.GOOGLE_REDIRECT_URI,
                    "grant_type": "authorization_code",
                },
            )
            if token_response.status_code != 200:
                logger.error("token exchange failed: %s", token_response.text)
                raise OAuthError("Failed to exchange authorization code")
            access_token = token_response.json().get("access_token")
            if not access_token:
                raise OAuthError("Google did not return an access token")

            info_response = client.get(GOOGLE_USERINFO_URL, headers={"Authorization": f"Bearer {access_token}"})
            if info_response.status_code != 200:
                logger.error("userinfo fetch failed: %s", info_response.text)
                raise OAuthError("Failed to get user information")
            info = info_response.json()
    except httpx.HTTPError as e:
        logger.error("google oauth request failed: %s", e)
        raise OAuthError("Could not reach Google") from e

    if not info.get("id") or not info.get("email"):
        raise OAuthError("Email not found in Google response")
    return GoogleProfile(
        google_id=str(info["id"]),
        email=info["email"].lower(),
        name=info.get("name") or info["email"].split("@")[0],
        avatar=info.get("picture"),
    )
