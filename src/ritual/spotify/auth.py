"""
Interactive Spotify authorization (authorization-code flow).

Run once via `ritual-playlist --auth`: prints the authorization URL, waits for
the redirect on the local callback server and exchanges the code for tokens
to be stored as SPOTIFY_ACCESS_TOKEN / SPOTIFY_REFRESH_TOKEN.
"""

import logging
from typing import Dict, Optional

import requests
from spotipy.oauth2 import SpotifyOauthError

from .client import SpotifyAuthError, SpotifyService

logger = logging.getLogger(__name__)


def start_auth_flow(service: Optional[SpotifyService] = None) -> Dict[str, str]:
    """
    Authorize the application and return fresh tokens.

    Args:
        service: SpotifyService holding client credentials (built from env if None)

    Returns:
        Dict with "access_token" and "refresh_token"

    Raises:
        SpotifyAuthError: If credentials are missing or authorization fails
    """
    if service is None:
        service = SpotifyService()

    if not service.client_id or not service.client_secret:
        raise SpotifyAuthError(
            "Spotify credentials not configured. Please set SPOTIFY_CLIENT_ID "
            "and SPOTIFY_CLIENT_SECRET environment variables."
        )

    oauth = service.oauth_manager(open_browser=True)
    logger.info("🔐 Starting Spotify authentication...")
    logger.info(f"Please visit this URL to authorize the application:\n{oauth.get_authorize_url()}")
    logger.info(f"🚀 Waiting for authorization callback on {service.redirect_uri}")

    try:
        code = oauth.get_auth_response()
    except (SpotifyOauthError, requests.RequestException) as e:
        raise SpotifyAuthError(f"Authorization error: {e}") from e

    if not code:
        raise SpotifyAuthError("No authorization code received")

    tokens = service.exchange_code_for_tokens(code)
    return {
        "access_token": tokens["access_token"],
        "refresh_token": tokens.get("refresh_token", ""),
    }
