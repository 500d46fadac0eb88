"""
Spotify Web API client (spotipy).

Acts as both collaborators of the playlist assembler:
- Track Source: paginated fetch of the user's liked songs
- Publisher: playlist creation and chunked track insertion

Credentials come from the environment:
SPOTIFY_CLIENT_ID, SPOTIFY_CLIENT_SECRET, SPOTIFY_REDIRECT_URI,
SPOTIFY_ACCESS_TOKEN, SPOTIFY_REFRESH_TOKEN.
"""

import logging
import os
from typing import Any, Dict, Iterator, List, Optional, Sequence, Tuple

import requests
import spotipy
from spotipy.cache_handler import MemoryCacheHandler
from spotipy.oauth2 import SpotifyOAuth, SpotifyOauthError

from ..generate.models import AudioFeatures, Track

logger = logging.getLogger(__name__)

DEFAULT_REDIRECT_URI = "http://127.0.0.1:8888/callback"
AUTH_STATE = "ritual-playlist-generator"
SCOPES = [
    "user-library-read",
    "playlist-modify-public",
    "playlist-modify-private",
    "user-read-private",
    "user-read-email",
]

PAGE_LIMIT = 50
ITEMS_PER_REQUEST = 100
REQUEST_TIMEOUT_SECONDS = 10
MAX_RETRIES = 3


class SpotifyError(Exception):
    """Raised when a Spotify API call fails."""
    pass


class SpotifyAuthError(SpotifyError):
    """Raised when Spotify credentials or tokens are missing or rejected."""
    pass


def _chunked(items: Sequence[Any], size: int) -> Iterator[Sequence[Any]]:
    for i in range(0, len(items), size):
        yield items[i:i + size]


class SpotifyService:
    """Spotify library reader and playlist publisher."""

    def __init__(
        self,
        client_id: Optional[str] = None,
        client_secret: Optional[str] = None,
        redirect_uri: Optional[str] = None,
        access_token: Optional[str] = None,
        refresh_token: Optional[str] = None,
        client: Optional[spotipy.Spotify] = None,
    ):
        """
        Args:
            client_id: Spotify app client ID (default: SPOTIFY_CLIENT_ID)
            client_secret: Spotify app secret (default: SPOTIFY_CLIENT_SECRET)
            redirect_uri: OAuth redirect URI (default: SPOTIFY_REDIRECT_URI)
            access_token: Existing access token (default: SPOTIFY_ACCESS_TOKEN)
            refresh_token: Existing refresh token (default: SPOTIFY_REFRESH_TOKEN)
            client: Pre-authenticated spotipy client (skips authenticate())
        """
        self.client_id = client_id or os.getenv("SPOTIFY_CLIENT_ID", "")
        self.client_secret = client_secret or os.getenv("SPOTIFY_CLIENT_SECRET", "")
        self.redirect_uri = redirect_uri or os.getenv("SPOTIFY_REDIRECT_URI", DEFAULT_REDIRECT_URI)
        self.access_token = access_token or os.getenv("SPOTIFY_ACCESS_TOKEN")
        self.refresh_token = refresh_token or os.getenv("SPOTIFY_REFRESH_TOKEN")
        self._client = client

    def oauth_manager(self, open_browser: bool = False) -> SpotifyOAuth:
        return SpotifyOAuth(
            client_id=self.client_id,
            client_secret=self.client_secret,
            redirect_uri=self.redirect_uri,
            scope=" ".join(SCOPES),
            state=AUTH_STATE,
            open_browser=open_browser,
            cache_handler=MemoryCacheHandler(),
        )

    def _build_client(self, access_token: str) -> spotipy.Spotify:
        return spotipy.Spotify(
            auth=access_token,
            requests_timeout=REQUEST_TIMEOUT_SECONDS,
            retries=MAX_RETRIES,
        )

    @property
    def client(self) -> spotipy.Spotify:
        if self._client is None:
            raise SpotifyAuthError("Not authenticated; call authenticate() first")
        return self._client

    def get_auth_url(self) -> str:
        """Build the Spotify authorization URL for the authorization-code flow."""
        return self.oauth_manager().get_authorize_url()

    def exchange_code_for_tokens(self, code: str) -> Dict[str, Any]:
        """
        Exchange an authorization code for access and refresh tokens.

        Returns:
            Token dict with access_token, refresh_token, expires_in, token_type

        Raises:
            SpotifyAuthError: If the exchange fails
        """
        try:
            tokens = self.oauth_manager().get_access_token(code, as_dict=True, check_cache=False)
        except (SpotifyOauthError, requests.RequestException) as e:
            raise SpotifyAuthError(f"Failed to exchange code for tokens: {e}") from e

        self.access_token = tokens["access_token"]
        self.refresh_token = tokens.get("refresh_token") or self.refresh_token
        self._client = self._build_client(self.access_token)
        return tokens

    def authenticate(self) -> None:
        """
        Authenticate using tokens from the environment.

        An existing access token is probed with `/me`; if rejected, the
        refresh token is used to obtain a new one.

        Raises:
            SpotifyAuthError: If credentials or tokens are missing or invalid
        """
        if not self.client_id or not self.client_secret:
            raise SpotifyAuthError(
                "Spotify credentials not configured. Please set SPOTIFY_CLIENT_ID "
                "and SPOTIFY_CLIENT_SECRET environment variables."
            )

        if self.access_token and self.refresh_token:
            self._client = self._build_client(self.access_token)
            try:
                self._client.current_user()
                logger.info("✅ Using existing access token")
                return
            except spotipy.SpotifyException:
                logger.info("🔄 Access token expired, attempting refresh...")
                self.refresh_access_token()
                return
            except requests.RequestException as e:
                raise SpotifyError(f"Failed to reach Spotify: {e}") from e

        if self.refresh_token:
            self.refresh_access_token()
            return

        raise SpotifyAuthError(
            "Spotify authentication required. Run with --auth to authorize this "
            "application, then set SPOTIFY_ACCESS_TOKEN and SPOTIFY_REFRESH_TOKEN.\n"
            f"Authorization URL: {self.get_auth_url()}"
        )

    def refresh_access_token(self) -> None:
        """
        Obtain a new access token from the refresh token.

        Raises:
            SpotifyAuthError: If no refresh token is available or refresh fails
        """
        if not self.refresh_token:
            raise SpotifyAuthError("No refresh token available")

        try:
            tokens = self.oauth_manager().refresh_access_token(self.refresh_token)
        except (SpotifyOauthError, requests.RequestException) as e:
            raise SpotifyAuthError(f"Failed to refresh access token: {e}") from e

        self.access_token = tokens["access_token"]
        if tokens.get("refresh_token"):
            self.refresh_token = tokens["refresh_token"]
        self._client = self._build_client(self.access_token)
        logger.info("✅ Access token refreshed successfully")

    def _fetch_saved_page(self, limit: int, offset: int) -> Tuple[List[Track], int]:
        """Fetch one saved-tracks page; returns (tracks, raw item count)."""
        try:
            response = self.client.current_user_saved_tracks(limit=limit, offset=offset)
        except spotipy.SpotifyException as e:
            logger.error(f"Spotify API error: {e}")
            if e.http_status == 400:
                raise SpotifyError(
                    "Bad request - check your Spotify app permissions and scopes"
                ) from e
            if e.http_status == 401:
                raise SpotifyAuthError("Unauthorized - your access token may be invalid") from e
            if e.http_status == 403:
                raise SpotifyAuthError(
                    "Forbidden - check your Spotify app has the required scopes"
                ) from e
            raise SpotifyError(f"Failed to fetch liked songs: {e}") from e
        except requests.RequestException as e:
            raise SpotifyError(f"Failed to fetch liked songs: {e}") from e

        items = (response or {}).get("items") or []
        tracks = []
        for item in items:
            data = item.get("track")
            if not data or not data.get("id") or not data.get("uri"):
                logger.debug("Skipping saved item without a playable track")
                continue
            tracks.append(Track.from_spotify(data))
        return tracks, len(items)

    def get_liked_songs(self, limit: int = PAGE_LIMIT, offset: int = 0) -> List[Track]:
        """
        Fetch one page of the user's liked songs.

        Args:
            limit: Page size, clamped to Spotify's 1-50
            offset: Index of the first item, clamped to >= 0

        Returns:
            List of Track (items without a playable track are skipped)

        Raises:
            SpotifyError: If the request fails
        """
        valid_limit = min(max(1, limit), PAGE_LIMIT)
        valid_offset = max(0, offset)
        logger.debug(f"Fetching liked songs: limit={valid_limit}, offset={valid_offset}")

        tracks, _ = self._fetch_saved_page(valid_limit, valid_offset)
        return tracks

    def get_all_liked_songs(self) -> List[Track]:
        """
        Fetch the user's entire liked-songs library, page by page.

        Pagination ends at the first page with fewer items than the page size.
        """
        all_tracks: List[Track] = []
        offset = 0

        while True:
            tracks, item_count = self._fetch_saved_page(PAGE_LIMIT, offset)
            all_tracks.extend(tracks)
            if item_count < PAGE_LIMIT:
                break
            offset += PAGE_LIMIT

        if not all_tracks:
            logger.warning("⚠️  No liked songs found in your Spotify library")
        else:
            logger.info(f"✅ Found {len(all_tracks)} liked songs")

        return all_tracks

    def get_audio_features(self, tracks: Sequence[Track]) -> List[Track]:
        """
        Attach audio features to tracks.

        Tracks for which Spotify returns no features are returned unchanged.
        """
        enriched: List[Track] = []

        for chunk in _chunked(list(tracks), ITEMS_PER_REQUEST):
            try:
                features = self.client.audio_features([t.id for t in chunk]) or []
            except (spotipy.SpotifyException, requests.RequestException) as e:
                raise SpotifyError(f"Failed to fetch audio features: {e}") from e

            by_id = {f["id"]: f for f in features if f and f.get("id")}
            for track in chunk:
                data = by_id.get(track.id)
                enriched.append(
                    track.with_audio_features(AudioFeatures.from_spotify(data)) if data else track
                )

        return enriched

    def create_playlist(self, name: str, description: str, public: bool = False) -> str:
        """
        Create a playlist owned by the current user.

        Returns:
            New playlist ID

        Raises:
            SpotifyError: If creation fails
        """
        try:
            user_id = self.client.current_user()["id"]
            playlist = self.client.user_playlist_create(
                user_id, name, public=public, description=description
            )
        except (spotipy.SpotifyException, requests.RequestException) as e:
            raise SpotifyError(f"Failed to create playlist: {e}") from e

        logger.info(f"Created playlist '{name}' ({playlist['id']})")
        return playlist["id"]

    def add_tracks_to_playlist(self, playlist_id: str, track_uris: Sequence[str]) -> None:
        """
        Append tracks to a playlist in chunks of 100.

        Raises:
            SpotifyError: If any chunk fails
        """
        try:
            for chunk in _chunked(list(track_uris), ITEMS_PER_REQUEST):
                self.client.playlist_add_items(playlist_id, list(chunk))
        except (spotipy.SpotifyException, requests.RequestException) as e:
            raise SpotifyError(f"Failed to add tracks to playlist: {e}") from e

        logger.debug(f"Added {len(track_uris)} tracks to playlist {playlist_id}")
