"""
Spotify Module: Web API access for the playlist generator.

- Liked-songs fetch (paginated) and audio features
- Playlist creation and track insertion
- Authorization-code OAuth helper
"""

__all__ = ["client", "auth"]
