"""
Playlist Generation Module: assemble phased playlists from a track pool.

- Candidate filtering and scoring per phase
- Randomized quota selection against phase targets
- Global duration trimming and breakdown reconciliation
"""

__all__ = ["models", "selector", "playlist"]
