# Ritual Playlist Generator: daily phased Spotify playlists from liked songs
# Package: src.ritual

__version__ = "1.0.0-dev"
__author__ = "Ritual Contributors"
__description__ = "Phased Spotify playlist curation from a user's liked songs"

# Module structure:
#   - ritual.generate   : Phase selection & playlist assembly
#   - ritual.spotify    : Spotify Web API client & OAuth helper
#   - ritual.notify     : E-mail notifications
#   - ritual.scheduler  : Run pipeline & daily schedule
#   - ritual.config     : Configuration management
#   - ritual.cli        : Command-line interface
