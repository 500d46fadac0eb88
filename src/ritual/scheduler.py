"""
Ritual Scheduler: run pipeline and daily schedule.

One run = fetch liked songs -> assemble -> create playlist -> add tracks ->
notify, strictly in sequence. A failure at any step aborts the run; an
already-created remote playlist is not rolled back.
"""

import logging
import threading
from datetime import datetime, timedelta
from typing import Any, Dict, Optional

from .config import Config
from .generate.models import GeneratedPlaylist
from .generate.playlist import PlaylistAssembler
from .notify import NotificationService
from .spotify.client import SpotifyService

logger = logging.getLogger(__name__)


def next_run_time(now: datetime, hour: int, minute: int) -> datetime:
    """
    Next daily trigger at hour:minute strictly after `now`.

    Args:
        now: Reference time
        hour: Hour of day (0-23)
        minute: Minute of hour (0-59)
    """
    candidate = now.replace(hour=hour, minute=minute, second=0, microsecond=0)
    if candidate <= now:
        candidate += timedelta(days=1)
    return candidate


class RitualScheduler:
    """Coordinates one playlist run and the daily schedule around it."""

    def __init__(
        self,
        spotify_service: Optional[SpotifyService] = None,
        assembler: Optional[PlaylistAssembler] = None,
        notification_service: Optional[NotificationService] = None,
        config: Optional[Config] = None,
    ):
        self.spotify_service = spotify_service or SpotifyService()
        self.assembler = assembler or PlaylistAssembler()
        self.notification_service = notification_service or NotificationService()
        self.config = config or Config.defaults()

        self._thread: Optional[threading.Thread] = None
        self._stop_event = threading.Event()
        self._next_run: Optional[datetime] = None

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def initialize(self) -> None:
        self.spotify_service.authenticate()

    def generate_playlist(self) -> GeneratedPlaylist:
        """Fetch the library and assemble a playlist without publishing it."""
        pool = self.spotify_service.get_all_liked_songs()
        return self.assembler.assemble(pool, self.config.to_playlist_config())

    def create_daily_playlist(self) -> str:
        """
        Generate, publish and announce one playlist.

        Returns:
            ID of the created Spotify playlist

        Raises:
            Any collaborator or assembly error, after logging it
        """
        try:
            logger.info("🎵 Starting daily ritual playlist generation...")

            playlist = self.generate_playlist()

            logger.info(f"📝 Generated playlist: {playlist.name}")
            logger.info(f"⏱️  Total duration: {playlist.total_minutes} minutes")
            logger.info(f"🎶 Total tracks: {len(playlist.tracks)}")

            playlist_id = self.spotify_service.create_playlist(
                playlist.name,
                playlist.summary(),
                public=bool(self.config.get("playlist", "public", False)),
            )
            self.spotify_service.add_tracks_to_playlist(playlist_id, list(playlist.track_uris))

            logger.info(f"✅ Successfully created playlist with ID: {playlist_id}")
            logger.info("📊 Phase breakdown:")
            for entry in playlist.phase_breakdown:
                logger.info(f"   {entry.phase}: {len(entry.tracks)} tracks, {entry.minutes}min")

            self.notification_service.notify_playlist_created(playlist, playlist_id)
            return playlist_id

        except Exception as e:
            logger.error(f"❌ Failed to create daily ritual playlist: {e}")
            raise

    def _run_loop(self, hour: int, minute: int) -> None:
        while not self._stop_event.is_set():
            self._next_run = next_run_time(datetime.now(), hour, minute)
            wait_seconds = (self._next_run - datetime.now()).total_seconds()
            logger.debug(f"Next run at {self._next_run.isoformat()} (in {wait_seconds:.0f}s)")

            if self._stop_event.wait(timeout=max(0.0, wait_seconds)):
                break

            logger.info(f"🌅 Daily ritual playlist creation triggered at {datetime.now():%Y-%m-%d %H:%M}")
            try:
                self.create_daily_playlist()
            except Exception as e:
                logger.error(f"💥 Scheduled playlist creation failed: {e}", exc_info=True)

        self._next_run = None

    def start_daily_schedule(self, hour: int = 6, minute: int = 0) -> None:
        """
        Start creating a playlist every day at hour:minute (local time).

        Runs on a background daemon thread; a failed run is logged and the
        schedule continues.
        """
        if self.is_running:
            logger.warning("⚠️  Scheduler is already running")
            return

        logger.info(f"🕐 Scheduling daily ritual playlist creation at {hour}:{minute:02d}")

        self._stop_event.clear()
        self._next_run = next_run_time(datetime.now(), hour, minute)
        self._thread = threading.Thread(
            target=self._run_loop,
            args=(hour, minute),
            name="ritual-scheduler",
            daemon=True,
        )
        self._thread.start()
        logger.info("✅ Daily scheduler started successfully")

    def stop_schedule(self, timeout: Optional[float] = 5.0) -> None:
        if not self.is_running:
            logger.warning("⚠️  Scheduler is not running")
            return

        self._stop_event.set()
        self._thread.join(timeout=timeout)
        if self._thread.is_alive():
            # Worker stays registered until its run completes
            logger.warning("⚠️  Scheduler thread still finishing the current run")
            return

        self._thread = None
        logger.info("🛑 Daily scheduler stopped")

    def run_once(self) -> str:
        """Authenticate and create a single playlist."""
        logger.info("🎯 Running ritual playlist generation once...")
        self.initialize()
        return self.create_daily_playlist()

    def get_status(self) -> Dict[str, Any]:
        running = self.is_running
        return {
            "is_running": running,
            "next_run": self._next_run.isoformat() if running and self._next_run else None,
        }
