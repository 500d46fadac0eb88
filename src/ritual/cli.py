#!/usr/bin/env python3
"""
Ritual Playlist Generator entrypoint.

Usage:
    ritual-playlist --auth           # Authorize with Spotify, print tokens
    ritual-playlist --once           # Create one playlist now
    ritual-playlist --dry-run        # Assemble and log a playlist, publish nothing
    ritual-playlist [--hour H] [--minute M]   # Run the daily schedule

Environment is read from .env if present (python-dotenv).
"""

import argparse
import logging
import sys
import time
from typing import List, Optional

from dotenv import load_dotenv

from .config import Config
from .scheduler import RitualScheduler
from .spotify.auth import start_auth_flow

logger = logging.getLogger(__name__)

STATUS_INTERVAL_SECONDS = 60


def _parse_args(argv: Optional[List[str]]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="ritual-playlist",
        description="Create phased Spotify playlists from your liked songs",
    )
    mode = parser.add_mutually_exclusive_group()
    mode.add_argument("--auth", action="store_true", help="Run the Spotify authorization flow")
    mode.add_argument("--once", "-o", action="store_true", help="Create one playlist and exit")
    mode.add_argument("--dry-run", action="store_true", help="Assemble a playlist without publishing")
    parser.add_argument("--config", help="Path to ritual.toml (default: RITUAL_CONFIG_PATH or configs/ritual.toml)")
    parser.add_argument("--hour", type=int, help="Daily run hour (0-23, default from config)")
    parser.add_argument("--minute", type=int, help="Daily run minute (0-59, default from config)")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    args = parser.parse_args(argv)

    if args.hour is not None and not 0 <= args.hour <= 23:
        parser.error("--hour must be between 0 and 23")
    if args.minute is not None and not 0 <= args.minute <= 59:
        parser.error("--minute must be between 0 and 59")
    return args


def _run_auth() -> int:
    tokens = start_auth_flow()
    print("\n✅ Authentication successful!")
    print("\n📝 Add these to your .env file:")
    print(f"SPOTIFY_ACCESS_TOKEN={tokens['access_token']}")
    print(f"SPOTIFY_REFRESH_TOKEN={tokens['refresh_token']}")
    print("\nThen run again with --once or start the scheduler.")
    return 0


def _run_dry(scheduler: RitualScheduler) -> int:
    scheduler.initialize()
    playlist = scheduler.generate_playlist()
    logger.info(f"📝 Dry run: {playlist.name} ({len(playlist.tracks)} tracks, {playlist.total_minutes}min)")
    for entry in playlist.phase_breakdown:
        logger.info(f"   {entry.phase}: {len(entry.tracks)} tracks, {entry.minutes}min")
        for track in entry.tracks:
            logger.info(f"      - {track.name} / {', '.join(track.artists)} ({track.duration_ms // 1000}s)")
    return 0


def _run_schedule(scheduler: RitualScheduler, hour: int, minute: int) -> int:
    scheduler.initialize()
    scheduler.start_daily_schedule(hour, minute)
    logger.info("🎵 Ritual Playlist Generator is running... Press Ctrl+C to stop")

    try:
        while scheduler.is_running:
            time.sleep(STATUS_INTERVAL_SECONDS)
            status = scheduler.get_status()
            logger.info(f"💫 Scheduler status: running (next run {status['next_run']})")
    finally:
        if scheduler.is_running:
            logger.info("👋 Shutting down gracefully...")
            scheduler.stop_schedule()
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    """Main entrypoint."""
    args = _parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="[%(asctime)s] [%(levelname)s] [%(name)s] %(message)s",
    )
    load_dotenv()

    try:
        if args.auth:
            return _run_auth()

        config = Config.load(args.config)
        logger.info(f"Config loaded: {config}")
        scheduler = RitualScheduler(config=config)

        if args.once:
            scheduler.run_once()
            return 0

        if args.dry_run:
            return _run_dry(scheduler)

        hour = args.hour if args.hour is not None else config.get("schedule", "hour")
        minute = args.minute if args.minute is not None else config.get("schedule", "minute")
        return _run_schedule(scheduler, hour, minute)

    except KeyboardInterrupt:
        logger.warning("Interrupted by user")
        return 130
    except Exception as e:
        logger.error(f"Ritual playlist generator failed: {e}", exc_info=True)
        return 1


if __name__ == "__main__":
    sys.exit(main())
