"""
Unit tests for the command-line entrypoint.
"""

from unittest.mock import patch

import pytest
from ritual import cli
from ritual.config import Config
from ritual.generate.models import GeneratedPlaylist, PhaseBreakdown, Track
from ritual.spotify.client import SpotifyAuthError


@pytest.fixture(autouse=True)
def no_dotenv():
    with patch("ritual.cli.load_dotenv"):
        yield


@pytest.fixture
def scheduler_cls():
    with patch("ritual.cli.RitualScheduler") as mock_cls, patch(
        "ritual.cli.Config.load", return_value=Config.defaults()
    ):
        yield mock_cls


class TestArguments:
    """Test argument validation."""

    def test_hour_out_of_range(self):
        with pytest.raises(SystemExit):
            cli.main(["--hour", "24"])

    def test_minute_out_of_range(self):
        with pytest.raises(SystemExit):
            cli.main(["--minute", "60"])

    def test_modes_are_exclusive(self):
        with pytest.raises(SystemExit):
            cli.main(["--once", "--dry-run"])


class TestModes:
    """Test mode dispatch and exit codes."""

    def test_once(self, scheduler_cls):
        scheduler_cls.return_value.run_once.return_value = "playlist123"

        assert cli.main(["--once"]) == 0
        scheduler_cls.return_value.run_once.assert_called_once()

    def test_once_failure_exit_code(self, scheduler_cls):
        scheduler_cls.return_value.run_once.side_effect = SpotifyAuthError("Not authenticated")
        assert cli.main(["-o"]) == 1

    def test_config_path_forwarded(self):
        with patch("ritual.cli.RitualScheduler"), patch(
            "ritual.cli.Config.load", return_value=Config.defaults()
        ) as load:
            cli.main(["--once", "--config", "custom.toml"])
        load.assert_called_once_with("custom.toml")

    def test_dry_run_does_not_publish(self, scheduler_cls):
        track = Track("1", "Temple", ("Artist",), 180000, "spotify:track:1")
        scheduler = scheduler_cls.return_value
        scheduler.generate_playlist.return_value = GeneratedPlaylist(
            name="The Ritual",
            tracks=(track,),
            total_duration_ms=180000,
            phase_breakdown=(PhaseBreakdown("Going to Temple", (track,), 180000),),
        )

        assert cli.main(["--dry-run"]) == 0
        scheduler.initialize.assert_called_once()
        scheduler.create_daily_playlist.assert_not_called()

    def test_schedule_uses_config_time(self, scheduler_cls):
        scheduler = scheduler_cls.return_value
        scheduler.is_running = False

        assert cli.main([]) == 0
        scheduler.start_daily_schedule.assert_called_once_with(6, 0)

    def test_schedule_time_override(self, scheduler_cls):
        scheduler = scheduler_cls.return_value
        scheduler.is_running = False

        assert cli.main(["--hour", "7", "--minute", "15"]) == 0
        scheduler.start_daily_schedule.assert_called_once_with(7, 15)

    def test_keyboard_interrupt_stops_schedule(self, scheduler_cls):
        scheduler = scheduler_cls.return_value
        scheduler.is_running = True

        with patch("ritual.cli.time.sleep", side_effect=KeyboardInterrupt):
            assert cli.main([]) == 130
        scheduler.stop_schedule.assert_called_once()

    def test_auth_prints_tokens(self, capsys):
        with patch(
            "ritual.cli.start_auth_flow",
            return_value={"access_token": "acc", "refresh_token": "ref"},
        ), patch("ritual.cli.RitualScheduler") as scheduler_cls:
            assert cli.main(["--auth"]) == 0

        out = capsys.readouterr().out
        assert "SPOTIFY_ACCESS_TOKEN=acc" in out
        assert "SPOTIFY_REFRESH_TOKEN=ref" in out
        scheduler_cls.assert_not_called()

    def test_auth_failure(self):
        with patch("ritual.cli.start_auth_flow", side_effect=SpotifyAuthError("denied")):
            assert cli.main(["--auth"]) == 1
