"""
E-mail notifications for newly created playlists.

Best-effort: sending never raises back into the run pipeline.
Configured from the environment: SMTP_HOST, SMTP_PORT, SMTP_USER, SMTP_PASS,
NOTIFY_FROM, NOTIFY_TO. Disabled (no-op) if host or addresses are missing.
"""

import html
import logging
import os
import smtplib
from email.message import EmailMessage
from typing import Optional

from .generate.models import GeneratedPlaylist

logger = logging.getLogger(__name__)

PLAYLIST_URL = "https://open.spotify.com/playlist/{playlist_id}"
CELL_STYLE = "padding:4px 8px;border:1px solid #e5e7eb;"


def playlist_url(playlist_id: str) -> str:
    return PLAYLIST_URL.format(playlist_id=playlist_id)


def render_text(playlist: GeneratedPlaylist, playlist_id: str) -> str:
    lines = [
        "New Ritual Playlist Created!",
        f"Name: {playlist.name}",
        f"Tracks: {len(playlist.tracks)}",
        f"Total Duration: {playlist.total_minutes} minutes",
        "",
        "Phase Breakdown:",
    ]
    for entry in playlist.phase_breakdown:
        lines.append(f" - {entry.phase}: {len(entry.tracks)} tracks, {entry.minutes} minutes")
    lines.extend(["", f"Open in Spotify: {playlist_url(playlist_id)}"])
    return "\n".join(lines)


def render_html(playlist: GeneratedPlaylist, playlist_id: str) -> str:
    rows = "".join(
        f"<tr><td style=\"{CELL_STYLE}\">{html.escape(entry.phase)}</td>"
        f"<td style=\"{CELL_STYLE}text-align:center;\">{len(entry.tracks)}</td>"
        f"<td style=\"{CELL_STYLE}text-align:center;\">{entry.minutes}</td></tr>"
        for entry in playlist.phase_breakdown
    )
    return (
        "<div style=\"font-family:Arial, sans-serif;line-height:1.6;\">"
        "<h2>🎉 New Ritual Playlist Created!</h2>"
        "<p>A fresh playlist is ready on Spotify.</p>"
        f"<p><strong>Name:</strong> {html.escape(playlist.name)}<br/>"
        f"<strong>Tracks:</strong> {len(playlist.tracks)}<br/>"
        f"<strong>Total Duration:</strong> {playlist.total_minutes} minutes</p>"
        f"<p><a href=\"{playlist_url(playlist_id)}\">Open in Spotify</a></p>"
        "<h3>Phase Breakdown</h3>"
        "<table style=\"border-collapse:collapse;\">"
        f"<thead><tr><th style=\"{CELL_STYLE}\">Phase</th>"
        f"<th style=\"{CELL_STYLE}\">Tracks</th>"
        f"<th style=\"{CELL_STYLE}\">Minutes</th></tr></thead>"
        f"<tbody>{rows}</tbody></table></div>"
    )


class NotificationService:
    """SMTP notifier for created playlists."""

    def __init__(
        self,
        host: Optional[str] = None,
        port: Optional[int] = None,
        user: Optional[str] = None,
        password: Optional[str] = None,
        from_addr: Optional[str] = None,
        to_addr: Optional[str] = None,
    ):
        self.host = host or os.environ.get("SMTP_HOST", "")
        self.port = port or int(os.environ.get("SMTP_PORT", "587"))
        self.user = user or os.environ.get("SMTP_USER", "")
        self.password = password or os.environ.get("SMTP_PASS", "")
        self.from_addr = from_addr or os.environ.get("NOTIFY_FROM", "")
        self.to_addr = to_addr or os.environ.get("NOTIFY_TO", "")
        self._config_warning_logged = False

    @property
    def enabled(self) -> bool:
        return bool(self.host and self.from_addr and self.to_addr)

    def build_message(self, playlist: GeneratedPlaylist, playlist_id: str) -> EmailMessage:
        msg = EmailMessage()
        msg["Subject"] = f"New Ritual Playlist: {playlist.name}"
        msg["From"] = self.from_addr
        msg["To"] = self.to_addr
        msg.set_content(render_text(playlist, playlist_id))
        msg.add_alternative(render_html(playlist, playlist_id), subtype="html")
        return msg

    def notify_playlist_created(self, playlist: GeneratedPlaylist, playlist_id: str) -> None:
        """Send a playlist-created e-mail. No-op if SMTP is not configured."""
        if not self.enabled:
            if not self._config_warning_logged:
                logger.info(
                    "ℹ️  Email notifications disabled. Provide SMTP_HOST, NOTIFY_FROM "
                    "and NOTIFY_TO to enable."
                )
                self._config_warning_logged = True
            return

        msg = self.build_message(playlist, playlist_id)

        try:
            logger.info(
                f"📨 Sending notification to {self.to_addr} "
                f"(playlist {playlist_id}, {len(playlist.tracks)} tracks)"
            )
            with smtplib.SMTP(self.host, self.port) as smtp:
                smtp.starttls()
                if self.user and self.password:
                    smtp.login(self.user, self.password)
                smtp.send_message(msg)
            logger.info(f"📧 Notification email sent: {msg['Subject']}")
        except (smtplib.SMTPException, OSError) as e:
            logger.error(f"⚠️  Failed to send notification email: {e}")
