"""
Data model for playlist assembly.

Every entity is an immutable value created fresh per run:
- Track / AudioFeatures: candidate pool entries (from the Spotify library)
- PhaseCriteria / PhaseDefinition / PlaylistConfig: static phase rules
- PhaseBreakdown / GeneratedPlaylist: assembly output
"""

from dataclasses import dataclass, replace
from typing import Any, Dict, Optional, Tuple


@dataclass(frozen=True)
class AudioFeatures:
    """Spotify audio features for a track (only present if fetched separately)."""

    danceability: float
    energy: float
    key: int
    loudness: float
    mode: int
    speechiness: float
    acousticness: float
    instrumentalness: float
    liveness: float
    valence: float
    tempo: float
    duration_ms: int
    time_signature: int

    @classmethod
    def from_spotify(cls, data: Dict[str, Any]) -> "AudioFeatures":
        """Build from a Spotify `audio-features` object."""
        return cls(
            danceability=float(data.get("danceability", 0.0)),
            energy=float(data.get("energy", 0.0)),
            key=int(data.get("key", -1)),
            loudness=float(data.get("loudness", 0.0)),
            mode=int(data.get("mode", 0)),
            speechiness=float(data.get("speechiness", 0.0)),
            acousticness=float(data.get("acousticness", 0.0)),
            instrumentalness=float(data.get("instrumentalness", 0.0)),
            liveness=float(data.get("liveness", 0.0)),
            valence=float(data.get("valence", 0.0)),
            tempo=float(data.get("tempo", 0.0)),
            duration_ms=int(data.get("duration_ms", 0)),
            time_signature=int(data.get("time_signature", 4)),
        )


@dataclass(frozen=True)
class Track:
    """Immutable container for a saved track."""

    id: str
    name: str
    artists: Tuple[str, ...]
    duration_ms: int
    uri: str
    external_url: Optional[str] = None
    audio_features: Optional[AudioFeatures] = None

    @property
    def search_text(self) -> str:
        """Lower-cased "name artist1 artist2 ..." used for keyword matching."""
        return " ".join((self.name,) + tuple(self.artists)).lower()

    def with_audio_features(self, features: AudioFeatures) -> "Track":
        return replace(self, audio_features=features)

    @classmethod
    def from_spotify(cls, data: Dict[str, Any]) -> "Track":
        """
        Build a Track from a Spotify track object.

        Args:
            data: Track object as returned inside `/me/tracks` items

        Returns:
            Track instance
        """
        return cls(
            id=data["id"],
            name=data.get("name", ""),
            artists=tuple(a.get("name", "") for a in data.get("artists") or []),
            duration_ms=max(0, int(data.get("duration_ms") or 0)),
            uri=data["uri"],
            external_url=(data.get("external_urls") or {}).get("spotify"),
        )


@dataclass(frozen=True)
class PhaseCriteria:
    """Keyword and/or inclusive duration-range rules for a phase."""

    keywords: Tuple[str, ...] = ()
    duration_range: Optional[Tuple[int, int]] = None  # (min_ms, max_ms)


@dataclass(frozen=True)
class PhaseDefinition:
    name: str
    description: str
    target_duration_ms: int
    criteria: PhaseCriteria = PhaseCriteria()


@dataclass(frozen=True)
class PlaylistConfig:
    name: str
    description: str
    total_duration_ms: int
    phases: Tuple[PhaseDefinition, ...]


@dataclass(frozen=True)
class PhaseBreakdown:
    """Tracks assigned to one phase and their summed duration."""

    phase: str
    tracks: Tuple[Track, ...]
    duration_ms: int

    @property
    def minutes(self) -> int:
        return round(self.duration_ms / 60000)


@dataclass(frozen=True)
class GeneratedPlaylist:
    """Assembly result: ordered tracks partitioned into phases."""

    name: str
    tracks: Tuple[Track, ...]
    total_duration_ms: int
    phase_breakdown: Tuple[PhaseBreakdown, ...]

    @property
    def total_minutes(self) -> int:
        return round(self.total_duration_ms / 60000)

    @property
    def track_uris(self) -> Tuple[str, ...]:
        return tuple(t.uri for t in self.tracks)

    def summary(self) -> str:
        """
        Render the phase breakdown as a one-line description.

        Example: "Intro: 2 tracks (6min) | Outro: 1 tracks (3min)"
        """
        return " | ".join(
            f"{entry.phase}: {len(entry.tracks)} tracks ({entry.minutes}min)"
            for entry in self.phase_breakdown
        )
