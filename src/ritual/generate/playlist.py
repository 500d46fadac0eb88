"""
Playlist Assembly: build a phased, duration-bounded playlist from a track pool.

Pipeline:
1. For each phase (in configured order), select tracks from the unconsumed pool
2. Trim the combined selection toward the global target duration
3. Reconcile the per-phase breakdown with the surviving tracks
"""

import logging
import random
from typing import List, Optional, Sequence, Set

from .models import GeneratedPlaylist, PhaseBreakdown, PlaylistConfig, Track
from .selector import PhaseSelector

logger = logging.getLogger(__name__)

DURATION_TOLERANCE_MS = 60_000


class AssemblyError(Exception):
    """Base class for playlist assembly failures."""
    pass


class EmptyPoolError(AssemblyError):
    """Raised when the candidate pool has no tracks."""
    pass


def total_duration(tracks: Sequence[Track]) -> int:
    return sum(t.duration_ms for t in tracks)


def trim_to_duration(tracks: Sequence[Track], target_duration_ms: int) -> List[Track]:
    """
    Bring a track list down toward a global target duration.

    Within +/-1 minute of the target the list is returned unchanged. Over the
    target, the longest track (first occurrence on ties) is removed until the
    total is at or under the target or a single track remains. Under the
    target, nothing is added.

    Args:
        tracks: Combined per-phase selections in phase order
        target_duration_ms: Global target duration

    Returns:
        New list of surviving tracks, original order preserved
    """
    adjusted = list(tracks)
    current = total_duration(adjusted)

    if abs(current - target_duration_ms) <= DURATION_TOLERANCE_MS:
        return adjusted

    if current < target_duration_ms:
        logger.info(
            f"Playlist is {(target_duration_ms - current) / 1000:.0f}s under target; "
            f"keeping as-is"
        )
        return adjusted

    while current > target_duration_ms and len(adjusted) > 1:
        longest_index = max(range(len(adjusted)), key=lambda i: adjusted[i].duration_ms)
        removed = adjusted.pop(longest_index)
        current -= removed.duration_ms
        logger.debug(
            f"Trimmed {removed.id} ({removed.duration_ms}ms); total now {current}ms"
        )

    return adjusted


def reconcile_breakdown(
    provisional: Sequence[PhaseBreakdown], final_tracks: Sequence[Track]
) -> List[PhaseBreakdown]:
    """
    Restrict each phase to the tracks that survived trimming.

    Per-phase order and phase order are preserved; durations are recomputed
    and phases left empty are dropped.
    """
    surviving_ids = {t.id for t in final_tracks}
    reconciled = []

    for entry in provisional:
        remaining = tuple(t for t in entry.tracks if t.id in surviving_ids)
        if not remaining:
            logger.debug(f"Phase '{entry.phase}' emptied by trimming; dropping")
            continue
        reconciled.append(
            PhaseBreakdown(
                phase=entry.phase,
                tracks=remaining,
                duration_ms=total_duration(remaining),
            )
        )

    return reconciled


class PlaylistAssembler:
    """
    Phased playlist generator.

    Orchestrates per-phase selection, global trimming and breakdown
    reconciliation. Holds no state between runs.
    """

    def __init__(self, rng: Optional[random.Random] = None):
        """
        Args:
            rng: Random source for jitter, shuffles and fallback sampling.
                 Unseeded `random.Random()` if None.
        """
        self.selector = PhaseSelector(rng)

    def assemble(self, pool: Sequence[Track], config: PlaylistConfig) -> GeneratedPlaylist:
        """
        Build a playlist from a candidate pool.

        Args:
            pool: All candidate tracks (the user's saved tracks)
            config: Playlist name, total duration and ordered phases

        Returns:
            GeneratedPlaylist with final tracks and reconciled breakdown

        Raises:
            EmptyPoolError: If the pool is empty
        """
        if not pool:
            raise EmptyPoolError("No liked songs found")

        logger.info(
            f"Assembling '{config.name}' from {len(pool)} tracks "
            f"({len(config.phases)} phases, target {config.total_duration_ms / 60000:.1f}min)"
        )

        selected: List[Track] = []
        consumed_ids: Set[str] = set()
        provisional: List[PhaseBreakdown] = []

        for phase in config.phases:
            phase_tracks = self.selector.select_for_phase(pool, phase, consumed_ids)

            if not phase_tracks:
                logger.warning(f"No tracks found for phase: {phase.name}")
                continue

            phase_duration = total_duration(phase_tracks)
            selected.extend(phase_tracks)
            consumed_ids.update(t.id for t in phase_tracks)
            provisional.append(
                PhaseBreakdown(
                    phase=phase.name,
                    tracks=tuple(phase_tracks),
                    duration_ms=phase_duration,
                )
            )

            logger.debug(
                f"Phase '{phase.name}': {len(phase_tracks)} tracks, "
                f"{phase_duration}ms (target {phase.target_duration_ms}ms)"
            )

        final_tracks = trim_to_duration(selected, config.total_duration_ms)
        breakdown = reconcile_breakdown(provisional, final_tracks)
        final_duration = total_duration(final_tracks)

        logger.info(
            f"✅ Playlist assembled: {len(final_tracks)} tracks, "
            f"{final_duration}ms ({final_duration / 60000:.1f}min) "
            f"across {len(breakdown)} phases"
        )

        return GeneratedPlaylist(
            name=config.name,
            tracks=tuple(final_tracks),
            total_duration_ms=final_duration,
            phase_breakdown=tuple(breakdown),
        )
