"""
Phase Selector: per-phase candidate filtering, scoring and quota selection.

For each phase:
- Filter the unconsumed pool by keyword and duration-range criteria
- Fall back to two random unconsumed tracks when nothing matches
- Score candidates (keyword hits, duration fit, jitter) and rank them
- Shuffle and greedily accept tracks until the phase quota is met
  (between 0.8x and 1.2x of the phase target)
"""

import logging
import random
from dataclasses import dataclass
from typing import AbstractSet, List, Optional, Sequence, Tuple

from .models import PhaseCriteria, PhaseDefinition, Track

logger = logging.getLogger(__name__)

KEYWORD_WEIGHT = 2.0
JITTER_SCALE = 0.5
FALLBACK_TRACK_COUNT = 2
QUOTA_LOWER_RATIO = 0.8
QUOTA_UPPER_RATIO = 1.2


@dataclass(frozen=True)
class CandidateSet:
    """Candidates for one phase; `is_fallback` marks random fallback picks."""

    tracks: Tuple[Track, ...]
    is_fallback: bool = False


class PhaseSelector:
    """
    Track selector for a single phase.

    Randomness comes from `rng`, any object providing `random()`,
    `shuffle(list)` and `sample(seq, k)` (a `random.Random` by default).
    """

    def __init__(self, rng: Optional[random.Random] = None):
        self.rng = rng if rng is not None else random.Random()

    @staticmethod
    def _keyword_hits(track: Track, keywords: Sequence[str]) -> int:
        """
        Count distinct keywords found as substrings of the track's search text.

        An empty keyword is a substring of every text and always hits.
        """
        text = track.search_text
        distinct = {k.lower() for k in keywords}
        return sum(1 for keyword in distinct if keyword in text)

    @staticmethod
    def _duration_fit(duration_ms: int, duration_range: Tuple[int, int]) -> float:
        """
        Closeness of a duration to the middle of a range (0.0-1.0).

        1.0 at the midpoint, 0.0 at or beyond the range edges.
        """
        min_ms, max_ms = duration_range
        midpoint = (min_ms + max_ms) / 2
        half_width = (max_ms - min_ms) / 2
        distance = abs(duration_ms - midpoint)

        if half_width <= 0:
            return 1.0 if distance == 0 else 0.0

        normalized = max(0.0, min(1.0, distance / half_width))
        return 1.0 - normalized

    @classmethod
    def matches(cls, track: Track, criteria: PhaseCriteria) -> bool:
        """
        Check a track against phase criteria.

        Duration range and keywords are independent filters; both must pass
        when both are configured. A phase with no criteria matches everything.
        """
        if criteria.duration_range is not None:
            min_ms, max_ms = criteria.duration_range
            if track.duration_ms < min_ms or track.duration_ms > max_ms:
                return False

        if criteria.keywords:
            return cls._keyword_hits(track, criteria.keywords) > 0

        return True

    def filter_candidates(
        self,
        pool: Sequence[Track],
        phase: PhaseDefinition,
        consumed_ids: AbstractSet[str],
    ) -> CandidateSet:
        """
        Select the unconsumed tracks that satisfy a phase's criteria.

        Args:
            pool: Full candidate pool
            phase: Phase definition
            consumed_ids: Track IDs already claimed by earlier phases

        Returns:
            CandidateSet of matching tracks, or up to two random unconsumed
            tracks (flagged as fallback) if nothing matches
        """
        remaining = [t for t in pool if t.id not in consumed_ids]
        candidates = [t for t in remaining if self.matches(t, phase.criteria)]

        if candidates:
            logger.debug(
                f"Phase '{phase.name}': {len(candidates)}/{len(remaining)} "
                f"unconsumed tracks match"
            )
            return CandidateSet(tuple(candidates))

        count = min(FALLBACK_TRACK_COUNT, len(remaining))
        picked = self.rng.sample(remaining, count)
        logger.info(
            f"No tracks match phase '{phase.name}'; "
            f"falling back to {len(picked)} random track(s)"
        )
        return CandidateSet(tuple(picked), is_fallback=True)

    def score_track(self, track: Track, criteria: PhaseCriteria) -> float:
        """
        Score a candidate for a phase (higher = better).

        Score = keyword hits * 2.0 + duration fit (0-1) + jitter [0, 0.5)
        """
        score = 0.0

        if criteria.keywords:
            score += self._keyword_hits(track, criteria.keywords) * KEYWORD_WEIGHT

        if criteria.duration_range is not None:
            score += self._duration_fit(track.duration_ms, criteria.duration_range)

        # Jitter in [0, JITTER_SCALE)
        score += self.rng.random() * JITTER_SCALE

        return score

    def rank_candidates(
        self, candidates: Sequence[Track], criteria: PhaseCriteria
    ) -> List[Tuple[Track, float]]:
        """
        Rank candidates by score (best first).

        Returns:
            List of (track, score) tuples sorted by score descending
        """
        scored = [(track, self.score_track(track, criteria)) for track in candidates]
        scored.sort(key=lambda x: x[1], reverse=True)

        for track, score in scored:
            logger.debug(f"Candidate {track.id} '{track.name}': score={score:.2f}")

        return scored

    def select_for_quota(self, tracks: Sequence[Track], target_duration_ms: int) -> List[Track]:
        """
        Greedily fill a phase quota from shuffled candidates.

        A track is accepted while the running total stays within 1.2x the
        target; acceptance stops once the total reaches 0.8x the target.
        If nothing fits, the first shuffled candidate is taken alone.

        Args:
            tracks: Candidates (the incoming order is discarded by the shuffle)
            target_duration_ms: Phase target duration

        Returns:
            Accepted tracks in acceptance order
        """
        shuffled = list(tracks)
        self.rng.shuffle(shuffled)

        upper = target_duration_ms * QUOTA_UPPER_RATIO
        lower = target_duration_ms * QUOTA_LOWER_RATIO

        selected: List[Track] = []
        current_duration = 0

        for track in shuffled:
            if current_duration + track.duration_ms <= upper:
                selected.append(track)
                current_duration += track.duration_ms

                if current_duration >= lower:
                    break

        if not selected and shuffled:
            logger.debug(
                f"No candidate fits within {upper:.0f}ms; "
                f"forcing {shuffled[0].id} ({shuffled[0].duration_ms}ms)"
            )
            selected = [shuffled[0]]

        return selected

    def select_for_phase(
        self,
        pool: Sequence[Track],
        phase: PhaseDefinition,
        consumed_ids: AbstractSet[str],
    ) -> List[Track]:
        """
        Run filter -> rank -> quota selection for one phase.

        Fallback picks are returned as-is without scoring or quota selection.
        """
        candidates = self.filter_candidates(pool, phase, consumed_ids)
        if candidates.is_fallback:
            return list(candidates.tracks)

        ranked = self.rank_candidates(candidates.tracks, phase.criteria)
        return self.select_for_quota([track for track, _ in ranked], phase.target_duration_ms)
