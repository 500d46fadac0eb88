"""
Unit tests for PhaseSelector.

Tests criteria matching, fallback, scoring and quota selection.
"""

import random

import pytest
from ritual.generate.models import PhaseCriteria, PhaseDefinition, Track
from ritual.generate.selector import (
    KEYWORD_WEIGHT,
    CandidateSet,
    PhaseSelector,
)


class FixedRandom:
    """Deterministic random source: fixed random() values, identity shuffle."""

    def __init__(self, values=(0.0,)):
        self.values = list(values)
        self.calls = 0

    def random(self):
        value = self.values[self.calls % len(self.values)]
        self.calls += 1
        return value

    def shuffle(self, items):
        pass

    def sample(self, population, k):
        return list(population)[:k]


class ReversingRandom(FixedRandom):
    """Shuffle reverses the list."""

    def shuffle(self, items):
        items.reverse()


def make_track(track_id, name="Song", artists=("Artist",), duration_ms=180000):
    return Track(
        id=track_id,
        name=name,
        artists=tuple(artists),
        duration_ms=duration_ms,
        uri=f"spotify:track:{track_id}",
    )


@pytest.fixture
def selector():
    """Selector with zero jitter and identity shuffle."""
    return PhaseSelector(FixedRandom())


@pytest.fixture
def temple_phase():
    return PhaseDefinition(
        name="Going to Temple",
        description="Phase Shift / The Anticipation",
        target_duration_ms=180000,
        criteria=PhaseCriteria(
            keywords=("temple", "meditation", "calm"),
            duration_range=(120000, 360000),
        ),
    )


class TestCriteriaMatching:
    """Test keyword and duration-range matching."""

    def test_no_criteria_matches_everything(self):
        """A phase with no criteria accepts any track."""
        criteria = PhaseCriteria()
        assert PhaseSelector.matches(make_track("1", duration_ms=0), criteria) is True
        assert PhaseSelector.matches(make_track("2", duration_ms=900000), criteria) is True

    def test_duration_range_inclusive(self):
        """Range bounds are inclusive."""
        criteria = PhaseCriteria(duration_range=(120000, 360000))
        assert PhaseSelector.matches(make_track("1", duration_ms=120000), criteria) is True
        assert PhaseSelector.matches(make_track("2", duration_ms=360000), criteria) is True
        assert PhaseSelector.matches(make_track("3", duration_ms=119999), criteria) is False
        assert PhaseSelector.matches(make_track("4", duration_ms=360001), criteria) is False

    def test_keyword_case_insensitive(self):
        """Keywords match case-insensitively."""
        criteria = PhaseCriteria(keywords=("TEMPLE",))
        assert PhaseSelector.matches(make_track("1", name="Temple Song"), criteria) is True

    def test_keyword_matches_artist_names(self):
        """Artist names are part of the searched text."""
        criteria = PhaseCriteria(keywords=("serene",))
        track = make_track("1", name="Untitled", artists=("Other", "The Serene Ones"))
        assert PhaseSelector.matches(track, criteria) is True

    def test_keyword_substring(self):
        """Keywords match as substrings."""
        criteria = PhaseCriteria(keywords=("dance",))
        assert PhaseSelector.matches(make_track("1", name="Dancehall Nights"), criteria) is True

    def test_keyword_miss(self):
        criteria = PhaseCriteria(keywords=("temple",))
        assert PhaseSelector.matches(make_track("1", name="Beast Unleashed"), criteria) is False

    def test_empty_keyword_matches_everything(self):
        """An empty keyword is a substring of any track text."""
        criteria = PhaseCriteria(keywords=("",))
        assert PhaseSelector.matches(make_track("1", name="Beast Unleashed"), criteria) is True
        assert PhaseSelector.matches(make_track("2", name="", artists=()), criteria) is True

    def test_both_criteria_must_pass(self):
        """Keyword hit with out-of-range duration does not match."""
        criteria = PhaseCriteria(keywords=("temple",), duration_range=(120000, 360000))
        assert PhaseSelector.matches(
            make_track("1", name="Temple", duration_ms=60000), criteria
        ) is False
        assert PhaseSelector.matches(
            make_track("2", name="Temple", duration_ms=200000), criteria
        ) is True


class TestFilterCandidates:
    """Test candidate filtering and random fallback."""

    def test_excludes_consumed(self, selector, temple_phase):
        """Tracks claimed by earlier phases are never candidates."""
        pool = [make_track("1", name="Temple A"), make_track("2", name="Temple B")]
        result = selector.filter_candidates(pool, temple_phase, {"1"})
        assert [t.id for t in result.tracks] == ["2"]
        assert result.is_fallback is False

    def test_no_criteria_returns_all_unconsumed(self, selector):
        """Every unconsumed track is a candidate when the phase has no criteria."""
        phase = PhaseDefinition("Open", "", 180000)
        pool = [make_track(str(i), duration_ms=1000 * i) for i in range(10)]
        result = selector.filter_candidates(pool, phase, {"3", "7"})
        assert {t.id for t in result.tracks} == {str(i) for i in range(10)} - {"3", "7"}

    def test_fallback_two_random_tracks(self, temple_phase):
        """No matches falls back to two random unconsumed tracks."""
        selector = PhaseSelector(random.Random(7))
        pool = [make_track(str(i), name="Nothing here") for i in range(6)]
        result = selector.filter_candidates(pool, temple_phase, {"0"})
        assert result.is_fallback is True
        assert len(result.tracks) == 2
        assert len({t.id for t in result.tracks}) == 2
        assert all(t.id != "0" for t in result.tracks)

    def test_fallback_smaller_pool(self, selector, temple_phase):
        """Fallback returns fewer tracks if fewer remain."""
        pool = [make_track("1", name="Nothing"), make_track("2", name="Nothing")]
        result = selector.filter_candidates(pool, temple_phase, {"1"})
        assert [t.id for t in result.tracks] == ["2"]

    def test_fallback_exhausted_pool(self, selector, temple_phase):
        """Fallback on an exhausted pool is empty."""
        pool = [make_track("1", name="Temple")]
        result = selector.filter_candidates(pool, temple_phase, {"1"})
        assert result == CandidateSet((), is_fallback=True)


class TestScoring:
    """Test phase scoring."""

    def test_keyword_weight(self, selector):
        """Each distinct keyword hit adds the keyword weight."""
        criteria = PhaseCriteria(keywords=("temple", "calm", "absent"))
        track = make_track("1", name="Calm Temple")
        assert selector.score_track(track, criteria) == pytest.approx(2 * KEYWORD_WEIGHT)

    def test_duplicate_keywords_counted_once(self, selector):
        criteria = PhaseCriteria(keywords=("temple", "Temple"))
        track = make_track("1", name="Temple")
        assert selector.score_track(track, criteria) == pytest.approx(KEYWORD_WEIGHT)

    def test_empty_keyword_counts_as_hit(self, selector):
        criteria = PhaseCriteria(keywords=("", "absent"))
        assert selector.score_track(make_track("1", name="Plain"), criteria) == pytest.approx(KEYWORD_WEIGHT)

    def test_duration_fit_midpoint(self, selector):
        """Midpoint of the range scores 1.0."""
        criteria = PhaseCriteria(duration_range=(120000, 360000))
        assert selector.score_track(make_track("1", duration_ms=240000), criteria) == pytest.approx(1.0)

    def test_duration_fit_edges(self, selector):
        """Range edges score 0.0."""
        criteria = PhaseCriteria(duration_range=(120000, 360000))
        assert selector.score_track(make_track("1", duration_ms=120000), criteria) == pytest.approx(0.0)
        assert selector.score_track(make_track("2", duration_ms=360000), criteria) == pytest.approx(0.0)

    def test_duration_fit_quarter(self, selector):
        criteria = PhaseCriteria(duration_range=(120000, 360000))
        assert selector.score_track(make_track("1", duration_ms=180000), criteria) == pytest.approx(0.5)

    def test_zero_width_range(self, selector):
        """Zero-width range: exact value scores 1.0, anything else 0.0."""
        assert PhaseSelector._duration_fit(200000, (200000, 200000)) == 1.0
        assert PhaseSelector._duration_fit(200001, (200000, 200000)) == 0.0

    def test_jitter_bounds(self):
        """Jitter adds a value in [0, 0.5)."""
        selector = PhaseSelector(random.Random(3))
        criteria = PhaseCriteria()
        for _ in range(200):
            score = selector.score_track(make_track("1"), criteria)
            assert 0.0 <= score < 0.5

    def test_temple_track_outscores_non_keyword_track(self, temple_phase):
        """A keyword hit outranks an equal-fit track without keyword hits."""
        selector = PhaseSelector(FixedRandom(values=(0.0, 0.49)))
        temple = make_track("1", name="Temple Song", duration_ms=180000)
        other = make_track("2", name="Plain Song", duration_ms=180000)

        assert selector.matches(temple, temple_phase.criteria)
        temple_score = selector.score_track(temple, temple_phase.criteria)
        other_score = selector.score_track(other, temple_phase.criteria)
        assert temple_score > other_score

    def test_rank_descending(self, selector):
        criteria = PhaseCriteria(keywords=("temple", "calm"))
        tracks = [
            make_track("none", name="Plain"),
            make_track("two", name="Calm Temple"),
            make_track("one", name="Temple"),
        ]
        ranked = selector.rank_candidates(tracks, criteria)
        assert [t.id for t, _ in ranked] == ["two", "one", "none"]


class TestQuotaSelection:
    """Test greedy quota selection."""

    def test_stops_at_lower_bound(self, selector):
        """Acceptance stops once 0.8x target is reached."""
        tracks = [make_track(str(i), duration_ms=100000) for i in range(4)]
        selected = selector.select_for_quota(tracks, 180000)
        assert [t.id for t in selected] == ["0", "1"]

    def test_skips_tracks_over_upper_bound(self, selector):
        """Tracks that would exceed 1.2x target are skipped."""
        tracks = [
            make_track("long", duration_ms=300000),
            make_track("a", duration_ms=100000),
            make_track("b", duration_ms=60000),
        ]
        selected = selector.select_for_quota(tracks, 180000)
        assert [t.id for t in selected] == ["a", "b"]

    def test_forces_first_when_nothing_fits(self, selector):
        """A single track is forced when none fits the quota."""
        tracks = [make_track("x", duration_ms=400000), make_track("y", duration_ms=300000)]
        selected = selector.select_for_quota(tracks, 180000)
        assert [t.id for t in selected] == ["x"]

    def test_empty_candidates(self, selector):
        assert selector.select_for_quota([], 180000) == []

    def test_shuffle_discards_ranking(self):
        """Selection follows the shuffled order, not the incoming ranking."""
        selector = PhaseSelector(ReversingRandom())
        tracks = [make_track(str(i), duration_ms=100000) for i in range(4)]
        selected = selector.select_for_quota(tracks, 180000)
        assert [t.id for t in selected] == ["3", "2"]

    def test_does_not_mutate_input(self):
        selector = PhaseSelector(ReversingRandom())
        tracks = [make_track(str(i)) for i in range(3)]
        selector.select_for_quota(tracks, 180000)
        assert [t.id for t in tracks] == ["0", "1", "2"]

    @pytest.mark.parametrize("seed", range(20))
    def test_quota_bounds_property(self, seed):
        """Selection stays within 1.2x target and reaches 0.8x unless nothing else fits."""
        rng = random.Random(seed)
        target = 240000
        tracks = [
            make_track(str(i), duration_ms=rng.randint(60000, 420000))
            for i in range(rng.randint(1, 15))
        ]
        tracks.append(make_track("fits", duration_ms=200000))

        selector = PhaseSelector(random.Random(seed + 100))
        selected = selector.select_for_quota(tracks, target)
        total = sum(t.duration_ms for t in selected)

        assert 0 <= total <= target * 1.2
        if total < target * 0.8:
            selected_ids = {t.id for t in selected}
            leftovers = [t for t in tracks if t.id not in selected_ids]
            assert all(total + t.duration_ms > target * 1.2 for t in leftovers)


class TestSelectForPhase:
    """Test the per-phase pipeline."""

    def test_fallback_bypasses_quota(self, selector, temple_phase):
        """Fallback picks are returned as-is."""
        pool = [
            make_track("1", name="Nothing", duration_ms=600000),
            make_track("2", name="Nothing", duration_ms=600000),
        ]
        selected = selector.select_for_phase(pool, temple_phase, set())
        assert [t.id for t in selected] == ["1", "2"]

    def test_matching_tracks_selected(self, selector, temple_phase):
        pool = [
            make_track("t", name="Temple Song", duration_ms=180000),
            make_track("o", name="Other", duration_ms=180000),
        ]
        selected = selector.select_for_phase(pool, temple_phase, set())
        assert [t.id for t in selected] == ["t"]
