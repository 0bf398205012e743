"""Unit tests for SegmentConsolidator."""

import random

import pytest

from roomcorder.audio.consolidator import SegmentConsolidator
from roomcorder.models.events import RawInterval, SpeakingEvent, SpeakingEventKind
from roomcorder.models.session import Participant

START = SpeakingEventKind.START
END = SpeakingEventKind.END


def ev(participant_id, kind, timestamp, room_id="room"):
    return SpeakingEvent(room_id=room_id, participant_id=participant_id, kind=kind, timestamp=timestamp)


@pytest.fixture
def consolidator():
    return SegmentConsolidator(merge_gap_ms=750, min_duration_ms=1000)


@pytest.fixture
def people():
    return {
        "A": Participant("A", "Alice", "alice"),
        "B": Participant("B", "Bob", "bob"),
    }


@pytest.mark.unit
class TestPairing:
    """Phase 1: pairing start/end events."""

    def test_start_end_pair(self, consolidator):
        intervals = consolidator.pair_events([ev("A", START, 100), ev("A", END, 900)])
        assert intervals == [RawInterval("A", 100, 900)]

    def test_duplicate_start_first_wins(self, consolidator):
        intervals = consolidator.pair_events([
            ev("A", START, 100), ev("A", START, 400), ev("A", END, 900),
        ])
        assert intervals == [RawInterval("A", 100, 900)]

    def test_orphan_end_dropped(self, consolidator):
        intervals = consolidator.pair_events([
            ev("A", END, 50), ev("A", START, 100), ev("A", END, 900), ev("A", END, 950),
        ])
        assert intervals == [RawInterval("A", 100, 900)]

    def test_unterminated_start_produces_nothing(self, consolidator):
        assert consolidator.pair_events([ev("A", START, 100)]) == []

    def test_interleaved_participants(self, consolidator):
        intervals = consolidator.pair_events([
            ev("A", START, 0), ev("B", START, 100), ev("A", END, 500), ev("B", END, 700),
        ])
        assert RawInterval("A", 0, 500) in intervals
        assert RawInterval("B", 100, 700) in intervals

    def test_unknown_participants_skipped(self, consolidator, people):
        intervals = consolidator.pair_events([
            ev("bot", START, 0), ev("bot", END, 5000), ev("A", START, 0), ev("A", END, 2000),
        ], people)
        assert intervals == [RawInterval("A", 0, 2000)]


@pytest.mark.unit
class TestMergeAndFilter:
    """Phase 2: merging close same-speaker intervals and dropping short ones."""

    def test_merge_law(self, consolidator):
        segments = consolidator.merge_intervals(
            [RawInterval("A", 0, 2000), RawInterval("A", 2500, 4000)], session_start=0)
        assert len(segments) == 1
        assert (segments[0].start, segments[0].end, segments[0].duration) == (0, 4000, 4000)

    def test_gap_at_threshold_not_merged(self, consolidator):
        segments = consolidator.merge_intervals(
            [RawInterval("A", 0, 2000), RawInterval("A", 2750, 4000)], session_start=0)
        assert [(s.start, s.end) for s in segments] == [(0, 2000), (2750, 4000)]

    def test_separate_segments_filtered_independently(self, consolidator):
        segments = consolidator.merge_intervals(
            [RawInterval("A", 0, 2000), RawInterval("A", 3000, 3800)], session_start=0)
        assert [(s.start, s.end) for s in segments] == [(0, 2000)]

    def test_filter_law(self, consolidator):
        assert consolidator.merge_intervals([RawInterval("A", 0, 500)], session_start=0) == []

    def test_exactly_min_duration_dropped(self, consolidator):
        assert consolidator.merge_intervals([RawInterval("A", 0, 1000)], session_start=0) == []
        assert len(consolidator.merge_intervals([RawInterval("A", 0, 1001)], session_start=0)) == 1

    def test_other_speaker_breaks_merge(self, consolidator):
        segments = consolidator.merge_intervals([
            RawInterval("A", 0, 2000), RawInterval("B", 2100, 3500), RawInterval("A", 2500, 4000),
        ], session_start=0)
        assert [(s.participant_id, s.start, s.end) for s in segments] == [
            ("A", 0, 2000), ("B", 2100, 3500), ("A", 2500, 4000),
        ]

    def test_relative_times(self, consolidator, people):
        segments = consolidator.merge_intervals([RawInterval("A", 11000, 13000)], 10000, people)
        assert segments[0].relative_start == 1000
        assert segments[0].relative_end == 3000
        assert segments[0].display_name == "Alice"
        assert segments[0].username == "alice"

    def test_unknown_participant_falls_back_to_id(self, consolidator):
        segments = consolidator.merge_intervals([RawInterval("X", 0, 2000)], 0)
        assert segments[0].display_name == "X"


@pytest.mark.unit
class TestScenarios:
    """End-to-end consolidation over event logs."""

    def test_scenario_a_merges(self, consolidator, people):
        events = [ev("A", START, 0), ev("A", END, 2000), ev("A", START, 2500), ev("A", END, 4000)]
        segments = consolidator.consolidate(events, 0, people)
        assert len(segments) == 1
        assert segments[0].duration == 4000

    def test_scenario_b_not_merged_with_other_speaker(self, consolidator, people):
        events = [
            ev("A", START, 0), ev("B", START, 1000), ev("A", END, 2000),
            ev("B", END, 2200), ev("A", START, 2500), ev("A", END, 4000),
        ]
        segments = consolidator.consolidate(events, 0, people)
        b_segments = [s for s in segments if s.participant_id == "B"]
        assert len(b_segments) == 1
        assert b_segments[0].start == 1000
        assert b_segments[0].duration == 1200

    def test_scenario_c_empty_log(self, consolidator):
        assert consolidator.consolidate([], 0) == []

    def test_chronological_output(self, consolidator, people):
        events = [
            ev("B", START, 5000), ev("B", END, 7000), ev("A", START, 0), ev("A", END, 2000),
        ]
        segments = consolidator.consolidate(events, 0, people)
        assert [s.start for s in segments] == [0, 5000]

    def test_configurable_thresholds(self, people):
        lenient = SegmentConsolidator(merge_gap_ms=2000, min_duration_ms=100)
        events = [ev("A", START, 0), ev("A", END, 500), ev("A", START, 2000), ev("A", END, 2400)]
        segments = lenient.consolidate(events, 0, people)
        assert [(s.start, s.end) for s in segments] == [(0, 2400)]

    @pytest.mark.parametrize("seed", [1, 7, 42, 1234])
    def test_same_participant_segments_never_overlap(self, consolidator, seed):
        rng = random.Random(seed)
        events = []
        t = 0
        for _ in range(300):
            t += rng.randint(0, 400)
            events.append(ev(rng.choice("ABC"), rng.choice([START, END]), t))

        segments = consolidator.consolidate(events, 0)

        for participant_id in "ABC":
            own = sorted((s for s in segments if s.participant_id == participant_id), key=lambda s: s.start)
            for earlier, later in zip(own, own[1:]):
                assert earlier.end <= later.start
        assert all(s.duration > 1000 for s in segments)
