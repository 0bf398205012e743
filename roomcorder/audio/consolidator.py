"""Turns a session's raw speaking-event log into consolidated speech segments."""

import logging
from dataclasses import dataclass
from typing import Dict, Iterable, List, Mapping, Optional

from ..models.events import ConsolidatedSegment, RawInterval, SpeakingEvent, SpeakingEventKind
from ..models.session import Participant

logger = logging.getLogger(__name__)


@dataclass
class _Accumulator:
    participant_id: str
    start: int
    end: int


class SegmentConsolidator:
    """Pairs start/end events, merges close same-speaker intervals and drops short ones."""

    def __init__(self, merge_gap_ms: int = 750, min_duration_ms: int = 1000):
        """Initialize segment consolidator.

        Args:
            merge_gap_ms: Same-speaker intervals closer than this are merged
            min_duration_ms: Segments must be strictly longer than this to be kept
        """
        self.merge_gap_ms = merge_gap_ms
        self.min_duration_ms = min_duration_ms

    def consolidate(self,
                    events: Iterable[SpeakingEvent],
                    session_start: int,
                    participants: Optional[Mapping[str, Participant]] = None) -> List[ConsolidatedSegment]:
        """Run both phases over an arrival-ordered event log.

        Args:
            events: Speaking events in arrival order
            session_start: Session start time, epoch milliseconds
            participants: Known participants; events for anyone else are skipped

        Returns:
            Chronological list of consolidated segments
        """
        intervals = self.pair_events(events, participants)
        segments = self.merge_intervals(intervals, session_start, participants)
        logger.info(f"Processed {len(segments)} final segments from {len(intervals)} raw segments.")
        return segments

    def pair_events(self,
                    events: Iterable[SpeakingEvent],
                    participants: Optional[Mapping[str, Participant]] = None) -> List[RawInterval]:
        """Phase 1: pair each participant's start with the next end."""
        intervals: List[RawInterval] = []
        open_starts: Dict[str, int] = {}

        for event in events:
            participant_id = event.participant_id
            if participants is not None and participant_id not in participants:
                continue

            if event.kind is SpeakingEventKind.START:
                # First start wins; duplicates are ignored
                if participant_id not in open_starts:
                    open_starts[participant_id] = event.timestamp
            elif event.kind is SpeakingEventKind.END:
                start = open_starts.pop(participant_id, None)
                if start is None:
                    # TODO: confirm with the transport whether an orphan end is an
                    # out-of-order delivery we should pair late instead of dropping
                    logger.debug(f"Dropping orphan end event for {participant_id} at {event.timestamp}")
                    continue
                intervals.append(RawInterval(participant_id=participant_id, start=start, end=event.timestamp))

        if open_starts:
            logger.debug(f"{len(open_starts)} participants still speaking at end of log; ignored")
        return intervals

    def merge_intervals(self,
                        intervals: Iterable[RawInterval],
                        session_start: int,
                        participants: Optional[Mapping[str, Participant]] = None) -> List[ConsolidatedSegment]:
        """Phase 2: merge same-speaker intervals separated by a short gap, then filter."""
        ordered = sorted(intervals, key=lambda interval: interval.start)
        if not ordered:
            return []

        finalized: List[_Accumulator] = []
        current = _Accumulator(ordered[0].participant_id, ordered[0].start, ordered[0].end)

        for interval in ordered[1:]:
            gap = interval.start - current.end
            if interval.participant_id == current.participant_id and gap < self.merge_gap_ms:
                current.end = max(current.end, interval.end)
            else:
                finalized.append(current)
                current = _Accumulator(interval.participant_id, interval.start, interval.end)
        finalized.append(current)

        segments = []
        for acc in finalized:
            duration = acc.end - acc.start
            if duration <= self.min_duration_ms:
                continue
            participant = participants.get(acc.participant_id) if participants else None
            segments.append(ConsolidatedSegment(
                participant_id=acc.participant_id,
                display_name=participant.display_name if participant else acc.participant_id,
                username=participant.username if participant else acc.participant_id,
                start=acc.start,
                end=acc.end,
                duration=duration,
                relative_start=acc.start - session_start,
                relative_end=acc.end - session_start,
            ))
        return segments
