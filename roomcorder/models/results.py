"""Results handed back from stop, mixdown and timeline reconstruction."""

from dataclasses import dataclass, field
from typing import Dict, List, Optional

from .audio import ParticipantFile
from .events import ConsolidatedSegment
from .session import Participant


@dataclass
class StopResult:
    """Everything a stopped session leaves behind."""
    room_id: str
    start_time: int
    end_time: int
    duration: int  # Milliseconds
    scratch_dir: str
    participants: List[Participant] = field(default_factory=list)
    segments: List[ConsolidatedSegment] = field(default_factory=list)
    participant_files: List[ParticipantFile] = field(default_factory=list)
    capture_errors: Dict[str, str] = field(default_factory=dict)


@dataclass
class MixdownResult:
    """Final compressed artifact produced by the mixdown pipeline."""
    output_file: str
    file_size: int
    processing_time: float  # Seconds
    input_count: int
    path: str  # "single" or "mixed"


@dataclass
class TimelineResult:
    """Mono track that keeps the real silences between segments."""
    output_file: str
    total_duration: int  # Milliseconds
    segment_count: int
    timeline_entries: int


@dataclass
class RecordingOutcome:
    """Stop result plus whatever artifacts could be produced from it."""
    stop_result: StopResult
    mixdown: Optional[MixdownResult] = None
    timeline: Optional[TimelineResult] = None
    segments_file: Optional[str] = None
    errors: List[str] = field(default_factory=list)

    @property
    def degraded(self) -> bool:
        return bool(self.errors)
