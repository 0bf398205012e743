"""Audio-related data models."""

from dataclasses import dataclass, field
from typing import List


# Decoded PCM contract: signed 16-bit little-endian, interleaved
SAMPLE_RATE = 48000
CHANNELS = 2
SAMPLE_WIDTH = 2


@dataclass(frozen=True)
class PcmFormat:
    """Raw PCM layout of a captured or generated stream."""
    sample_rate: int = SAMPLE_RATE
    channels: int = CHANNELS
    sample_width: int = SAMPLE_WIDTH

    @property
    def bytes_per_frame(self) -> int:
        return self.channels * self.sample_width

    @property
    def bytes_per_second(self) -> int:
        return self.sample_rate * self.bytes_per_frame

    def duration_ms(self, byte_count: int) -> float:
        """Playback length of ``byte_count`` bytes in milliseconds."""
        return byte_count * 1000.0 / self.bytes_per_second


@dataclass
class CaptureStats:
    """Per-participant capture statistics."""
    participant_id: str
    is_capturing: bool
    bytes_written: int
    total_chunks: int
    peak_level: float
    failed: bool = False


@dataclass
class AudioFrame:
    """One decoded chunk as written to a participant file."""
    timestamp: int  # Arrival time in epoch milliseconds
    offset: int     # Byte offset in the participant file
    length: int


@dataclass
class ParticipantFile:
    """A participant's raw PCM file that exists and holds audio."""
    participant_id: str
    username: str
    display_name: str
    filepath: str
    filename: str
    file_size: int
    frames: List[AudioFrame] = field(default_factory=list)
