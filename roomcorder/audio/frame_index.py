"""Arrival-time index over a participant's PCM file, used to cut per-segment clips."""

import logging
from typing import List, Optional, Tuple

from ..models.audio import AudioFrame

logger = logging.getLogger(__name__)


class FrameIndex:
    """Records where each decoded chunk landed in a participant file.

    Inbound audio only arrives while someone talks, so byte offsets in the
    file do not map linearly to wall-clock time. Each chunk's arrival time is
    kept next to its byte range so a time window can be mapped back to bytes.
    """

    def __init__(self):
        self.frames: List[AudioFrame] = []
        self.total_bytes = 0

    @classmethod
    def from_frames(cls, frames: List[AudioFrame]) -> "FrameIndex":
        """Rebuild an index from frames recorded by a finished capture."""
        index = cls()
        for frame in frames:
            index.add_frame(frame.timestamp, frame.length)
        return index

    def add_frame(self, timestamp: int, length: int) -> None:
        """Record a chunk of ``length`` bytes written at ``timestamp``."""
        if length <= 0:
            return
        self.frames.append(AudioFrame(timestamp=timestamp, offset=self.total_bytes, length=length))
        self.total_bytes += length

    def byte_range(self, start: int, end: int) -> Optional[Tuple[int, int]]:
        """Get the byte range of chunks that arrived within a time window.

        Args:
            start: Window start, epoch milliseconds (inclusive)
            end: Window end, epoch milliseconds (inclusive)

        Returns:
            Tuple of (offset, length) or None if no chunk arrived in the window
        """
        selected = [frame for frame in self.frames if start <= frame.timestamp <= end]

        if not selected:
            logger.debug(f"No frames found in time window {start} - {end}")
            return None

        first = selected[0]
        last = selected[-1]
        length = last.offset + last.length - first.offset

        logger.debug(f"Selected {len(selected)} frames ({length} bytes) for window {start} - {end}")
        return first.offset, length

    def __len__(self) -> int:
        return len(self.frames)
