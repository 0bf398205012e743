"""Per-participant capture pipeline: inbound subscription -> decoder -> PCM file."""

import asyncio
import logging
import os
import re
from typing import BinaryIO, Callable, List, Optional

import numpy as np

from ..errors import CaptureError
from ..models.audio import CaptureStats, PcmFormat
from ..models.session import Participant
from ..transport.base import AbstractAudioReceiver, AbstractInboundAudioStream, EndBehavior
from ..transport.decoder import AbstractAudioDecoder
from .frame_index import FrameIndex
from .speaking_pub import now_ms

logger = logging.getLogger(__name__)

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9_-]+")


def capture_filename(participant: Participant) -> str:
    """Deterministic PCM filename built from participant id and display name."""
    name = _UNSAFE_CHARS.sub("_", participant.display_name).strip("_") or "participant"
    return f"{participant.id}_{name}.pcm"


class ParticipantCapture:
    """Isolated subscribe/decode/write pipeline for one participant.

    A failure inside the pipeline is recorded on ``error`` and ends only this
    pipeline. ``close`` releases every handle exactly once, whether or not the
    pipeline failed.
    """

    def __init__(
        self,
        participant: Participant,
        receiver: AbstractAudioReceiver,
        decoder: AbstractAudioDecoder,
        output_dir: str,
        clock: Callable[[], int] = now_ms,
        pcm_format: PcmFormat = PcmFormat(),
    ):
        """Initialize participant capture.

        Args:
            participant: Participant whose audio is captured
            receiver: Receiver capability of the ready connection
            decoder: Decoder producing 48kHz stereo s16le PCM
            output_dir: Session scratch directory
            clock: Returns the current time in epoch milliseconds
            pcm_format: Layout of the decoded PCM
        """
        self.participant = participant
        self.receiver = receiver
        self.decoder = decoder
        self.clock = clock
        self.pcm_format = pcm_format

        self.filename = capture_filename(participant)
        self.filepath = os.path.join(output_dir, self.filename)

        # Pipeline handles
        self.subscription: Optional[AbstractInboundAudioStream] = None
        self.writer: Optional[BinaryIO] = None
        self.task: Optional[asyncio.Task] = None
        self.closed = False

        # Statistics tracking
        self.frame_index = FrameIndex()
        self.total_chunks = 0
        self.peak_level = 0.0
        self.error: Optional[CaptureError] = None

    @property
    def participant_id(self) -> str:
        return self.participant.id

    @property
    def bytes_written(self) -> int:
        return self.frame_index.total_bytes

    @property
    def is_capturing(self) -> bool:
        return self.task is not None and not self.task.done() and not self.closed

    def start(self) -> None:
        """Open the subscription and file, then run the pipeline as a background task."""
        if self.task is not None or self.closed:
            logger.warning(f"Capture for {self.participant.username} already started")
            return

        try:
            self.subscription = self.receiver.subscribe(self.participant.id, EndBehavior.MANUAL)
            self.writer = open(self.filepath, 'wb')
        except Exception as e:
            self._fail(CaptureError(
                f"Failed to set up audio stream for {self.participant.username}: {e}",
                self.participant.id, code="STREAM_SETUP_FAILED"))
            return

        self.task = asyncio.create_task(self._run(), name=f"capture-{self.participant.id}")
        logger.info(f"Started recording for user {self.participant.username} ({self.participant.id})")

    async def _run(self) -> None:
        """Internal method: pump packets until the subscription ends or something fails."""
        try:
            async for packet in self.subscription:
                try:
                    pcm = self.decoder.decode(packet)
                except Exception as e:
                    raise CaptureError(f"Decode failed for {self.participant.username}: {e}",
                                       self.participant.id, code="DECODE_FAILED") from e
                self._write(pcm)
            logger.debug(f"Pipeline ended for user {self.participant.username}")
        except CaptureError as e:
            self._fail(e)
        except Exception as e:
            self._fail(CaptureError(f"Pipeline failed for user {self.participant.username}: {e}",
                                    self.participant.id))

    def _write(self, pcm: bytes) -> None:
        if not pcm:
            return
        try:
            self.writer.write(pcm)
        except (OSError, ValueError) as e:
            raise CaptureError(f"Write failed for {self.participant.username}: {e}",
                               self.participant.id, code="WRITE_FAILED") from e

        self.frame_index.add_frame(self.clock(), len(pcm))
        self.total_chunks += 1

        samples = np.frombuffer(pcm[:len(pcm) - len(pcm) % 2], dtype='<i2')
        if samples.size:
            level = float(np.abs(samples.astype(np.int32)).max()) / 32768.0
            self.peak_level = max(self.peak_level, level)

    def _fail(self, error: CaptureError) -> None:
        self.error = error
        logger.error(f"Capture pipeline failed: {error}", exc_info=error.__cause__ is not None)

    async def close(self) -> List[str]:
        """Destroy the subscription and decoder and end the writer.

        Returns:
            Messages for handles that failed to close; never raises
        """
        if self.closed:
            return []
        self.closed = True
        close_errors: List[str] = []

        if self.subscription is not None:
            try:
                self.subscription.destroy()
            except Exception as e:
                close_errors.append(f"subscription: {e}")

        if self.task is not None and not self.task.done():
            self.task.cancel()
        if self.task is not None:
            await asyncio.gather(self.task, return_exceptions=True)

        try:
            self.decoder.destroy()
        except Exception as e:
            close_errors.append(f"decoder: {e}")

        if self.writer is not None:
            try:
                self.writer.flush()
                self.writer.close()
            except Exception as e:
                close_errors.append(f"writer: {e}")

        for message in close_errors:
            logger.warning(f"Error closing stream for user {self.participant.id}: {message}")
        return close_errors

    def file_size(self) -> int:
        """Size of the participant file on disk, 0 if it was never created."""
        if not os.path.exists(self.filepath):
            return 0
        return os.path.getsize(self.filepath)

    def get_capture_stats(self) -> CaptureStats:
        """Get current capture statistics."""
        return CaptureStats(
            participant_id=self.participant.id,
            is_capturing=self.is_capturing,
            bytes_written=self.bytes_written,
            total_chunks=self.total_chunks,
            peak_level=self.peak_level,
            failed=self.error is not None,
        )
