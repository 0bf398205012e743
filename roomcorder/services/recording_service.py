"""Core recording service that manages the entire recording lifecycle."""

import logging
from pathlib import Path
from typing import Callable, Iterable, List, Optional

from ..audio.consolidator import SegmentConsolidator
from ..audio.ffmpeg import FFmpegRunner
from ..audio.mixdown import MixdownPipeline
from ..audio.speaking_pub import now_ms
from ..audio.timeline import TimelineReconstructor
from ..config import RoomcorderConfig
from ..errors import MixdownError, ValidationError, user_friendly_message
from ..models.results import MixdownResult, RecordingOutcome, StopResult, TimelineResult
from ..models.session import Participant, Session
from ..storage.file_manager import TIMELINE_FILE_SUFFIX, FileManager, recording_id_for
from ..transport.base import AbstractVoiceTransport
from ..transport.decoder import AbstractAudioDecoder, PcmPassthroughDecoder
from .connection_manager import ConnectionManager
from .session_registry import SessionRegistry

logger = logging.getLogger(__name__)


class RecordingService:
    """Entry point for starting, stopping and post-processing room recordings."""

    def __init__(self,
                 config: RoomcorderConfig,
                 transport: AbstractVoiceTransport,
                 decoder_factory: Callable[[], AbstractAudioDecoder] = PcmPassthroughDecoder,
                 clock: Callable[[], int] = now_ms,
                 runner: Optional[FFmpegRunner] = None):
        """Initialize recording service.

        Args:
            config: Application configuration
            transport: Transport capability for the voice platform
            decoder_factory: Builds one decoder per captured participant
            clock: Returns the current time in epoch milliseconds
            runner: ffmpeg runner; built from config when omitted
        """
        self.config = config
        self.file_manager = FileManager(config.get_recordings_directory(), config.get_temp_directory())
        self.connection_manager = ConnectionManager(
            transport,
            timeout=float(config.get('connection.timeout_seconds', 15.0)),
            max_retries=int(config.get('connection.max_retries', 2)),
            retry_delay=float(config.get('connection.retry_delay_seconds', 2.0)),
        )
        self.registry = SessionRegistry(
            self.connection_manager,
            self.file_manager,
            decoder_factory=decoder_factory,
            consolidator=SegmentConsolidator(
                merge_gap_ms=int(config.get('segments.merge_gap_ms', 750)),
                min_duration_ms=int(config.get('segments.min_duration_ms', 1000)),
            ),
            flush_grace_ms=int(config.get('capture.flush_grace_ms', 100)),
            clock=clock,
        )
        self.runner = runner or FFmpegRunner(
            config.get('mixdown.ffmpeg_path', 'ffmpeg'),
            config.get('mixdown.ffprobe_path', 'ffprobe'),
        )
        self.mixdown = MixdownPipeline(self.runner, bitrate=config.get_bitrate())
        self.timeline = TimelineReconstructor(
            self.runner,
            min_silence_gap_ms=int(config.get('timeline.min_silence_gap_ms', 100)),
            bitrate=config.get('timeline.bitrate', '128k'),
        )
        logger.info("RecordingService ready")

    async def start_session(self, room_id: str, participants: Iterable[Participant]) -> Session:
        """Start recording a room. Bots are excluded from capture."""
        return await self.registry.start(room_id, participants)

    async def stop_session(self, room_id: str) -> StopResult:
        """Stop recording a room without post-processing."""
        return await self.registry.stop(room_id)

    def is_recording(self, room_id: str) -> bool:
        return self.registry.is_active(room_id)

    async def stop_and_process(self,
                               room_id: str,
                               output_path: Optional[str] = None,
                               timeline: Optional[bool] = None) -> RecordingOutcome:
        """Stop a room and turn what was captured into final artifacts.

        Mixdown and timeline failures are reported in ``errors`` on the
        returned outcome; raw participant files are then left in place.

        Args:
            room_id: Room to stop
            output_path: Where to write the mixdown; defaults to the recordings directory
            timeline: Also build the timeline track; defaults to ``timeline.enabled``

        Returns:
            RecordingOutcome with whatever could be produced

        Raises:
            SessionNotFoundError: If the room has no active session
        """
        stop_result = await self.registry.stop(room_id)
        outcome = RecordingOutcome(stop_result=stop_result)
        recording_id = recording_id_for(stop_result)

        try:
            outcome.segments_file = self.file_manager.save_segments(stop_result, recording_id)
        except OSError as e:
            logger.error(f"Could not save segment metadata for {recording_id}: {e}")
            outcome.errors.append(f"Segment metadata not saved: {e}")

        output_file = output_path or self.file_manager.get_recording_path(recording_id)
        try:
            outcome.mixdown = await self.process_files(
                [pf.filepath for pf in stop_result.participant_files], output_file)
        except (ValidationError, MixdownError) as e:
            logger.error(f"Mixdown failed for {recording_id}: {e}")
            outcome.errors.append(user_friendly_message(e))

        if timeline is None:
            timeline = bool(self.config.get('timeline.enabled', False))
        if timeline:
            timeline_file = str(Path(output_file).with_suffix('')) + TIMELINE_FILE_SUFFIX
            try:
                outcome.timeline = await self.timeline.reconstruct(
                    stop_result.segments, stop_result.participant_files, timeline_file)
            except (ValidationError, MixdownError) as e:
                logger.error(f"Timeline reconstruction failed for {recording_id}: {e}")
                outcome.errors.append(user_friendly_message(e))

        if outcome.mixdown is not None and self.config.get('mixdown.cleanup_temp_files', True):
            self.file_manager.cleanup_temp_dir(stop_result.scratch_dir)

        if outcome.degraded:
            logger.warning(f"Recording {recording_id} finished with {len(outcome.errors)} errors")
        else:
            logger.info(f"Recording {recording_id} processed: {output_file}")
        return outcome

    async def process_files(self, files: List[str], output_file: str) -> MixdownResult:
        """Mix down a set of participant PCM files."""
        return await self.mixdown.run(files, output_file)

    async def process_directory(self, scratch_dir: str, output_file: str) -> MixdownResult:
        """Mix down every participant PCM file left in a scratch directory.

        Raises:
            NoAudioCapturedError: If the directory holds no PCM audio
            MixdownError: If ffmpeg fails
        """
        files = sorted(str(path) for path in Path(scratch_dir).glob("*.pcm"))
        logger.info(f"Found {len(files)} participant files in {scratch_dir}")
        return await self.mixdown.run(files, output_file)

    async def rebuild_timeline(self, segments_file: str, output_file: str) -> TimelineResult:
        """Rebuild a timeline track from saved segment metadata.

        The participant PCM files referenced by the metadata must still exist.

        Raises:
            FileNotFoundError: If the metadata file is missing
            ValidationError: If none of the referenced audio is still on disk
            MixdownError: If ffmpeg fails
        """
        segments, participant_files = self.file_manager.load_segments(segments_file)
        return await self.timeline.reconstruct(segments, participant_files, output_file)
