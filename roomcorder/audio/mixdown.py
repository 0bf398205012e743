"""Mixdown of per-participant PCM files into one compressed recording.

Single input: PCM -> intermediate WAV -> MP3.
Several inputs: PCM inputs summed with amix (duration=longest, so shorter
inputs run out into silence instead of truncating the mix) -> intermediate
WAV -> MP3.
"""

import logging
import os
import time
from enum import Enum
from pathlib import Path
from typing import List, Sequence

from ..errors import MixdownError, NoAudioCapturedError, ValidationError
from ..models.audio import PcmFormat
from ..models.results import MixdownResult
from .ffmpeg import FFmpegRunner, pcm_input_args

logger = logging.getLogger(__name__)


class MixdownState(Enum):
    IDLE = "idle"
    CONVERTING = "converting"
    MIXING = "mixing"
    TRANSCODING = "transcoding"
    COMPLETE = "complete"
    FAILED = "failed"


class MixdownPipeline:
    """Produces one playable MP3 from one or more participant PCM files."""

    def __init__(self, runner: FFmpegRunner, bitrate: str = "192k", pcm_format: PcmFormat = PcmFormat()):
        """Initialize mixdown pipeline.

        Args:
            runner: ffmpeg runner used for every conversion
            bitrate: MP3 bitrate, e.g. "192k"
            pcm_format: Layout of the input PCM files and of the output
        """
        self.runner = runner
        self.bitrate = bitrate
        self.pcm_format = pcm_format
        self.state = MixdownState.IDLE
        self.transitions: List[MixdownState] = []

    def _transition(self, state: MixdownState) -> None:
        logger.debug(f"Mixdown {self.state.value} -> {state.value}")
        self.state = state
        self.transitions.append(state)

    @staticmethod
    def validate_input(path: str) -> None:
        """Raise ValidationError unless ``path`` is an existing, non-empty file."""
        if not os.path.isfile(path):
            raise ValidationError(f"Input file not found: {path}", details={"path": path})
        if os.path.getsize(path) == 0:
            raise ValidationError(f"Input file is empty: {path}", details={"path": path})

    def validate_inputs(self, candidates: Sequence[str]) -> List[str]:
        """Keep the usable candidates.

        Raises:
            NoAudioCapturedError: If no candidate exists with content
        """
        valid = []
        for path in candidates:
            try:
                self.validate_input(path)
            except ValidationError as e:
                logger.warning(f"Skipping mixdown input: {e}")
                continue
            valid.append(path)

        if not valid:
            raise NoAudioCapturedError(
                f"No audio captured: none of {len(candidates)} participant files has any audio",
                details={"candidates": list(candidates)})
        return valid

    async def run(self, inputs: Sequence[str], output_file: str) -> MixdownResult:
        """Mix ``inputs`` down into ``output_file``.

        Raises:
            NoAudioCapturedError: Before any ffmpeg call, if nothing is usable
            MixdownError: If any ffmpeg step fails
        """
        self.state = MixdownState.IDLE
        self.transitions = [MixdownState.IDLE]
        started = time.monotonic()

        try:
            valid = self.validate_inputs(inputs)
        except ValidationError:
            self._transition(MixdownState.FAILED)
            raise

        output_path = Path(output_file)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        intermediate = str(output_path.with_name(f"{output_path.stem}.intermediate.wav"))
        path_taken = "single" if len(valid) == 1 else "mixed"

        logger.info(f"Processing {len(valid)} participant files -> {output_file}")

        try:
            self._transition(MixdownState.CONVERTING)
            if len(valid) == 1:
                await self.runner.run(
                    [*pcm_input_args(valid[0], self.pcm_format), "-c:a", "pcm_s16le", intermediate],
                    "PCM conversion")
            else:
                self._transition(MixdownState.MIXING)
                args: List[str] = []
                for path in valid:
                    args.extend(pcm_input_args(path, self.pcm_format))
                args.extend([
                    "-filter_complex", f"amix=inputs={len(valid)}:duration=longest:dropout_transition=0",
                    "-c:a", "pcm_s16le",
                    intermediate,
                ])
                await self.runner.run(args, "Mixing")

            self._transition(MixdownState.TRANSCODING)
            await self.runner.run([
                "-i", intermediate,
                "-c:a", "libmp3lame",
                "-b:a", self.bitrate,
                "-ar", str(self.pcm_format.sample_rate),
                "-ac", str(self.pcm_format.channels),
                output_file,
            ], "Transcoding")
        except MixdownError:
            self._transition(MixdownState.FAILED)
            _remove_quietly(output_file)
            raise
        finally:
            _remove_quietly(intermediate)

        self._transition(MixdownState.COMPLETE)
        processing_time = time.monotonic() - started
        file_size = os.path.getsize(output_file) if os.path.exists(output_file) else 0
        logger.info(f"Processing completed in {processing_time * 1000:.0f}ms ({path_taken} path)")

        return MixdownResult(
            output_file=output_file,
            file_size=file_size,
            processing_time=processing_time,
            input_count=len(valid),
            path=path_taken,
        )


def _remove_quietly(path: str) -> None:
    try:
        if os.path.exists(path):
            os.remove(path)
            logger.debug(f"Cleaned up temp file: {path}")
    except OSError as e:
        logger.warning(f"Could not remove {path}: {e}")
