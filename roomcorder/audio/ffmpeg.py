"""Async wrapper around the external ffmpeg/ffprobe tools."""

import asyncio
import logging
from typing import List, Sequence

from ..errors import MixdownError
from ..models.audio import PcmFormat

logger = logging.getLogger(__name__)


def pcm_input_args(path: str, pcm_format: PcmFormat = PcmFormat()) -> List[str]:
    """ffmpeg input arguments for a raw s16le PCM file."""
    return [
        "-f", "s16le",
        "-ar", str(pcm_format.sample_rate),
        "-ac", str(pcm_format.channels),
        "-i", path,
    ]


class FFmpegRunner:
    """Runs ffmpeg as a subprocess and surfaces failures as MixdownError."""

    def __init__(self, ffmpeg_path: str = "ffmpeg", ffprobe_path: str = "ffprobe"):
        self.ffmpeg_path = ffmpeg_path
        self.ffprobe_path = ffprobe_path

    async def run(self, args: Sequence[str], description: str = "ffmpeg") -> None:
        """Run ffmpeg with ``args`` and wait for it to exit.

        Raises:
            MixdownError: If ffmpeg cannot be started or exits non-zero
        """
        command = [self.ffmpeg_path, "-hide_banner", "-loglevel", "error", "-y", *args]
        logger.debug(f"FFmpeg command: {' '.join(command)}")
        stderr = await self._execute(command, description)
        if stderr:
            logger.debug(f"{description} stderr: {stderr}")

    async def probe_duration(self, path: str) -> float:
        """Duration of a media file in seconds, as reported by ffprobe."""
        command = [
            self.ffprobe_path,
            "-v", "error",
            "-show_entries", "format=duration",
            "-of", "default=noprint_wrappers=1:nokey=1",
            path,
        ]
        process = await self._spawn(command, "ffprobe")
        stdout, stderr = await process.communicate()
        if process.returncode != 0:
            message = stderr.decode(errors="replace").strip()
            raise MixdownError(f"ffprobe failed for {path}: {message}", stderr=message,
                               returncode=process.returncode)
        try:
            return float(stdout.decode().strip())
        except ValueError:
            raise MixdownError(f"ffprobe returned no duration for {path}")

    async def _execute(self, command: List[str], description: str) -> str:
        process = await self._spawn(command, description, capture_stdout=False)
        _, stderr = await process.communicate()
        message = stderr.decode(errors="replace").strip() if stderr else ""
        if process.returncode != 0:
            logger.error(f"{description} failed (exit {process.returncode}): {message}")
            raise MixdownError(f"{description} failed: {message or 'exit code ' + str(process.returncode)}",
                               stderr=message, returncode=process.returncode)
        return message

    async def _spawn(self, command: List[str], description: str, capture_stdout: bool = True):
        try:
            return await asyncio.create_subprocess_exec(
                *command,
                stdout=asyncio.subprocess.PIPE if capture_stdout else asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise MixdownError(f"{description} could not be started ({command[0]}): {e}")
