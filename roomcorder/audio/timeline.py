"""Timeline reconstruction: one mono track that keeps the real silences between segments."""

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

from ..errors import ValidationError
from ..models.audio import ParticipantFile, PcmFormat
from ..models.events import ConsolidatedSegment
from ..models.results import TimelineResult
from .ffmpeg import FFmpegRunner, pcm_input_args
from .frame_index import FrameIndex

logger = logging.getLogger(__name__)

_MONO_FORMAT = "aformat=sample_fmts=s16:sample_rates={rate}:channel_layouts=mono"


@dataclass
class TimelineEntry:
    """A silence gap or a speech clip placed on the timeline."""
    kind: str  # "silence" or "speech"
    start: int
    end: int
    segment: Optional[ConsolidatedSegment] = None
    clip_path: Optional[str] = None

    @property
    def duration(self) -> int:
        return self.end - self.start


class TimelineReconstructor:
    """Concatenates speech clips in start order with explicit silences between them."""

    def __init__(self,
                 runner: FFmpegRunner,
                 min_silence_gap_ms: int = 100,
                 bitrate: str = "128k",
                 pcm_format: PcmFormat = PcmFormat()):
        """Initialize timeline reconstructor.

        Args:
            runner: ffmpeg runner
            min_silence_gap_ms: Gaps must be longer than this to become silence clips
            bitrate: MP3 bitrate for the mono output
            pcm_format: Layout of the participant PCM files
        """
        self.runner = runner
        self.min_silence_gap_ms = min_silence_gap_ms
        self.bitrate = bitrate
        self.pcm_format = pcm_format

    def build_timeline(self, segments: Sequence[ConsolidatedSegment],
                       clip_paths: Optional[Mapping[int, str]] = None) -> List[TimelineEntry]:
        """Interleave speech entries with silence entries for the gaps between them.

        Args:
            segments: Segments to place, in any order
            clip_paths: Optional clip file per index into the start-sorted segments

        Returns:
            Ordered timeline entries
        """
        ordered = sorted(segments, key=lambda segment: segment.start)
        if not ordered:
            return []

        timeline: List[TimelineEntry] = []
        previous_end = ordered[0].start

        for position, segment in enumerate(ordered):
            gap = segment.start - previous_end
            if gap > self.min_silence_gap_ms:
                timeline.append(TimelineEntry("silence", previous_end, segment.start))

            timeline.append(TimelineEntry(
                "speech", segment.start, segment.end, segment=segment,
                clip_path=clip_paths.get(position) if clip_paths else None))
            previous_end = max(previous_end, segment.end)

        return timeline

    def extract_clips(self,
                      segments: Sequence[ConsolidatedSegment],
                      participant_files: Sequence[ParticipantFile],
                      work_dir: str) -> List[Tuple[ConsolidatedSegment, str]]:
        """Cut each segment's speech out of its participant file.

        Segments without a participant file, whose file no longer exists, or
        whose window holds no audio are skipped.

        Returns:
            (segment, clip path) pairs in start order
        """
        files: Dict[str, ParticipantFile] = {pf.participant_id: pf for pf in participant_files}
        indexes: Dict[str, FrameIndex] = {pid: FrameIndex.from_frames(pf.frames) for pid, pf in files.items()}
        os.makedirs(work_dir, exist_ok=True)

        clips = []
        for position, segment in enumerate(sorted(segments, key=lambda s: s.start)):
            source = files.get(segment.participant_id)
            if source is None:
                logger.warning(f"No audio file for {segment.participant_id}; skipping segment at {segment.start}")
                continue

            if not os.path.isfile(source.filepath):
                logger.warning(f"Audio file {source.filepath} is missing; skipping segment at {segment.start}")
                continue

            byte_range = indexes[segment.participant_id].byte_range(segment.start, segment.end)
            if byte_range is None:
                logger.info(f"Empty clip for {segment.display_name} at {segment.start}; skipping")
                continue

            offset, length = byte_range
            with open(source.filepath, 'rb') as f:
                f.seek(offset)
                data = f.read(length)
            if not data:
                continue

            clip_path = os.path.join(work_dir, f"clip_{position:04d}_{segment.participant_id}.pcm")
            with open(clip_path, 'wb') as f:
                f.write(data)
            clips.append((segment, clip_path))

        logger.debug(f"Extracted {len(clips)} clips from {len(segments)} segments")
        return clips

    def build_command(self, timeline: Sequence[TimelineEntry], output_file: str) -> List[str]:
        """ffmpeg arguments that render ``timeline`` into a mono MP3."""
        rate = self.pcm_format.sample_rate
        args: List[str] = []
        filters: List[str] = []

        for index, entry in enumerate(timeline):
            if entry.kind == "silence":
                args.extend([
                    "-f", "lavfi",
                    "-t", f"{entry.duration / 1000:.3f}",
                    "-i", f"anullsrc=channel_layout=mono:sample_rate={rate}",
                ])
            else:
                args.extend(pcm_input_args(entry.clip_path, self.pcm_format))
            filters.append(f"[{index}:a]{_MONO_FORMAT.format(rate=rate)}[audio{index}]")

        streams = "".join(f"[audio{index}]" for index in range(len(timeline)))
        filters.append(f"{streams}concat=n={len(timeline)}:v=0:a=1[mixed]")

        args.extend([
            "-filter_complex", ";".join(filters),
            "-map", "[mixed]",
            "-ar", str(rate),
            "-ac", "1",
            "-c:a", "libmp3lame",
            "-b:a", self.bitrate,
            output_file,
        ])
        return args

    async def reconstruct(self,
                          segments: Sequence[ConsolidatedSegment],
                          participant_files: Sequence[ParticipantFile],
                          output_file: str,
                          work_dir: Optional[str] = None) -> TimelineResult:
        """Render the timeline of ``segments`` into ``output_file``.

        Raises:
            ValidationError: If there are no segments or no segment has audio
            MixdownError: If ffmpeg fails
        """
        if not segments:
            raise ValidationError("No speech segments provided for timeline reconstruction")

        logger.info(f"Reconstructing timeline from {len(segments)} speech segments")

        output_path = Path(output_file)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        work_dir = work_dir or str(output_path.with_name(f"{output_path.stem}_clips"))

        clips = self.extract_clips(segments, participant_files, work_dir)
        try:
            if not clips:
                raise ValidationError("No valid speech segment audio found",
                                      details={"segments": len(segments)})

            kept = [segment for segment, _ in clips]
            timeline = self.build_timeline(kept, {i: path for i, (_, path) in enumerate(clips)})
            await self.runner.run(self.build_command(timeline, output_file), "Timeline reconstruction")
        finally:
            for _, clip_path in clips:
                try:
                    os.remove(clip_path)
                except OSError as e:
                    logger.debug(f"Failed to clean up clip {clip_path}: {e}")
            try:
                os.rmdir(work_dir)
            except OSError as e:
                logger.debug(f"Clip directory {work_dir} left in place: {e}")

        logger.info(f"Timeline reconstruction completed: {output_file}")
        return TimelineResult(
            output_file=output_file,
            total_duration=timeline[-1].end - timeline[0].start,
            segment_count=len(kept),
            timeline_entries=len(timeline),
        )
