"""File management module for recordings, scratch directories and segment metadata."""

import os
import json
import logging
import re
import shutil
import time
from pathlib import Path
from datetime import datetime
from typing import Dict, Any, Optional, List, Tuple
from dataclasses import dataclass

from ..models.audio import AudioFrame, ParticipantFile
from ..models.events import ConsolidatedSegment
from ..models.results import StopResult


logger = logging.getLogger(__name__)

SEGMENTS_FILE_SUFFIX = "_segments.json"
TIMELINE_FILE_SUFFIX = "_mixed_timeline.mp3"

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9_.-]+")


@dataclass
class RecordingInfo:
    """A finished recording in the recordings directory."""
    recording_id: str
    path: str
    size: int
    created: datetime


def recording_id_for(stop_result: StopResult) -> str:
    """Recording id shared by the mixdown, timeline and segment metadata files."""
    room = _UNSAFE_CHARS.sub("_", stop_result.room_id)
    return f"recording_{room}_{stop_result.start_time}"


def participant_file_to_dict(pf: ParticipantFile) -> Dict[str, Any]:
    return {
        "participant_id": pf.participant_id,
        "username": pf.username,
        "display_name": pf.display_name,
        "filepath": pf.filepath,
        "filename": pf.filename,
        "file_size": pf.file_size,
        # [arrival timestamp, length]; offsets are implied by order
        "frames": [[frame.timestamp, frame.length] for frame in pf.frames],
    }


def participant_file_from_dict(data: Dict[str, Any]) -> ParticipantFile:
    frames = []
    offset = 0
    for timestamp, length in data.get("frames", []):
        frames.append(AudioFrame(timestamp=int(timestamp), offset=offset, length=int(length)))
        offset += int(length)
    return ParticipantFile(
        participant_id=str(data["participant_id"]),
        username=data.get("username", ""),
        display_name=data.get("display_name", ""),
        filepath=data["filepath"],
        filename=data.get("filename", os.path.basename(data["filepath"])),
        file_size=int(data.get("file_size", 0)),
        frames=frames,
    )


class FileManager:
    """Manages the recordings and temp directories and the files inside them."""

    def __init__(self, recordings_dir: str = "./recordings", temp_dir: str = "./temp"):
        """Initialize file manager.

        Args:
            recordings_dir: Directory for finished recordings and their metadata
            temp_dir: Directory holding per-session scratch directories
        """
        self.recordings_dir = Path(recordings_dir)
        self.temp_dir = Path(temp_dir)

        # Create directory structure
        self._ensure_directories()

        logger.info(f"FileManager initialized with recordings_dir: {self.recordings_dir}, temp_dir: {self.temp_dir}")

    def _ensure_directories(self) -> None:
        """Ensure all required directories exist."""
        for directory in [self.recordings_dir, self.temp_dir]:
            directory.mkdir(parents=True, exist_ok=True)
            logger.debug(f"Ensured directory exists: {directory}")

    def create_session_directory(self, room_id: str, timestamp_ms: Optional[int] = None) -> str:
        """Create a scratch directory for one recording session.

        Args:
            room_id: Room being recorded
            timestamp_ms: Session start time; defaults to now

        Returns:
            Full path to the new directory
        """
        if timestamp_ms is None:
            timestamp_ms = int(time.time() * 1000)
        room = _UNSAFE_CHARS.sub("_", room_id)
        session_path = self.temp_dir / f"temp_{room}_{timestamp_ms}"
        session_path.mkdir(parents=True, exist_ok=True)

        logger.info(f"Created session directory: {session_path}")
        return str(session_path)

    def cleanup_temp_dir(self, path: str) -> bool:
        """Remove a scratch directory and everything in it.

        Returns:
            True if the directory was removed
        """
        target = Path(path)
        if not target.exists():
            return False
        try:
            shutil.rmtree(target)
            logger.info(f"Cleaned up temp directory: {target}")
            return True
        except OSError as e:
            logger.warning(f"Failed to clean up temp directory {target}: {e}")
            return False

    def get_recording_path(self, recording_id: str, suffix: str = ".mp3") -> str:
        return str(self.recordings_dir / f"{recording_id}{suffix}")

    def save_segments(self, stop_result: StopResult, recording_id: str) -> str:
        """Save segment metadata for a stopped session to JSON.

        Participant file paths and frame lists are recorded as they were at stop
        time. The PCM files live in the session scratch directory, so a timeline
        can only be rebuilt from this metadata while that directory is kept
        (``mixdown.cleanup_temp_files: false``).

        Args:
            stop_result: Result of stopping the session
            recording_id: Recording the metadata belongs to

        Returns:
            Path to saved metadata file
        """
        segments_file = self.recordings_dir / f"{recording_id}{SEGMENTS_FILE_SUFFIX}"
        data = {
            "recording_id": recording_id,
            "room_id": stop_result.room_id,
            "start_time": stop_result.start_time,
            "end_time": stop_result.end_time,
            "duration": stop_result.duration,
            "participants": [
                {"id": p.id, "display_name": p.display_name, "username": p.username}
                for p in stop_result.participants
            ],
            "segments": [segment.to_dict() for segment in stop_result.segments],
            "participant_files": [participant_file_to_dict(pf) for pf in stop_result.participant_files],
        }

        try:
            with open(segments_file, 'w') as f:
                json.dump(data, f, indent=2)

            logger.info(f"Segment metadata saved: {segments_file} ({len(stop_result.segments)} segments)")
            return str(segments_file)

        except Exception as e:
            logger.error(f"Error saving segment metadata: {e}")
            raise

    def load_segments(self, path: str) -> Tuple[List[ConsolidatedSegment], List[ParticipantFile]]:
        """Load segment metadata written by ``save_segments``.

        Raises:
            FileNotFoundError: If the metadata file does not exist
            ValueError: If the file is not valid segment metadata
        """
        segments_file = Path(path)
        if not segments_file.exists():
            raise FileNotFoundError(f"Segment metadata not found: {segments_file}")

        try:
            with open(segments_file, 'r') as f:
                data = json.load(f)
            segments = [ConsolidatedSegment.from_dict(item) for item in data.get("segments", [])]
            files = [participant_file_from_dict(item) for item in data.get("participant_files", [])]
        except (json.JSONDecodeError, KeyError, TypeError, ValueError) as e:
            raise ValueError(f"Invalid segment metadata in {segments_file}: {e}")

        logger.debug(f"Loaded {len(segments)} segments and {len(files)} participant files from {segments_file}")
        return segments, files

    def list_recordings(self) -> List[RecordingInfo]:
        """List all finished recordings, newest first.

        Timeline tracks are listed alongside their recording.
        """
        recordings = []
        try:
            for path in self.recordings_dir.iterdir():
                if path.is_file() and path.suffix == ".mp3":
                    stats = path.stat()
                    recordings.append(RecordingInfo(
                        recording_id=path.stem,
                        path=str(path),
                        size=stats.st_size,
                        created=datetime.fromtimestamp(stats.st_mtime),
                    ))
        except OSError as e:
            logger.error(f"Error listing recordings: {e}")
            return []

        recordings.sort(key=lambda info: info.created, reverse=True)
        logger.debug(f"Found {len(recordings)} recordings")
        return recordings

    def get_latest_recording(self) -> Optional[RecordingInfo]:
        recordings = self.list_recordings()
        return recordings[0] if recordings else None

    def cleanup_old_files(self, max_age_hours: float = 24) -> int:
        """Delete recordings and temp entries older than ``max_age_hours``.

        Args:
            max_age_hours: Maximum age in hours before cleanup

        Returns:
            Number of files and directories deleted
        """
        cutoff_time = time.time() - (max_age_hours * 60 * 60)
        deleted_count = 0

        for directory in [self.recordings_dir, self.temp_dir]:
            if not directory.exists():
                continue
            for path in directory.iterdir():
                try:
                    if path.stat().st_mtime >= cutoff_time:
                        continue
                    if path.is_dir():
                        shutil.rmtree(path)
                        logger.info(f"Deleted old temp directory: {path.name}")
                    else:
                        path.unlink()
                        logger.info(f"Deleted old file: {path.name}")
                    deleted_count += 1
                except OSError as e:
                    # Continue with other files
                    logger.error(f"Error deleting {path}: {e}")

        if deleted_count > 0:
            logger.info(f"Cleanup completed: deleted {deleted_count} old files")
        return deleted_count

    def get_disk_usage(self) -> Dict[str, Any]:
        """Get storage usage of finished recordings.

        Returns:
            Dictionary with storage statistics
        """
        recordings = self.list_recordings()
        total_size = sum(info.size for info in recordings)

        return {
            "file_count": len(recordings),
            "total_size_bytes": total_size,
            "total_size_mb": round(total_size / (1024 * 1024), 2),
            "recordings_directory": str(self.recordings_dir),
        }
