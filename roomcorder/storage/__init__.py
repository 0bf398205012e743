"""Storage layout for recordings, scratch directories and segment metadata."""

from .file_manager import FileManager, RecordingInfo

__all__ = [
    "FileManager",
    "RecordingInfo",
]
