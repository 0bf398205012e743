"""Services layer for roomcorder session and recording logic."""

from .connection_manager import ConnectionManager, ConnectionState
from .session_registry import SessionRegistry
from .recording_service import RecordingService

__all__ = [
    "ConnectionManager",
    "ConnectionState",
    "SessionRegistry",
    "RecordingService",
]
