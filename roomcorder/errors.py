"""Exception hierarchy for recording, capture and mixdown failures."""

from enum import Enum
from typing import Any, Optional


class RoomcorderError(Exception):
    """Base class for all roomcorder errors."""

    default_code = "ROOMCORDER_ERROR"

    def __init__(self, message: str, code: Optional[str] = None, details: Any = None):
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code
        self.details = details


class ConnectionFailureKind(Enum):
    """Why a voice connection attempt failed."""
    TIMEOUT = "timeout"
    DISCONNECTED = "disconnected"
    DESTROYED = "destroyed"


class VoiceConnectionError(RoomcorderError):
    """The transport connection to a room could not be made ready."""

    default_code = "CONNECTION_FAILED"

    def __init__(self, message: str, kind: ConnectionFailureKind, attempts: int = 1, details: Any = None):
        super().__init__(message, code=f"CONNECTION_{kind.name}", details=details)
        self.kind = kind
        self.attempts = attempts

    @property
    def retryable(self) -> bool:
        """Only timeouts are worth another attempt."""
        return self.kind is ConnectionFailureKind.TIMEOUT


class AlreadyActiveError(RoomcorderError):
    default_code = "ALREADY_RECORDING"


class SessionNotFoundError(RoomcorderError):
    default_code = "NO_ACTIVE_RECORDING"


class CaptureError(RoomcorderError):
    """Decode or write failure inside one participant's pipeline."""

    default_code = "CAPTURE_FAILED"

    def __init__(self, message: str, participant_id: str, code: Optional[str] = None, details: Any = None):
        super().__init__(message, code=code, details=details)
        self.participant_id = participant_id


class ValidationError(RoomcorderError):
    default_code = "VALIDATION_ERROR"


class NoAudioCapturedError(ValidationError):
    default_code = "NO_AUDIO_CAPTURED"


class MixdownError(RoomcorderError):
    """An external transcoder invocation failed."""

    default_code = "MIXDOWN_FAILED"

    def __init__(self, message: str, stderr: str = "", returncode: Optional[int] = None):
        super().__init__(message, details={"stderr": stderr, "returncode": returncode})
        self.stderr = stderr
        self.returncode = returncode


_FRIENDLY_MESSAGES = {
    "ALREADY_RECORDING": "A recording is already in progress in this room.",
    "NO_ACTIVE_RECORDING": "No active recording found in this room.",
    "CONNECTION_TIMEOUT": "Timed out connecting to the voice room. Please try again.",
    "CONNECTION_DISCONNECTED": "The voice connection was dropped while connecting.",
    "CONNECTION_DESTROYED": "The voice connection was closed while connecting.",
    "NO_AUDIO_CAPTURED": "No audio was captured during recording. Make sure people spoke and weren't muted.",
}


def user_friendly_message(error: Exception) -> str:
    """Short, user-facing description of an error."""
    if isinstance(error, RoomcorderError):
        friendly = _FRIENDLY_MESSAGES.get(error.code)
        if friendly:
            return friendly
        if isinstance(error, MixdownError):
            return f"Audio processing failed: {error.message}"
        if isinstance(error, ValidationError):
            return f"Invalid input: {error.message}"
        if isinstance(error, CaptureError):
            return f"Recording failed for one participant: {error.message}"
        return f"Recording failed: {error.message}"
    return f"An unexpected error occurred: {error}"
