"""Data models for the roomcorder package."""

from .audio import PcmFormat, CaptureStats, AudioFrame, ParticipantFile
from .events import SpeakingEventKind, SpeakingEvent, RawInterval, ConsolidatedSegment
from .session import SessionStatus, Participant, Session
from .results import StopResult, MixdownResult, TimelineResult, RecordingOutcome

__all__ = [
    "PcmFormat",
    "CaptureStats",
    "AudioFrame",
    "ParticipantFile",
    "SpeakingEventKind",
    "SpeakingEvent",
    "RawInterval",
    "ConsolidatedSegment",
    "SessionStatus",
    "Participant",
    "Session",
    "StopResult",
    "MixdownResult",
    "TimelineResult",
    "RecordingOutcome",
]
