"""Audio capture and processing module."""

from .capture import ParticipantCapture, capture_filename
from .consolidator import SegmentConsolidator
from .ffmpeg import FFmpegRunner
from .frame_index import FrameIndex
from .mixdown import MixdownPipeline, MixdownState
from .speaking_pub import SPEAKING_TOPIC, SpeakingPublisher, now_ms
from .timeline import TimelineEntry, TimelineReconstructor
from .tracker import SpeakingActivityTracker

__all__ = [
    'ParticipantCapture',
    'capture_filename',
    'SegmentConsolidator',
    'FFmpegRunner',
    'FrameIndex',
    'MixdownPipeline',
    'MixdownState',
    'SPEAKING_TOPIC',
    'SpeakingPublisher',
    'now_ms',
    'TimelineEntry',
    'TimelineReconstructor',
    'SpeakingActivityTracker',
]
