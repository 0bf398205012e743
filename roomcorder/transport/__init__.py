"""Transport capabilities consumed by the recorder."""

from .base import (
    ConnectionStatus,
    EndBehavior,
    AbstractInboundAudioStream,
    AbstractAudioReceiver,
    AbstractVoiceConnection,
    AbstractVoiceTransport,
)
from .decoder import AbstractAudioDecoder, PcmPassthroughDecoder
from .loopback import LoopbackTransport, LoopbackConnection, LoopbackReceiver, LoopbackAudioStream

__all__ = [
    "ConnectionStatus",
    "EndBehavior",
    "AbstractInboundAudioStream",
    "AbstractAudioReceiver",
    "AbstractVoiceConnection",
    "AbstractVoiceTransport",
    "AbstractAudioDecoder",
    "PcmPassthroughDecoder",
    "LoopbackTransport",
    "LoopbackConnection",
    "LoopbackReceiver",
    "LoopbackAudioStream",
]
