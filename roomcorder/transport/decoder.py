"""Decoders turning a room's inbound packets into fixed-format PCM."""

from abc import ABC, abstractmethod
import logging

from ..models.audio import PcmFormat

logger = logging.getLogger(__name__)


class AbstractAudioDecoder(ABC):
    """Converts inbound packets to 48kHz stereo s16le PCM."""

    def __init__(self, pcm_format: PcmFormat = PcmFormat()):
        self.pcm_format = pcm_format
        self.destroyed = False

    @abstractmethod
    def decode(self, packet: bytes) -> bytes:
        """Decode one packet.

        Raises:
            ValueError: If the packet cannot be decoded
        """
        pass

    def destroy(self) -> None:
        self.destroyed = True


class PcmPassthroughDecoder(AbstractAudioDecoder):
    """Decoder for transports that already deliver PCM in the target format."""

    def decode(self, packet: bytes) -> bytes:
        if self.destroyed:
            raise ValueError("Decoder already destroyed")
        if len(packet) % self.pcm_format.bytes_per_frame != 0:
            raise ValueError(
                f"Malformed PCM packet: {len(packet)} bytes is not a multiple of "
                f"{self.pcm_format.bytes_per_frame}")
        return packet
