"""Scripted loopback sessions: synthetic speech turns played into a loopback connection."""

import asyncio
import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence

import numpy as np

from .audio.speaking_pub import now_ms
from .models.audio import PcmFormat
from .models.events import SpeakingEventKind
from .transport.loopback import LoopbackConnection

logger = logging.getLogger(__name__)

PACKET_MS = 20


@dataclass
class SpeechTurn:
    """One participant talking for a while, relative to session start."""
    participant_id: str
    start_ms: int
    duration_ms: int

    @property
    def end_ms(self) -> int:
        return self.start_ms + self.duration_ms


class VirtualClock:
    """Millisecond clock that only moves when told to."""

    def __init__(self, start_ms: Optional[int] = None):
        self.current = now_ms() if start_ms is None else start_ms

    def __call__(self) -> int:
        return self.current

    def advance(self, ms: int) -> None:
        self.current += ms


def generate_tone(frequency: float, duration_ms: int, pcm_format: PcmFormat = PcmFormat(),
                  amplitude: float = 0.3, start_sample: int = 0) -> bytes:
    """Interleaved s16le sine tone, identical on every channel.

    Args:
        frequency: Tone frequency in Hz
        duration_ms: Length of the tone
        pcm_format: Output PCM layout
        amplitude: Peak amplitude, 0.0 - 1.0
        start_sample: Sample offset, so consecutive packets stay phase-continuous

    Returns:
        Raw PCM bytes
    """
    samples = int(pcm_format.sample_rate * duration_ms / 1000)
    t = (np.arange(samples) + start_sample) / pcm_format.sample_rate
    wave = (amplitude * 32767 * np.sin(2 * np.pi * frequency * t)).astype('<i2')
    return np.repeat(wave, pcm_format.channels).tobytes()


def round_robin_script(participant_ids: Sequence[str], turns: int = 4,
                       turn_ms: int = 2000, gap_ms: int = 500) -> List[SpeechTurn]:
    """Participants take turns talking, one after another."""
    script = []
    position = 0
    for turn in range(turns):
        participant_id = participant_ids[turn % len(participant_ids)]
        script.append(SpeechTurn(participant_id, position, turn_ms))
        position += turn_ms + gap_ms
    return script


async def play_script(connection: LoopbackConnection,
                      clock: VirtualClock,
                      script: Sequence[SpeechTurn],
                      pcm_format: PcmFormat = PcmFormat(),
                      packet_ms: int = PACKET_MS) -> int:
    """Push speaking notifications and tone packets for ``script`` through ``connection``.

    The clock advances one packet at a time and the loop yields after each
    packet, so capture pipelines stamp frames with the matching virtual time.

    Returns:
        Length of the script in milliseconds
    """
    receiver = connection.receiver
    total_ms = max((turn.end_ms for turn in script), default=0)
    frequencies: Dict[str, float] = {}
    for turn in script:
        frequencies.setdefault(turn.participant_id, 220.0 * (len(frequencies) + 1))

    talking = set()
    elapsed = 0
    while elapsed <= total_ms:
        for index, turn in enumerate(script):
            if index not in talking and turn.start_ms <= elapsed < turn.end_ms:
                talking.add(index)
                receiver.speak(turn.participant_id, SpeakingEventKind.START)
            elif index in talking and elapsed >= turn.end_ms:
                talking.discard(index)
                receiver.speak(turn.participant_id, SpeakingEventKind.END)

        for index in talking:
            turn = script[index]
            start_sample = (elapsed - turn.start_ms) * pcm_format.sample_rate // 1000
            receiver.push_audio(turn.participant_id, generate_tone(
                frequencies[turn.participant_id], packet_ms, pcm_format, start_sample=start_sample))

        # Let every capture task drain its queue before time moves on
        await asyncio.sleep(0)
        await asyncio.sleep(0)
        clock.advance(packet_ms)
        elapsed += packet_ms

    logger.info(f"Played {len(script)} speech turns over {total_ms}ms")
    return total_ms
