"""In-process transport for tests and local simulation.

Connections follow a per-attempt script so timeouts, drops and retries can be
reproduced without a real voice platform. Audio and speaking notifications are
pushed in by the caller.
"""

import asyncio
import logging
from typing import Dict, List, Optional, Sequence

from ..models.events import SpeakingEventKind
from .base import (
    AbstractAudioReceiver,
    AbstractInboundAudioStream,
    AbstractVoiceConnection,
    AbstractVoiceTransport,
    ConnectionStatus,
    EndBehavior,
)

logger = logging.getLogger(__name__)

OUTCOME_READY = "ready"
OUTCOME_HANG = "hang"
OUTCOME_DISCONNECT = "disconnect"
OUTCOME_DESTROY = "destroy"


class LoopbackAudioStream(AbstractInboundAudioStream):
    """Queue-backed packet stream for one participant."""

    def __init__(self, participant_id: str, end_behavior: EndBehavior):
        self.participant_id = participant_id
        self.end_behavior = end_behavior
        self.destroyed = False
        self._queue: asyncio.Queue = asyncio.Queue()

    def feed(self, packet: bytes) -> None:
        if not self.destroyed:
            self._queue.put_nowait(packet)

    def end(self) -> None:
        self._queue.put_nowait(None)

    async def __anext__(self) -> bytes:
        if self.destroyed:
            raise StopAsyncIteration
        packet = await self._queue.get()
        if packet is None or self.destroyed:
            raise StopAsyncIteration
        return packet

    def destroy(self) -> None:
        if self.destroyed:
            return
        self.destroyed = True
        # Wake a reader blocked on the queue
        self._queue.put_nowait(None)


class LoopbackReceiver(AbstractAudioReceiver):
    """Receiver whose audio and speaking notifications are driven by the caller."""

    def __init__(self):
        super().__init__()
        self.streams: Dict[str, List[LoopbackAudioStream]] = {}

    def subscribe(self, participant_id: str,
                  end_behavior: EndBehavior = EndBehavior.MANUAL) -> LoopbackAudioStream:
        stream = LoopbackAudioStream(participant_id, end_behavior)
        self.streams.setdefault(participant_id, []).append(stream)
        logger.debug(f"Loopback subscription opened for {participant_id}")
        return stream

    def push_audio(self, participant_id: str, packet: bytes) -> None:
        for stream in self.streams.get(participant_id, []):
            stream.feed(packet)

    def speak(self, participant_id: str, kind: SpeakingEventKind) -> None:
        self._emit_speaking(participant_id, kind)


class LoopbackConnection(AbstractVoiceConnection):
    """Connection handle whose status is set by the transport script."""

    def __init__(self, room_id: str):
        super().__init__(room_id)
        self._receiver = LoopbackReceiver()

    @property
    def receiver(self) -> LoopbackReceiver:
        return self._receiver

    def mark_ready(self) -> None:
        self._set_status(ConnectionStatus.READY)

    def disconnect(self) -> None:
        self._set_status(ConnectionStatus.DISCONNECTED)

    def destroy(self) -> None:
        for streams in self._receiver.streams.values():
            for stream in streams:
                stream.destroy()
        self._set_status(ConnectionStatus.DESTROYED)


class LoopbackTransport(AbstractVoiceTransport):
    """Transport that plays back a scripted outcome for each connect attempt."""

    def __init__(self, outcomes: Optional[Sequence[str]] = None, ready_delay: float = 0.0):
        """Initialize loopback transport.

        Args:
            outcomes: Outcome per attempt ("ready", "hang", "disconnect",
                     "destroy"). Attempts past the end of the script succeed.
            ready_delay: Seconds before the scripted outcome is applied
        """
        self.outcomes = list(outcomes or [])
        self.ready_delay = ready_delay
        self.connections: List[LoopbackConnection] = []

    @property
    def attempts(self) -> int:
        return len(self.connections)

    def connect(self, room_id: str) -> LoopbackConnection:
        connection = LoopbackConnection(room_id)
        index = len(self.connections)
        self.connections.append(connection)
        outcome = self.outcomes[index] if index < len(self.outcomes) else OUTCOME_READY

        loop = asyncio.get_running_loop()
        if outcome == OUTCOME_READY:
            loop.call_later(self.ready_delay, connection.mark_ready)
        elif outcome == OUTCOME_DISCONNECT:
            loop.call_later(self.ready_delay, connection.disconnect)
        elif outcome == OUTCOME_DESTROY:
            loop.call_later(self.ready_delay, connection.destroy)
        elif outcome != OUTCOME_HANG:
            raise ValueError(f"Unknown loopback outcome: {outcome}")

        logger.debug(f"Loopback connect #{index + 1} to room {room_id}: {outcome}")
        return connection

    def connection_for(self, room_id: str) -> Optional[LoopbackConnection]:
        """Most recent connection made to ``room_id``."""
        for connection in reversed(self.connections):
            if connection.room_id == room_id:
                return connection
        return None
