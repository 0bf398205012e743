"""Abstract base classes for voice transports and their receivers."""

from abc import ABC, abstractmethod
from enum import Enum
from typing import Callable, List
import logging

from ..models.events import SpeakingEventKind

logger = logging.getLogger(__name__)


class ConnectionStatus(Enum):
    """Signals a voice connection handle can emit."""
    CONNECTING = "connecting"
    READY = "ready"
    DISCONNECTED = "disconnected"
    DESTROYED = "destroyed"


class EndBehavior(Enum):
    """Who decides when an inbound audio stream ends."""
    MANUAL = "manual"  # the subscriber destroys the stream


StatusListener = Callable[[ConnectionStatus], None]
SpeakingListener = Callable[[str, SpeakingEventKind], None]


class AbstractInboundAudioStream(ABC):
    """Encoded audio packets from one participant, as an async iterator."""

    def __aiter__(self) -> "AbstractInboundAudioStream":
        return self

    @abstractmethod
    async def __anext__(self) -> bytes:
        """Return the next packet or raise StopAsyncIteration when the stream ends."""
        pass

    @abstractmethod
    def destroy(self) -> None:
        """Stop delivering packets and release the subscription."""
        pass


class AbstractAudioReceiver(ABC):
    """Receiver capability of a ready connection."""

    def __init__(self):
        self._speaking_listeners: List[SpeakingListener] = []

    @abstractmethod
    def subscribe(self, participant_id: str,
                  end_behavior: EndBehavior = EndBehavior.MANUAL) -> AbstractInboundAudioStream:
        """Open an inbound audio subscription for one participant.

        Args:
            participant_id: Participant whose audio should be delivered
            end_behavior: Whether the stream ends on silence or only when destroyed

        Returns:
            Async iterator of encoded packets
        """
        pass

    def add_speaking_listener(self, listener: SpeakingListener) -> None:
        self._speaking_listeners.append(listener)

    def remove_speaking_listener(self, listener: SpeakingListener) -> None:
        if listener in self._speaking_listeners:
            self._speaking_listeners.remove(listener)

    def _emit_speaking(self, participant_id: str, kind: SpeakingEventKind) -> None:
        for listener in list(self._speaking_listeners):
            listener(participant_id, kind)


class AbstractVoiceConnection(ABC):
    """Handle for one connection attempt to a voice room."""

    def __init__(self, room_id: str):
        self.room_id = room_id
        self.status = ConnectionStatus.CONNECTING
        self._status_listeners: List[StatusListener] = []

    @property
    @abstractmethod
    def receiver(self) -> AbstractAudioReceiver:
        pass

    @abstractmethod
    def destroy(self) -> None:
        """Tear the connection down. Emits DESTROYED."""
        pass

    def add_status_listener(self, listener: StatusListener) -> None:
        self._status_listeners.append(listener)

    def remove_status_listener(self, listener: StatusListener) -> None:
        if listener in self._status_listeners:
            self._status_listeners.remove(listener)

    def _set_status(self, status: ConnectionStatus) -> None:
        if status is self.status:
            return
        logger.debug(f"Connection for room {self.room_id}: {self.status.value} -> {status.value}")
        self.status = status
        for listener in list(self._status_listeners):
            listener(status)


class AbstractVoiceTransport(ABC):
    """Transport capability: opens connections to voice rooms."""

    @abstractmethod
    def connect(self, room_id: str) -> AbstractVoiceConnection:
        """Begin connecting to a room and return the handle immediately.

        Readiness or failure is reported later through the handle's status
        listeners.
        """
        pass
