"""Speaking-notification publisher for the pub/sub event channel."""

import logging
import time
from typing import Callable

from pubsub import pub

from ..models.events import SpeakingEvent, SpeakingEventKind

logger = logging.getLogger(__name__)

SPEAKING_TOPIC = "voice.speaking"


def now_ms() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


class SpeakingPublisher:
    """Stamps receiver speaking notifications and publishes them with pubsub.pub."""

    def __init__(self, room_id: str, topic: str = SPEAKING_TOPIC, clock: Callable[[], int] = now_ms):
        """Initialize speaking publisher.

        Args:
            room_id: Room whose receiver feeds this publisher
            topic: Pub/sub topic name for speaking events
            clock: Returns the current time in epoch milliseconds
        """
        self.room_id = room_id
        self.topic = topic
        self.clock = clock
        logger.info(f"SpeakingPublisher for room {room_id} publishing to topic: {topic}")

    def on_speaking(self, participant_id: str, kind: SpeakingEventKind) -> None:
        """Receiver listener: publish one start/end notification."""
        event = SpeakingEvent(
            room_id=self.room_id,
            participant_id=participant_id,
            kind=kind,
            timestamp=self.clock(),
        )
        pub.sendMessage(self.topic, event=event)
        logger.debug(f"User {participant_id} {kind.value} speaking at {event.timestamp}")
