"""Speaking activity tracker.

Subscribes to the speaking topic and appends every notification for its room
to an append-only log. Nothing is paired or validated here; that happens once,
after the session stops, in the segment consolidator.
"""

import logging
from typing import List

from pubsub import pub

from ..models.events import SpeakingEvent
from .speaking_pub import SPEAKING_TOPIC

logger = logging.getLogger(__name__)


class SpeakingActivityTracker:
    """Session-scoped, append-only log of speaking events."""

    def __init__(self, room_id: str, topic: str = SPEAKING_TOPIC):
        """Initialize speaking activity tracker.

        Args:
            room_id: Only events for this room are recorded
            topic: Topic for speaking events
        """
        self.room_id = room_id
        self.topic = topic

        # Arrival order, never reordered or pruned
        self.events: List[SpeakingEvent] = []

        pub.subscribe(self._on_event, topic)
        self.attached = True

        logger.info(f"SpeakingActivityTracker for room {room_id} subscribed to {topic}")

    def _on_event(self, event: SpeakingEvent) -> None:
        """Handle a speaking notification."""
        if not self.attached or event.room_id != self.room_id:
            return
        self.events.append(event)

    def detach(self) -> None:
        """Stop listening; the log keeps what was recorded so far."""
        if not self.attached:
            return
        self.attached = False
        try:
            pub.unsubscribe(self._on_event, self.topic)
        except Exception as e:
            logger.warning(f"Error during unsubscribe: {e}")
        logger.info(f"Tracker for room {self.room_id} detached with {len(self.events)} events")

    def snapshot(self) -> List[SpeakingEvent]:
        """Copy of the log for a batch pass."""
        return list(self.events)

    def __len__(self) -> int:
        return len(self.events)
