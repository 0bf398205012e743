"""Session-related data models."""

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Dict, List

from .events import SpeakingEvent

if TYPE_CHECKING:
    from ..audio.capture import ParticipantCapture
    from ..audio.tracker import SpeakingActivityTracker


class SessionStatus(Enum):
    """Recording session lifecycle states."""
    ACTIVE = "active"
    STOPPING = "stopping"
    CLOSED = "closed"


@dataclass(frozen=True)
class Participant:
    """A member of the voice room."""
    id: str
    display_name: str
    username: str
    bot: bool = False


@dataclass
class Session:
    """One active recording in one room."""
    room_id: str
    start_time: int  # Epoch milliseconds
    scratch_dir: str
    connection: Any
    tracker: "SpeakingActivityTracker"
    status: SessionStatus = SessionStatus.ACTIVE
    participants: Dict[str, Participant] = field(default_factory=dict)
    captures: Dict[str, "ParticipantCapture"] = field(default_factory=dict)

    @property
    def speaking_events(self) -> List[SpeakingEvent]:
        return self.tracker.events
