"""Speaking activity events and the intervals derived from them."""

from dataclasses import dataclass
from enum import Enum


class SpeakingEventKind(Enum):
    """Voice activity notification type."""
    START = "start"
    END = "end"


@dataclass(frozen=True)
class SpeakingEvent:
    """A timestamped start/end notification for one participant."""
    room_id: str
    participant_id: str
    kind: SpeakingEventKind
    timestamp: int  # Epoch milliseconds when the notification arrived


@dataclass(frozen=True)
class RawInterval:
    """A paired (start, end) derived from two speaking events."""
    participant_id: str
    start: int
    end: int

    @property
    def duration(self) -> int:
        return self.end - self.start


@dataclass(frozen=True)
class ConsolidatedSegment:
    """A merged, duration-filtered speech interval."""
    participant_id: str
    display_name: str
    username: str
    start: int
    end: int
    duration: int
    relative_start: int  # Milliseconds from session start
    relative_end: int

    def to_dict(self) -> dict:
        return {
            "participant_id": self.participant_id,
            "display_name": self.display_name,
            "username": self.username,
            "start": self.start,
            "end": self.end,
            "duration": self.duration,
            "relative_start": self.relative_start,
            "relative_end": self.relative_end,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "ConsolidatedSegment":
        return cls(
            participant_id=str(data["participant_id"]),
            display_name=data.get("display_name", ""),
            username=data.get("username", ""),
            start=int(data["start"]),
            end=int(data["end"]),
            duration=int(data["duration"]),
            relative_start=int(data["relative_start"]),
            relative_end=int(data["relative_end"]),
        )
