"""Session registry: one recording session per room, with guarded start and stop."""

import asyncio
import logging
from typing import Callable, Dict, Iterable, List, Optional, Any

from ..audio.capture import ParticipantCapture
from ..audio.consolidator import SegmentConsolidator
from ..audio.speaking_pub import SPEAKING_TOPIC, SpeakingPublisher, now_ms
from ..audio.tracker import SpeakingActivityTracker
from ..errors import AlreadyActiveError, SessionNotFoundError
from ..models.audio import ParticipantFile
from ..models.results import StopResult
from ..models.session import Participant, Session, SessionStatus
from ..storage.file_manager import FileManager
from ..transport.decoder import AbstractAudioDecoder, PcmPassthroughDecoder
from .connection_manager import ConnectionManager

logger = logging.getLogger(__name__)


class SessionRegistry:
    """Owns every active session, keyed by room id.

    Start and stop for the same room never interleave. Stop always releases
    every resource the session owns and always removes the session, even when
    individual capture pipelines failed.
    """

    def __init__(self,
                 connection_manager: ConnectionManager,
                 file_manager: FileManager,
                 decoder_factory: Callable[[], AbstractAudioDecoder] = PcmPassthroughDecoder,
                 consolidator: Optional[SegmentConsolidator] = None,
                 flush_grace_ms: int = 100,
                 clock: Callable[[], int] = now_ms,
                 topic: str = SPEAKING_TOPIC):
        """Initialize session registry.

        Args:
            connection_manager: Opens ready room connections
            file_manager: Creates per-session scratch directories
            decoder_factory: Builds one decoder per captured participant
            consolidator: Turns the event log into segments on stop
            flush_grace_ms: Wait after closing writers before inspecting files
            clock: Returns the current time in epoch milliseconds
            topic: Pub/sub topic for speaking events
        """
        self.connection_manager = connection_manager
        self.file_manager = file_manager
        self.decoder_factory = decoder_factory
        self.consolidator = consolidator or SegmentConsolidator()
        self.flush_grace_ms = flush_grace_ms
        self.clock = clock
        self.topic = topic

        self._sessions: Dict[str, Session] = {}
        self._publishers: Dict[str, SpeakingPublisher] = {}
        self._locks: Dict[str, asyncio.Lock] = {}

    def _lock_for(self, room_id: str) -> asyncio.Lock:
        lock = self._locks.get(room_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[room_id] = lock
        return lock

    def is_active(self, room_id: str) -> bool:
        return room_id in self._sessions

    def active_rooms(self) -> List[str]:
        return list(self._sessions.keys())

    def get_session(self, room_id: str) -> Optional[Session]:
        return self._sessions.get(room_id)

    def get_status(self, room_id: str) -> Optional[Dict[str, Any]]:
        """Get a summary of the active session in a room, or None."""
        session = self._sessions.get(room_id)
        if session is None:
            return None
        return {
            "room_id": room_id,
            "status": session.status.value,
            "start_time": session.start_time,
            "duration": self.clock() - session.start_time,
            "participants": [p.display_name for p in session.participants.values()],
            "speaking_events": len(session.speaking_events),
            "captures": {pid: capture.get_capture_stats() for pid, capture in session.captures.items()},
        }

    async def start(self, room_id: str, participants: Iterable[Participant]) -> Session:
        """Connect to a room and start capturing every non-bot participant.

        Raises:
            AlreadyActiveError: If the room is already recording or starting
            VoiceConnectionError: If no ready connection could be established
        """
        lock = self._lock_for(room_id)
        if room_id in self._sessions or lock.locked():
            raise AlreadyActiveError(f"Already recording in room {room_id}", details={"room_id": room_id})

        async with lock:
            if room_id in self._sessions:
                raise AlreadyActiveError(f"Already recording in room {room_id}", details={"room_id": room_id})

            connection = await self.connection_manager.connect(room_id)
            session = self._new_session(room_id, connection)
            try:
                self._start_captures(session, participants)
            except Exception:
                await self._abandon_session(session)
                raise

            self._sessions[room_id] = session
            logger.info(f"Started recording in room {room_id} with {len(session.captures)} participants")
            return session

    def _new_session(self, room_id: str, connection) -> Session:
        start_time = self.clock()
        try:
            scratch_dir = self.file_manager.create_session_directory(room_id, start_time)
        except Exception:
            connection.destroy()
            raise
        return Session(
            room_id=room_id,
            start_time=start_time,
            scratch_dir=scratch_dir,
            connection=connection,
            tracker=SpeakingActivityTracker(room_id, self.topic),
        )

    def _start_captures(self, session: Session, participants: Iterable[Participant]) -> None:
        receiver = session.connection.receiver
        for participant in participants:
            if participant.bot:
                continue
            session.participants[participant.id] = participant
            capture = ParticipantCapture(participant, receiver, self.decoder_factory(), session.scratch_dir,
                                         clock=self.clock)
            session.captures[participant.id] = capture
            capture.start()

        publisher = SpeakingPublisher(session.room_id, self.topic, self.clock)
        receiver.add_speaking_listener(publisher.on_speaking)
        self._publishers[session.room_id] = publisher

    async def _abandon_session(self, session: Session) -> None:
        """Release a session that failed to open; nothing it wrote is kept."""
        room_id = session.room_id
        for capture in session.captures.values():
            await capture.close()
        session.tracker.detach()
        self._publishers.pop(room_id, None)
        try:
            session.connection.destroy()
        except Exception as e:
            logger.warning(f"Error destroying connection for room {room_id}: {e}")
        self.file_manager.cleanup_temp_dir(session.scratch_dir)
        session.status = SessionStatus.CLOSED
        logger.warning(f"Start aborted for room {room_id}; scratch directory removed")

    async def stop(self, room_id: str) -> StopResult:
        """Stop the session in a room and release everything it owns.

        Raises:
            SessionNotFoundError: If the room has no active session
        """
        if room_id not in self._sessions:
            raise SessionNotFoundError(f"No active recording in room {room_id}", details={"room_id": room_id})

        async with self._lock_for(room_id):
            session = self._sessions.get(room_id)
            if session is None:
                raise SessionNotFoundError(f"No active recording in room {room_id}", details={"room_id": room_id})

            try:
                return await self._close_session(session)
            finally:
                self._sessions.pop(room_id, None)
                self._publishers.pop(room_id, None)
                session.status = SessionStatus.CLOSED
                logger.info(f"Session for room {room_id} removed")

    async def _close_session(self, session: Session) -> StopResult:
        room_id = session.room_id
        session.status = SessionStatus.STOPPING
        end_time = self.clock()

        capture_errors: Dict[str, str] = {}
        for participant_id, capture in session.captures.items():
            close_errors = await capture.close()
            if capture.error is not None:
                capture_errors[participant_id] = str(capture.error)
            elif close_errors:
                capture_errors[participant_id] = "; ".join(close_errors)

        # Let the filesystem settle before sizes are read
        await asyncio.sleep(self.flush_grace_ms / 1000)

        participant_files = self._collect_files(session)

        publisher = self._publishers.get(room_id)
        receiver = None
        try:
            receiver = session.connection.receiver
        except Exception as e:
            logger.warning(f"Receiver unavailable while stopping room {room_id}: {e}")
        if publisher is not None and receiver is not None:
            receiver.remove_speaking_listener(publisher.on_speaking)
        session.tracker.detach()

        try:
            session.connection.destroy()
        except Exception as e:
            logger.warning(f"Error destroying connection for room {room_id}: {e}")

        segments = self.consolidator.consolidate(session.tracker.snapshot(), session.start_time,
                                                 session.participants)

        logger.info(f"Stopped recording in room {room_id}: {len(participant_files)} files, "
                    f"{len(segments)} segments, {len(capture_errors)} capture errors")

        return StopResult(
            room_id=room_id,
            start_time=session.start_time,
            end_time=end_time,
            duration=end_time - session.start_time,
            scratch_dir=session.scratch_dir,
            participants=list(session.participants.values()),
            segments=segments,
            participant_files=participant_files,
            capture_errors=capture_errors,
        )

    @staticmethod
    def _collect_files(session: Session) -> List[ParticipantFile]:
        files = []
        for participant_id, capture in session.captures.items():
            size = capture.file_size()
            if size == 0:
                logger.debug(f"No audio from {participant_id}; file omitted")
                continue
            participant = session.participants[participant_id]
            files.append(ParticipantFile(
                participant_id=participant_id,
                username=participant.username,
                display_name=participant.display_name,
                filepath=capture.filepath,
                filename=capture.filename,
                file_size=size,
                frames=list(capture.frame_index.frames),
            ))
        return files
