"""Connection supervision: wait for a room connection to become ready, with bounded retries."""

import asyncio
import logging
from enum import Enum
from typing import Optional

from ..errors import ConnectionFailureKind, VoiceConnectionError
from ..transport.base import AbstractVoiceConnection, AbstractVoiceTransport, ConnectionStatus

logger = logging.getLogger(__name__)


class ConnectionState(Enum):
    """Lifecycle of one ConnectionManager.connect() call."""
    IDLE = "idle"
    CONNECTING = "connecting"
    READY = "ready"
    FAILED = "failed"


class ConnectionManager:
    """Establishes and supervises the transport connection to one voice room."""

    def __init__(self,
                 transport: AbstractVoiceTransport,
                 timeout: float = 15.0,
                 max_retries: int = 2,
                 retry_delay: float = 2.0):
        """Initialize connection manager.

        Args:
            transport: Transport capability used to open connections
            timeout: Seconds an attempt may stay in CONNECTING
            max_retries: Extra attempts allowed after a timeout
            retry_delay: Seconds to wait before each retry
        """
        self.transport = transport
        self.timeout = timeout
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.state = ConnectionState.IDLE

    async def connect(self, room_id: str) -> AbstractVoiceConnection:
        """Connect to a room and return the ready handle.

        Raises:
            VoiceConnectionError: When the attempt fails fatally or every
                retry timed out
        """
        attempt = 0
        while True:
            attempt += 1
            self.state = ConnectionState.IDLE
            logger.info(f"Connecting to room {room_id} (attempt {attempt}/{self.max_retries + 1})")
            try:
                connection = await self._attempt(room_id)
            except VoiceConnectionError as e:
                e.attempts = attempt
                logger.error(f"Failed to connect to room {room_id} (attempt {attempt}): {e}")
                if not e.retryable or attempt > self.max_retries:
                    self.state = ConnectionState.FAILED
                    raise
                logger.info(f"Retrying connection to room {room_id} in {self.retry_delay}s...")
                await asyncio.sleep(self.retry_delay)
                continue

            self.state = ConnectionState.READY
            logger.info(f"Connection ready for room {room_id}")
            return connection

    async def _attempt(self, room_id: str) -> AbstractVoiceConnection:
        self.state = ConnectionState.CONNECTING
        connection = self.transport.connect(room_id)
        loop = asyncio.get_running_loop()
        ready: asyncio.Future = loop.create_future()

        def on_status(status: ConnectionStatus) -> None:
            if ready.done():
                return
            if status is ConnectionStatus.READY:
                ready.set_result(None)
            elif status is ConnectionStatus.DISCONNECTED:
                ready.set_exception(VoiceConnectionError(
                    "Connection failed - disconnected", ConnectionFailureKind.DISCONNECTED))
            elif status is ConnectionStatus.DESTROYED:
                ready.set_exception(VoiceConnectionError(
                    "Connection failed - destroyed", ConnectionFailureKind.DESTROYED))
            else:
                logger.info(f"Voice connection {status.value} for room {room_id}")

        connection.add_status_listener(on_status)
        # The handle may already have settled before the listener was attached
        on_status(connection.status)
        try:
            await asyncio.wait_for(ready, timeout=self.timeout)
        except asyncio.TimeoutError:
            logger.error(f"Voice connection timeout after {self.timeout}s. "
                         f"Current status: {connection.status.value}")
            connection.remove_status_listener(on_status)
            self._discard(connection)
            raise VoiceConnectionError(
                "Voice connection timeout - voice servers may be unavailable",
                ConnectionFailureKind.TIMEOUT)
        except VoiceConnectionError:
            connection.remove_status_listener(on_status)
            self._discard(connection)
            raise

        connection.remove_status_listener(on_status)
        return connection

    @staticmethod
    def _discard(connection: Optional[AbstractVoiceConnection]) -> None:
        if connection is None or connection.status is ConnectionStatus.DESTROYED:
            return
        try:
            connection.destroy()
        except Exception as e:
            logger.warning(f"Error destroying failed connection: {e}")
