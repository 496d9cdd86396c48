"""Process-wide map of recording sessions by channel."""

import logging
import threading
from collections.abc import Callable

from voice_recorder.core.session import RecordingSession
from voice_recorder.exceptions import AlreadyActiveError, NoActiveSessionError

logger = logging.getLogger(__name__)


class SessionRegistry:
    """Holds at most one recording session per channel.

    begin() and end() are serialized by a lock so racing start triggers on
    the same channel can never create two sessions. A session stays
    registered while it drains, mixes and uploads, so a new start on that
    channel fails fast until end() is called.
    """

    def __init__(self) -> None:
        self._sessions: dict[str, RecordingSession] = {}
        self._lock = threading.Lock()

    def begin(
        self,
        channel_id: str,
        factory: Callable[[], RecordingSession],
    ) -> RecordingSession:
        """Create and register a session for the channel.

        Args:
            channel_id: Registry key.
            factory: Builds the session; called while holding the lock, so
                it must not block.

        Raises:
            AlreadyActiveError: If the channel already has a session.
        """
        with self._lock:
            if channel_id in self._sessions:
                raise AlreadyActiveError(channel_id)
            session = factory()
            self._sessions[channel_id] = session
        logger.debug("Registered session for channel %s", channel_id)
        return session

    def get(self, channel_id: str) -> RecordingSession:
        """Return the channel's session.

        Raises:
            NoActiveSessionError: If the channel has none.
        """
        with self._lock:
            try:
                return self._sessions[channel_id]
            except KeyError:
                raise NoActiveSessionError(channel_id) from None

    def end(self, channel_id: str) -> None:
        """Remove the channel's session; no-op if absent."""
        with self._lock:
            removed = self._sessions.pop(channel_id, None)
        if removed is not None:
            logger.debug("Removed session for channel %s", channel_id)

    def channel_ids(self) -> list[str]:
        with self._lock:
            return list(self._sessions)

    def __contains__(self, channel_id: object) -> bool:
        with self._lock:
            return channel_id in self._sessions

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)
