"""Per-session queue of messages not yet condensed into a chunk."""

from typing import Dict, List

from loguru import logger

from clio.core.models import PendingMessage


class PendingBuffer:
    """
    Holds pending messages per session, in arrival order.

    Not persisted. Callers serialize access per session; the buffer itself
    does no locking.
    """

    def __init__(self):
        self._pending: Dict[str, List[PendingMessage]] = {}

    def open(self, session_id: str) -> None:
        """Start an empty buffer for a session."""
        self._pending.setdefault(session_id, [])

    def append(self, session_id: str, message: PendingMessage) -> List[PendingMessage]:
        """Append a message and return a snapshot of the buffer."""
        pending = self._pending.setdefault(session_id, [])
        pending.append(message)
        return list(pending)

    def peek(self, session_id: str) -> List[PendingMessage]:
        return list(self._pending.get(session_id, []))

    def drain(self, session_id: str) -> List[PendingMessage]:
        """Swap the buffer for an empty one and return what it held."""
        drained = self._pending.get(session_id, [])
        self._pending[session_id] = []
        return drained

    def restore(self, session_id: str, messages: List[PendingMessage]) -> None:
        """Put drained messages back in front of anything queued since."""
        if not messages:
            return
        self._pending[session_id] = list(messages) + self._pending.get(session_id, [])
        logger.debug(f"Restored {len(messages)} pending messages for session {session_id}")

    def drop(self, session_id: str) -> None:
        self._pending.pop(session_id, None)

    def size(self, session_id: str) -> int:
        return len(self._pending.get(session_id, []))
