"""Session registry: owns session metadata and counters."""

import json
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, List, Optional

from loguru import logger

from clio.core.buffer import PendingBuffer
from clio.core.models import (
    CreateSessionRequest,
    MemoryChunk,
    PendingMessage,
    SessionInfo,
    merge_unique,
)
from clio.storage.base import VectorStore


class SessionStore(ABC):
    """Backing store for session records."""

    @abstractmethod
    def load(self, session_id: str) -> Optional[SessionInfo]:
        pass

    @abstractmethod
    def save(self, session: SessionInfo) -> None:
        pass

    @abstractmethod
    def remove(self, session_id: str) -> bool:
        pass

    @abstractmethod
    def list_ids(self) -> List[str]:
        pass


class InMemorySessionStore(SessionStore):
    """Sessions held in a dict for the lifetime of the process."""

    def __init__(self):
        self._sessions: Dict[str, SessionInfo] = {}

    def load(self, session_id: str) -> Optional[SessionInfo]:
        return self._sessions.get(session_id)

    def save(self, session: SessionInfo) -> None:
        self._sessions[session.id] = session

    def remove(self, session_id: str) -> bool:
        return self._sessions.pop(session_id, None) is not None

    def list_ids(self) -> List[str]:
        return list(self._sessions)


class JsonSessionStore(SessionStore):
    """
    One JSON file per session in a directory.

    Loaded sessions are cached, so repeated lookups within a process return
    the same object and only writes touch the disk.
    """

    def __init__(self, directory: Path):
        self.directory = Path(directory)
        self.directory.mkdir(parents=True, exist_ok=True)
        self._cache: Dict[str, SessionInfo] = {}

    def _path(self, session_id: str) -> Path:
        return self.directory / f"session_{session_id}.json"

    def load(self, session_id: str) -> Optional[SessionInfo]:
        if session_id in self._cache:
            return self._cache[session_id]

        path = self._path(session_id)
        if not path.exists():
            return None

        session = SessionInfo.from_dict(json.loads(path.read_text()))
        self._cache[session_id] = session
        return session

    def save(self, session: SessionInfo) -> None:
        self._path(session.id).write_text(json.dumps(session.to_dict(), indent=2))
        self._cache[session.id] = session

    def remove(self, session_id: str) -> bool:
        self._cache.pop(session_id, None)
        path = self._path(session_id)
        if not path.exists():
            return False
        path.unlink()
        return True

    def list_ids(self) -> List[str]:
        return sorted(
            p.stem[len("session_"):] for p in self.directory.glob("session_*.json")
        )


class SessionRegistry:
    """
    Creates, looks up and deletes sessions, and applies counter updates.

    Deletion cascades to the vector store before the record is removed, so a
    failed chunk deletion leaves the session in place rather than orphaning
    its chunks.
    """

    def __init__(
        self,
        vector_store: VectorStore,
        buffer: PendingBuffer,
        store: Optional[SessionStore] = None,
    ):
        self.vector_store = vector_store
        self.buffer = buffer
        self.store = store or InMemorySessionStore()

    def create(self, request: CreateSessionRequest) -> SessionInfo:
        """Register a new session with zeroed counters."""
        session = SessionInfo(
            title=request.title,
            description=request.description,
            genre=request.genre,
            tags=list(request.tags),
            plot_outline=request.description or "",
        )
        self.store.save(session)
        self.buffer.open(session.id)
        logger.info(f"Created session {session.id} ({session.title})")
        return session

    def get(self, session_id: str) -> Optional[SessionInfo]:
        return self.store.load(session_id)

    def list_ids(self) -> List[str]:
        return self.store.list_ids()

    async def delete(self, session_id: str) -> bool:
        """
        Delete a session and all of its chunks.

        Returns:
            True if the session existed and was deleted, False if unknown

        Raises:
            BackendError: If chunk deletion fails (the session is kept)
        """
        if self.store.load(session_id) is None:
            return False

        await self.vector_store.delete_session(session_id)
        self.buffer.drop(session_id)
        self.store.remove(session_id)
        logger.info(f"Deleted session {session_id}")
        return True

    def discard(self, session_id: str) -> None:
        """Forget a session that never finished creation."""
        self.buffer.drop(session_id)
        self.store.remove(session_id)

    def record_message(self, session: SessionInfo, message: PendingMessage) -> None:
        """Count an ingested message."""
        session.total_messages += 1
        session.total_tokens += message.token_count
        session.touch()
        self.store.save(session)

    def record_chunk(
        self,
        session: SessionInfo,
        chunk: MemoryChunk,
        new_characters: List[str],
    ) -> None:
        """Advance counters after a chunk has been persisted."""
        session.characters = merge_unique(session.characters, new_characters)
        session.total_chunks += 1
        session.current_chunk = session.total_chunks - 1
        session.last_summary = chunk.summary
        session.touch()
        self.store.save(session)
