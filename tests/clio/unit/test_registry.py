"""Tests for SessionRegistry and the session stores."""

from unittest.mock import AsyncMock

import pytest

from clio.core.buffer import PendingBuffer
from clio.core.models import CreateSessionRequest, MemoryChunk, PendingMessage
from clio.core.registry import InMemorySessionStore, JsonSessionStore, SessionRegistry
from clio.utils.exceptions import BackendError


@pytest.fixture
def registry(vector_store):
    return SessionRegistry(vector_store, PendingBuffer())


class TestSessionRegistry:
    """Tests for SessionRegistry."""

    def test_create_zeroes_counters(self, registry):
        """New sessions have zeroed counters and the description as outline."""
        session = registry.create(
            CreateSessionRequest(title="Heist", description="A vault job", genre="crime", tags=["noir"])
        )
        assert session.total_chunks == 0
        assert session.total_messages == 0
        assert session.plot_outline == "A vault job"
        assert session.tags == ["noir"]
        assert registry.get(session.id) is session

    def test_get_unknown(self, registry):
        """Unknown ids return None."""
        assert registry.get("missing") is None

    def test_record_message(self, registry):
        """Each message bumps the message and token counters."""
        session = registry.create(CreateSessionRequest(title="Heist"))
        registry.record_message(session, PendingMessage(role="user", content="hi", token_count=5))
        registry.record_message(session, PendingMessage(role="user", content="hi", token_count=3))
        assert session.total_messages == 2
        assert session.total_tokens == 8

    def test_record_chunk(self, registry):
        """A recorded chunk advances counters and merges characters."""
        session = registry.create(CreateSessionRequest(title="Heist"))
        session.characters = ["Ada"]
        chunk = MemoryChunk(session_id=session.id, chunk_index=0, content="", summary="The plan")

        registry.record_chunk(session, chunk, ["Bo", "Ada"])

        assert session.total_chunks == 1
        assert session.current_chunk == 0
        assert session.last_summary == "The plan"
        assert session.characters == ["Ada", "Bo"]

    @pytest.mark.asyncio
    async def test_delete_cascades(self, registry, vector_store):
        """Deleting a session removes its chunks and its record."""
        session = registry.create(CreateSessionRequest(title="Heist"))
        await vector_store.upsert(
            MemoryChunk(session_id=session.id, chunk_index=0, content="", summary="x", embedding=[1.0])
        )

        assert await registry.delete(session.id) is True
        assert registry.get(session.id) is None
        assert await vector_store.count(session.id) == 0

    @pytest.mark.asyncio
    async def test_delete_unknown(self, registry):
        """Deleting an unknown session returns False."""
        assert await registry.delete("missing") is False

    @pytest.mark.asyncio
    async def test_delete_keeps_session_when_chunks_fail(self, vector_store):
        """A failed chunk deletion leaves the session in place."""
        vector_store.delete_session = AsyncMock(side_effect=BackendError("memory", "delete_session", "down"))
        registry = SessionRegistry(vector_store, PendingBuffer())
        session = registry.create(CreateSessionRequest(title="Heist"))

        with pytest.raises(BackendError):
            await registry.delete(session.id)

        assert registry.get(session.id) is session

    def test_discard(self, registry):
        """discard forgets a half-created session."""
        session = registry.create(CreateSessionRequest(title="Heist"))
        registry.discard(session.id)
        assert registry.get(session.id) is None


class TestSessionStores:
    """Tests for the session store implementations."""

    def test_in_memory_store(self):
        """The in-memory store saves, lists and removes sessions."""
        store = InMemorySessionStore()
        registry = SessionRegistry(AsyncMock(), PendingBuffer(), store)
        session = registry.create(CreateSessionRequest(title="Heist"))
        assert store.list_ids() == [session.id]
        assert store.remove(session.id) is True
        assert store.remove(session.id) is False

    def test_json_store_persists(self, temp_dir):
        """Sessions written by one store are readable by a fresh one."""
        store = JsonSessionStore(temp_dir / "sessions")
        registry = SessionRegistry(AsyncMock(), PendingBuffer(), store)
        session = registry.create(CreateSessionRequest(title="Heist", genre="crime"))
        registry.record_message(session, PendingMessage(role="user", content="hello there"))

        reopened = JsonSessionStore(temp_dir / "sessions")
        loaded = reopened.load(session.id)

        assert loaded is not None
        assert loaded.title == "Heist"
        assert loaded.total_messages == 1
        assert reopened.list_ids() == [session.id]

    def test_json_store_remove(self, temp_dir):
        """Removing a session deletes its file."""
        store = JsonSessionStore(temp_dir)
        registry = SessionRegistry(AsyncMock(), PendingBuffer(), store)
        session = registry.create(CreateSessionRequest(title="Heist"))

        assert store.remove(session.id) is True
        assert store.load(session.id) is None
        assert not (temp_dir / f"session_{session.id}.json").exists()
