"""Tests for the ChromaDB chunk store."""

import pytest

pytest.importorskip("chromadb")

from clio.config.settings import StorageSettings
from clio.core.models import ChunkMetadata, MemoryChunk, VectorSearchQuery
from clio.storage.chroma_store import ChromaVectorStore


@pytest.fixture
def chroma_store(temp_dir):
    """Create a ChromaVectorStore persisting to a temp directory."""
    settings = StorageSettings(
        backend="chroma",
        persist_directory=str(temp_dir / "chroma"),
        collection_name="test_chunks",
    )
    return ChromaVectorStore(settings=settings)


def make_chunk(session_id: str, index: int, embedding) -> MemoryChunk:
    return MemoryChunk(
        session_id=session_id,
        chunk_index=index,
        content=f"user: message {index}",
        summary=f"summary {index}",
        embedding=embedding,
        message_count=2,
        characters=["Ada", "Bo"],
        keywords=["vault"],
        importance=0.6,
        metadata=ChunkMetadata(genre="crime", emotion="tense"),
    )


class TestChromaVectorStore:
    """Tests for ChromaVectorStore against a local persistent client."""

    @pytest.mark.asyncio
    async def test_upsert_and_recent_round_trip(self, chroma_store):
        """Stored chunks come back with their fields intact."""
        chunk = make_chunk("s1", 0, [1.0, 0.0, 0.0])
        await chroma_store.upsert(chunk)

        [restored] = await chroma_store.recent("s1", 5)

        assert restored.id == chunk.id
        assert restored.summary == "summary 0"
        assert restored.characters == ["Ada", "Bo"]
        assert restored.keywords == ["vault"]
        assert restored.metadata.genre == "crime"
        assert restored.metadata.plot_point is None
        assert restored.embedding == pytest.approx([1.0, 0.0, 0.0])

    @pytest.mark.asyncio
    async def test_search_scoped_and_filtered(self, chroma_store):
        """Search respects session scope and min_similarity."""
        near = make_chunk("s1", 0, [1.0, 0.0, 0.0])
        far = make_chunk("s1", 1, [0.0, 1.0, 0.0])
        other = make_chunk("s2", 0, [1.0, 0.0, 0.0])
        for chunk in (near, far, other):
            await chroma_store.upsert(chunk)

        results = await chroma_store.search(
            VectorSearchQuery(session_id="s1", top_k=5, min_similarity=0.7),
            [1.0, 0.0, 0.0],
        )

        assert [c.id for c in results] == [near.id]

    @pytest.mark.asyncio
    async def test_recent_and_count(self, chroma_store):
        """recent orders by chunk index; count is per session."""
        for i in range(3):
            await chroma_store.upsert(make_chunk("s1", i, [1.0, float(i), 0.0]))

        recent = await chroma_store.recent("s1", 2)

        assert [c.chunk_index for c in recent] == [2, 1]
        assert await chroma_store.count("s1") == 3
        assert await chroma_store.count("s2") == 0

    @pytest.mark.asyncio
    async def test_delete_session(self, chroma_store):
        """delete_session removes every chunk of the session."""
        for i in range(2):
            await chroma_store.upsert(make_chunk("s1", i, [1.0, 0.0, 0.0]))
        await chroma_store.upsert(make_chunk("s2", 0, [1.0, 0.0, 0.0]))

        await chroma_store.delete_session("s1")

        assert await chroma_store.count("s1") == 0
        assert await chroma_store.count("s2") == 1
        assert await chroma_store.search(
            VectorSearchQuery(session_id="s1", min_similarity=0.0), [1.0, 0.0, 0.0]
        ) == []
