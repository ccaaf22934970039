"""ChromaDB-backed chunk storage."""

from __future__ import annotations

import json
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING, Any, Dict, List, Optional

try:
    import chromadb
    from chromadb.config import Settings as ChromaSettings
    CHROMADB_AVAILABLE = True
except ImportError:
    CHROMADB_AVAILABLE = False

from loguru import logger

from clio.core.models import ChunkMetadata, MemoryChunk, VectorSearchQuery
from clio.storage.base import VectorStore
from clio.utils.exceptions import ConfigurationError

if TYPE_CHECKING:
    from clio.config.settings import StorageSettings


class ChromaVectorStore(VectorStore):
    """
    Chunk storage in a ChromaDB collection.

    Uses cosine space and a ``session_id`` metadata filter for nearest
    neighbour queries. Talks to a Chroma server when ``chroma_host`` is
    configured, otherwise persists locally. Search results do not carry
    embeddings.
    """

    backend_name = "chroma"

    def __init__(
        self,
        settings: Optional[StorageSettings] = None,
        client: Optional[Any] = None,
    ):
        """
        Initialize the chunk store.

        Args:
            settings: StorageSettings instance (loaded from env if None)
            client: Pre-built Chroma client (overrides settings)
        """
        if not CHROMADB_AVAILABLE:
            raise ConfigurationError(
                "chromadb is required for ChromaVectorStore. "
                "Install with: pip install chromadb"
            )

        if settings is None:
            from clio.config.settings import StorageSettings
            settings = StorageSettings()

        if client is None:
            client = self._create_client(settings)
        self.client = client

        self.collection = self.client.get_or_create_collection(
            name=settings.collection_name,
            metadata={"hnsw:space": "cosine", "description": "Session memory chunks"},
            embedding_function=None,
        )
        logger.info(f"Chroma chunk store ready (collection {settings.collection_name})")

    @staticmethod
    def _create_client(settings: StorageSettings) -> Any:
        chroma_settings = ChromaSettings(anonymized_telemetry=False)
        if settings.chroma_host:
            logger.info(f"Connecting to Chroma at {settings.chroma_host}:{settings.chroma_port}")
            return chromadb.HttpClient(
                host=settings.chroma_host,
                port=settings.chroma_port,
                settings=chroma_settings,
            )

        persist_directory = Path(settings.persist_directory)
        persist_directory.mkdir(parents=True, exist_ok=True)
        return chromadb.PersistentClient(path=str(persist_directory), settings=chroma_settings)

    async def upsert(self, chunk: MemoryChunk) -> None:
        await self._run("upsert", self._upsert_sync, chunk)

    async def search(
        self, query: VectorSearchQuery, embedding: List[float]
    ) -> List[MemoryChunk]:
        return await self._run("search", self._search_sync, query, embedding)

    async def recent(self, session_id: str, count: int) -> List[MemoryChunk]:
        if count <= 0:
            return []
        return await self._run("recent", self._recent_sync, session_id, count)

    async def delete(self, chunk_id: str) -> None:
        await self._run("delete", self._delete_sync, chunk_id)

    async def delete_session(self, session_id: str) -> None:
        await self._run("delete_session", self._delete_session_sync, session_id)

    async def count(self, session_id: Optional[str] = None) -> int:
        return await self._run("count", self._count_sync, session_id)

    def _upsert_sync(self, chunk: MemoryChunk) -> None:
        self.collection.upsert(
            ids=[chunk.id],
            embeddings=[chunk.embedding],
            documents=[chunk.content],
            metadatas=[self._to_metadata(chunk)],
        )
        logger.debug(f"Upserted chunk {chunk.id} to {self.collection.name}")

    def _search_sync(
        self, query: VectorSearchQuery, embedding: List[float]
    ) -> List[MemoryChunk]:
        total = self.collection.count()
        if total == 0:
            return []

        results = self.collection.query(
            query_embeddings=[embedding],
            n_results=min(query.top_k, total),
            where={"session_id": query.session_id},
            include=["metadatas", "documents", "distances"],
        )

        scored = []
        for i, chunk_id in enumerate(results["ids"][0]):
            # Cosine space: distance = 1 - similarity
            similarity = 1.0 - results["distances"][0][i]
            if similarity < query.min_similarity:
                continue
            chunk = self._to_chunk(
                chunk_id,
                results["documents"][0][i],
                results["metadatas"][0][i],
            )
            scored.append((chunk, similarity))

        scored.sort(key=lambda item: item[1], reverse=True)
        return [chunk for chunk, _ in scored[: query.top_k]]

    def _recent_sync(self, session_id: str, count: int) -> List[MemoryChunk]:
        result = self.collection.get(
            where={"session_id": session_id},
            include=["metadatas", "documents", "embeddings"],
        )
        embeddings = result.get("embeddings")
        chunks = [
            self._to_chunk(
                chunk_id,
                result["documents"][i],
                result["metadatas"][i],
                embeddings[i] if embeddings is not None else None,
            )
            for i, chunk_id in enumerate(result["ids"])
        ]
        chunks.sort(key=lambda c: c.chunk_index, reverse=True)
        return chunks[:count]

    def _delete_sync(self, chunk_id: str) -> None:
        self.collection.delete(ids=[chunk_id])

    def _delete_session_sync(self, session_id: str) -> None:
        self.collection.delete(where={"session_id": session_id})
        logger.debug(f"Deleted chunks for session {session_id} from {self.collection.name}")

    def _count_sync(self, session_id: Optional[str]) -> int:
        if session_id is None:
            return self.collection.count()
        result = self.collection.get(where={"session_id": session_id}, include=[])
        return len(result["ids"])

    @staticmethod
    def _to_metadata(chunk: MemoryChunk) -> Dict[str, Any]:
        """Flatten a chunk into Chroma metadata (scalars only, no None)."""
        metadata: Dict[str, Any] = {
            "session_id": chunk.session_id,
            "chunk_index": chunk.chunk_index,
            "summary": chunk.summary,
            "message_count": chunk.message_count,
            "characters": json.dumps(chunk.characters),
            "keywords": json.dumps(chunk.keywords),
            "importance": chunk.importance,
            "created_at": chunk.created_at.isoformat(),
        }
        for key, value in chunk.metadata.to_dict().items():
            if value is not None:
                metadata[key] = value
        return metadata

    @staticmethod
    def _to_chunk(
        chunk_id: str,
        document: Optional[str],
        metadata: Dict[str, Any],
        embedding: Optional[Any] = None,
    ) -> MemoryChunk:
        """Convert a Chroma record back to a MemoryChunk."""
        return MemoryChunk(
            id=chunk_id,
            session_id=metadata["session_id"],
            chunk_index=int(metadata["chunk_index"]),
            content=document or "",
            summary=metadata.get("summary", ""),
            embedding=[float(x) for x in embedding] if embedding is not None else [],
            message_count=int(metadata.get("message_count", 0)),
            characters=json.loads(metadata.get("characters", "[]")),
            keywords=json.loads(metadata.get("keywords", "[]")),
            importance=metadata.get("importance", 0.5),
            metadata=ChunkMetadata.from_dict(metadata),
            created_at=datetime.fromisoformat(metadata["created_at"]),
        )
