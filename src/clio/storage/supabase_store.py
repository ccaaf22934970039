"""Supabase (Postgres + pgvector) chunk storage.

Chunks live in a table keyed by chunk id. Similarity ranking is delegated to
a server-side SQL function (see ``sql/memory_chunks.sql``) called over RPC,
so the database does the vector math and only the top matches travel back.
"""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from loguru import logger
from supabase import create_client

from clio.core.models import MemoryChunk, VectorSearchQuery
from clio.storage.base import VectorStore
from clio.utils.exceptions import ConfigurationError

if TYPE_CHECKING:
    from clio.config.settings import StorageSettings


class SupabaseVectorStore(VectorStore):
    """Durable chunk storage in a Supabase ``memory_chunks`` table."""

    backend_name = "supabase"

    def __init__(
        self,
        settings: Optional[StorageSettings] = None,
        client: Optional[Any] = None,
    ):
        """
        Initialize the chunk store.

        Args:
            settings: StorageSettings instance (loaded from env if None)
            client: Pre-built Supabase client (overrides settings)
        """
        if settings is None:
            from clio.config.settings import StorageSettings
            settings = StorageSettings()

        self.table = settings.collection_name
        self.search_function = settings.search_function

        if client is None:
            if not settings.supabase_url or not settings.supabase_key:
                raise ConfigurationError(
                    "CLIO_STORAGE_SUPABASE_URL and CLIO_STORAGE_SUPABASE_KEY are required "
                    "for the supabase backend"
                )
            client = create_client(settings.supabase_url, settings.supabase_key)
        self.client = client
        logger.info(f"Supabase chunk store ready (table {self.table})")

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
        self.client.table(self.table).upsert(chunk.to_dict()).execute()
        logger.debug(f"Upserted chunk {chunk.id} to {self.table}")

    def _search_sync(
        self, query: VectorSearchQuery, embedding: List[float]
    ) -> List[MemoryChunk]:
        response = self.client.rpc(
            self.search_function,
            {
                "query_embedding": embedding,
                "session_id": query.session_id,
                "similarity_threshold": query.min_similarity,
                "match_count": query.top_k,
            },
        ).execute()

        rows = [
            row for row in (response.data or [])
            if row.get("session_id") == query.session_id
            and row.get("similarity", 1.0) >= query.min_similarity
        ]
        rows.sort(key=lambda row: row.get("similarity", 0.0), reverse=True)
        return [self._to_chunk(row) for row in rows[: query.top_k]]

    def _recent_sync(self, session_id: str, count: int) -> List[MemoryChunk]:
        response = (
            self.client.table(self.table)
            .select("*")
            .eq("session_id", session_id)
            .order("chunk_index", desc=True)
            .limit(count)
            .execute()
        )
        return [self._to_chunk(row) for row in response.data or []]

    def _delete_sync(self, chunk_id: str) -> None:
        self.client.table(self.table).delete().eq("id", chunk_id).execute()

    def _delete_session_sync(self, session_id: str) -> None:
        self.client.table(self.table).delete().eq("session_id", session_id).execute()
        logger.debug(f"Deleted chunks for session {session_id} from {self.table}")

    def _count_sync(self, session_id: Optional[str]) -> int:
        request = self.client.table(self.table).select("id", count="exact")
        if session_id is not None:
            request = request.eq("session_id", session_id)
        response = request.execute()
        return response.count or 0

    @staticmethod
    def _to_chunk(row: Dict[str, Any]) -> MemoryChunk:
        """Convert a table row to a MemoryChunk."""
        row = dict(row)
        # pgvector columns come back over PostgREST as "[0.1,0.2,...]" strings
        if isinstance(row.get("embedding"), str):
            row["embedding"] = json.loads(row["embedding"])
        if isinstance(row.get("metadata"), str):
            row["metadata"] = json.loads(row["metadata"])
        return MemoryChunk.from_dict(row)
