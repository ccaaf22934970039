"""Pytest configuration and fixtures for Clio tests."""

import tempfile
from pathlib import Path
from typing import Dict, Generator, List, Optional, Union

import pytest

from clio.config.settings import (
    ChunkingSettings,
    LLMSettings,
    LoggingSettings,
    RetrievalSettings,
    Settings,
    StorageSettings,
)
from clio.core.engine import SessionMemoryEngine
from clio.llm.base import CompletionProvider, EmbeddingProvider
from clio.storage.memory_store import InMemoryVectorStore
from clio.utils.exceptions import UpstreamGenerationError

Reply = Union[str, Exception]


class FakeCompletionProvider(CompletionProvider):
    """
    Answers each prompt template with a canned reply.

    A reply may be an exception instance, which is raised instead.
    """

    def __init__(
        self,
        analysis: Reply = '{"importance": 0.4, "shouldCreateChunk": false}',
        summary: Reply = "The crew plans the heist",
        plot_summary: Reply = "The crew is closing in on the vault",
    ):
        self.analysis = analysis
        self.summary = summary
        self.plot_summary = plot_summary
        self.calls: List[str] = []

    async def chat_completion(
        self,
        messages: List[Dict[str, str]],
        max_tokens: Optional[int] = None,
        temperature: Optional[float] = None,
    ) -> str:
        prompt = messages[-1]["content"]
        if "Respond with ONLY a JSON object" in prompt:
            kind, reply = "analysis", self.analysis
        elif prompt.startswith("Summarize the following"):
            kind, reply = "summary", self.summary
        else:
            kind, reply = "plot_summary", self.plot_summary

        self.calls.append(kind)
        if isinstance(reply, Exception):
            raise reply
        return reply


class FakeEmbeddingProvider(EmbeddingProvider):
    """Returns a fixed vector per text, or a default vector."""

    def __init__(
        self,
        dimensions: int = 3,
        vectors: Optional[Dict[str, List[float]]] = None,
        default: Optional[List[float]] = None,
    ):
        super().__init__("fake-embedding", dimensions)
        self.vectors = vectors or {}
        self.default = default or [1.0] + [0.0] * (dimensions - 1)
        self.fail = False
        self.calls: List[str] = []

    async def embed(self, text: str) -> List[float]:
        self.calls.append(text)
        if self.fail:
            raise UpstreamGenerationError("embedding service unavailable")
        return self._check_dimensions(list(self.vectors.get(text, self.default)))


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for tests."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def test_settings(temp_dir: Path) -> Settings:
    """Create test settings with in-memory storage and temporary paths."""
    return Settings(
        storage=StorageSettings(
            backend="memory",
            persist_directory=str(temp_dir / "chunks"),
            session_store="memory",
            session_directory=str(temp_dir / "sessions"),
        ),
        llm=LLMSettings(api_key="test-key"),
        chunking=ChunkingSettings(message_threshold=8),
        retrieval=RetrievalSettings(top_k=5, min_similarity=0.7, recent_count=2),
        logging=LoggingSettings(level="DEBUG"),
    )


@pytest.fixture
def fake_llm() -> FakeCompletionProvider:
    return FakeCompletionProvider()


@pytest.fixture
def fake_embedder() -> FakeEmbeddingProvider:
    return FakeEmbeddingProvider()


@pytest.fixture
def vector_store() -> InMemoryVectorStore:
    return InMemoryVectorStore()


@pytest.fixture
def engine(
    fake_llm: FakeCompletionProvider,
    fake_embedder: FakeEmbeddingProvider,
    vector_store: InMemoryVectorStore,
    test_settings: Settings,
) -> SessionMemoryEngine:
    """Engine wired to fakes and the in-memory vector store."""
    return SessionMemoryEngine(
        llm=fake_llm,
        embedder=fake_embedder,
        vector_store=vector_store,
        settings=test_settings,
    )
