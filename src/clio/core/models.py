"""Core memory data structures."""

import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional
from uuid import uuid4

from clio.core.constants import DEFAULT_IMPORTANCE, DEFAULT_MIN_SIMILARITY, DEFAULT_TOP_K


def clamp_importance(value: float) -> float:
    """Clamp an importance score into [0, 1]."""
    return max(0.0, min(1.0, float(value)))


def estimate_tokens(text: str) -> int:
    """
    Estimate token count for text.

    This is a rough heuristic - for accurate counts, use a tokenizer.
    """
    # Rough estimate: ~1.3 tokens per word for English
    words = len(text.split())
    return int(words * 1.3)


def merge_unique(existing: List[str], new: List[str]) -> List[str]:
    """Append items from ``new`` not already present, keeping first-seen order."""
    merged = list(existing)
    for item in new:
        if item and item not in merged:
            merged.append(item)
    return merged


@dataclass
class PendingMessage:
    """A conversation message waiting to be condensed into a chunk."""

    role: str
    content: str
    timestamp: float = field(default_factory=time.time)
    token_count: int = 0

    def __post_init__(self) -> None:
        if not self.token_count:
            self.token_count = estimate_tokens(self.content)

    def to_line(self) -> str:
        """Render as a transcript line."""
        return f"{self.role}: {self.content}"

    def to_dict(self) -> Dict[str, Any]:
        """Convert to API format."""
        return {"role": self.role, "content": self.content}


def render_transcript(messages: List[PendingMessage]) -> str:
    """Join messages into a ``role: content`` transcript."""
    return "\n".join(m.to_line() for m in messages)


@dataclass
class ChunkMetadata:
    """Narrative labels attached to a chunk."""

    genre: Optional[str] = None
    emotion: Optional[str] = None
    plot_point: Optional[str] = None

    def to_dict(self) -> Dict[str, Optional[str]]:
        """Convert to dictionary."""
        return {
            "genre": self.genre,
            "emotion": self.emotion,
            "plot_point": self.plot_point,
        }

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "ChunkMetadata":
        """Create from dictionary, accepting camelCase keys from older rows."""
        data = data or {}
        return cls(
            genre=data.get("genre"),
            emotion=data.get("emotion"),
            plot_point=data.get("plot_point", data.get("plotPoint")),
        )


@dataclass(frozen=True)
class MemoryChunk:
    """An immutable, embedded synopsis of a contiguous slice of conversation.

    ``session_id`` is a lookup key into the session registry, not an
    ownership edge.
    """

    session_id: str
    chunk_index: int
    content: str
    summary: str
    embedding: List[float] = field(default_factory=list)
    message_count: int = 0
    characters: List[str] = field(default_factory=list)
    keywords: List[str] = field(default_factory=list)
    importance: float = DEFAULT_IMPORTANCE
    metadata: ChunkMetadata = field(default_factory=ChunkMetadata)
    id: str = field(default_factory=lambda: str(uuid4()))
    created_at: datetime = field(default_factory=datetime.now)

    def __post_init__(self) -> None:
        object.__setattr__(self, "importance", clamp_importance(self.importance))

    def to_dict(self, include_embedding: bool = True) -> Dict[str, Any]:
        """Convert to the persisted row layout."""
        data = {
            "id": self.id,
            "session_id": self.session_id,
            "chunk_index": self.chunk_index,
            "content": self.content,
            "summary": self.summary,
            "message_count": self.message_count,
            "characters": list(self.characters),
            "keywords": list(self.keywords),
            "importance": self.importance,
            "created_at": self.created_at.isoformat(),
            "metadata": self.metadata.to_dict(),
        }
        if include_embedding:
            data["embedding"] = list(self.embedding)
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MemoryChunk":
        """Reconstruct from a persisted row."""
        created_at = data.get("created_at")
        if isinstance(created_at, str):
            created_at = datetime.fromisoformat(created_at.replace("Z", "+00:00"))

        return cls(
            id=data["id"],
            session_id=data["session_id"],
            chunk_index=int(data["chunk_index"]),
            content=data.get("content", ""),
            summary=data.get("summary", ""),
            embedding=[float(x) for x in data.get("embedding") or []],
            message_count=int(data.get("message_count", 0)),
            characters=list(data.get("characters") or []),
            keywords=list(data.get("keywords") or []),
            importance=data.get("importance", DEFAULT_IMPORTANCE),
            metadata=ChunkMetadata.from_dict(data.get("metadata")),
            created_at=created_at or datetime.now(),
        )


@dataclass
class SessionInfo:
    """Metadata and counters for one conversational session.

    Holds counts only, never chunk objects.
    """

    title: str
    description: Optional[str] = None
    genre: Optional[str] = None
    tags: List[str] = field(default_factory=list)
    characters: List[str] = field(default_factory=list)
    plot_outline: str = ""
    current_chunk: int = 0
    total_chunks: int = 0
    total_messages: int = 0
    total_tokens: int = 0
    last_summary: Optional[str] = None
    id: str = field(default_factory=lambda: str(uuid4()))
    created_at: datetime = field(default_factory=datetime.now)
    updated_at: datetime = field(default_factory=datetime.now)

    def touch(self) -> None:
        """Update the modification timestamp."""
        self.updated_at = datetime.now()

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for storage."""
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "genre": self.genre,
            "tags": list(self.tags),
            "characters": list(self.characters),
            "plot_outline": self.plot_outline,
            "current_chunk": self.current_chunk,
            "total_chunks": self.total_chunks,
            "total_messages": self.total_messages,
            "total_tokens": self.total_tokens,
            "last_summary": self.last_summary,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SessionInfo":
        """Reconstruct from dictionary."""
        return cls(
            id=data["id"],
            title=data["title"],
            description=data.get("description"),
            genre=data.get("genre"),
            tags=data.get("tags", []),
            characters=data.get("characters", []),
            plot_outline=data.get("plot_outline", ""),
            current_chunk=data.get("current_chunk", 0),
            total_chunks=data.get("total_chunks", 0),
            total_messages=data.get("total_messages", 0),
            total_tokens=data.get("total_tokens", 0),
            last_summary=data.get("last_summary"),
            created_at=datetime.fromisoformat(data["created_at"]),
            updated_at=datetime.fromisoformat(data["updated_at"]),
        )


@dataclass
class CreateSessionRequest:
    """Parameters for creating a session."""

    title: str
    description: Optional[str] = None
    genre: Optional[str] = None
    tags: List[str] = field(default_factory=list)
    system_message: Optional[str] = None


@dataclass
class MemoryAnalysis:
    """Classification of pending content. Consumed once, never persisted."""

    should_create_chunk: bool = False
    importance: float = DEFAULT_IMPORTANCE
    plot_point: Optional[str] = None
    emotion: Optional[str] = None
    new_characters: List[str] = field(default_factory=list)
    keywords: List[str] = field(default_factory=list)
    # "llm" or "fallback"
    source: str = "llm"

    def __post_init__(self) -> None:
        self.importance = clamp_importance(self.importance)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "should_create_chunk": self.should_create_chunk,
            "importance": self.importance,
            "plot_point": self.plot_point,
            "emotion": self.emotion,
            "new_characters": self.new_characters,
            "keywords": self.keywords,
            "source": self.source,
        }


@dataclass
class VectorSearchQuery:
    """Similarity search request scoped to one session."""

    session_id: str
    top_k: int = DEFAULT_TOP_K
    min_similarity: float = DEFAULT_MIN_SIMILARITY
    query: str = ""


@dataclass
class RetrievalContext:
    """Memory assembled for one query."""

    recent_chunks: List[MemoryChunk] = field(default_factory=list)
    relevant_chunks: List[MemoryChunk] = field(default_factory=list)
    plot_summary: str = ""
    characters: List[str] = field(default_factory=list)
    world_state: str = ""

    @property
    def all_chunks(self) -> List[MemoryChunk]:
        """Recent chunks followed by relevant ones."""
        return self.recent_chunks + self.relevant_chunks

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "recent_chunks": [c.to_dict(include_embedding=False) for c in self.recent_chunks],
            "relevant_chunks": [c.to_dict(include_embedding=False) for c in self.relevant_chunks],
            "plot_summary": self.plot_summary,
            "characters": self.characters,
            "world_state": self.world_state,
        }
