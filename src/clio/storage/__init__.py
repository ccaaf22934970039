"""Vector store registry and factory.

Backends register a loader here; ``create_vector_store`` picks one from
settings once at startup.
"""

from typing import TYPE_CHECKING, Callable, Dict, Tuple

from loguru import logger

from clio.storage.base import VectorStore
from clio.storage.memory_store import InMemoryVectorStore, cosine_similarity
from clio.utils.exceptions import ConfigurationError

if TYPE_CHECKING:
    from clio.config.settings import StorageSettings


# Maps backend name -> (loader_func, is_available)
_BACKENDS: Dict[str, Tuple[Callable[["StorageSettings"], VectorStore], bool]] = {}


def register_backend(
    name: str,
    loader: Callable[["StorageSettings"], VectorStore],
    available: bool = True,
) -> None:
    """Register a vector store backend.

    Args:
        name: Backend identifier (e.g., "memory", "chroma")
        loader: Factory function that takes StorageSettings and returns a VectorStore
        available: Whether the backend's dependencies are installed
    """
    _BACKENDS[name] = (loader, available)
    logger.debug(f"Registered vector store '{name}' (available={available})")


def get_available_backends() -> Dict[str, bool]:
    """Get mapping of backend names to their availability status."""
    return {name: avail for name, (_, avail) in _BACKENDS.items()}


def create_vector_store(settings: "StorageSettings") -> VectorStore:
    """Create the vector store selected by settings.

    Raises:
        ConfigurationError: If the backend is unknown or unavailable
    """
    backend_name = settings.backend

    if backend_name not in _BACKENDS:
        raise ConfigurationError(
            f"Unknown vector store '{backend_name}'. "
            f"Available backends: {list(_BACKENDS)}"
        )

    loader, available = _BACKENDS[backend_name]
    if not available:
        raise ConfigurationError(
            f"Vector store '{backend_name}' is not available. "
            f"Required dependencies may not be installed."
        )

    logger.info(f"Creating vector store: {backend_name}")
    return loader(settings)


# =============================================================================
# Backend Registration
# =============================================================================

register_backend("memory", lambda settings: InMemoryVectorStore())


def _load_chroma(settings: "StorageSettings") -> VectorStore:
    from clio.storage.chroma_store import ChromaVectorStore
    return ChromaVectorStore(settings=settings)


def _load_supabase(settings: "StorageSettings") -> VectorStore:
    from clio.storage.supabase_store import SupabaseVectorStore
    return SupabaseVectorStore(settings=settings)


from clio.storage.chroma_store import CHROMADB_AVAILABLE  # noqa: E402

register_backend("chroma", _load_chroma, available=CHROMADB_AVAILABLE)

try:
    import supabase  # noqa: F401
    register_backend("supabase", _load_supabase, available=True)
except ImportError:
    register_backend("supabase", _load_supabase, available=False)
    logger.debug("supabase backend unavailable (supabase not installed)")


__all__ = [
    "VectorStore",
    "InMemoryVectorStore",
    "cosine_similarity",
    "register_backend",
    "get_available_backends",
    "create_vector_store",
]
