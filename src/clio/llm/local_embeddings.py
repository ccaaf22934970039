"""Local embeddings via sentence-transformers."""

import asyncio
from typing import List, Optional

from loguru import logger

from clio.core.constants import LOCAL_EMBEDDING_DIMENSIONS, LOCAL_EMBEDDING_MODEL
from clio.llm.base import EmbeddingProvider
from clio.utils.exceptions import ConfigurationError, UpstreamGenerationError

try:
    from sentence_transformers import SentenceTransformer
    TRANSFORMERS_AVAILABLE = True
except ImportError:
    TRANSFORMERS_AVAILABLE = False


class SentenceTransformerEmbeddingProvider(EmbeddingProvider):
    """Embeds text with a local SentenceTransformer model."""

    def __init__(
        self,
        model: str = LOCAL_EMBEDDING_MODEL,
        dimensions: int = LOCAL_EMBEDDING_DIMENSIONS,
        encoder: Optional["SentenceTransformer"] = None,
    ):
        """
        Load the encoder unless one is injected.

        Raises:
            ConfigurationError: If sentence-transformers is missing or the
                model's vector length differs from ``dimensions``
        """
        super().__init__(model, dimensions)
        if encoder is None:
            if not TRANSFORMERS_AVAILABLE:
                raise ConfigurationError(
                    "sentence-transformers is required for local embeddings. "
                    "Install with: pip install sentence-transformers"
                )
            logger.info(f"Loading embedding model: {model}")
            encoder = SentenceTransformer(model)
            native = encoder.get_sentence_embedding_dimension()
            if native is not None and native != dimensions:
                raise ConfigurationError(
                    f"Embedding model {model} produces {native}-dim vectors "
                    f"but embedding.dimensions is {dimensions}"
                )
        self.encoder = encoder

    async def embed(self, text: str) -> List[float]:
        # Encoding is CPU-bound, keep it off the event loop
        try:
            vector = await asyncio.to_thread(self._encode_sync, text)
        except Exception as e:
            raise UpstreamGenerationError(f"Local embedding failed: {e}") from e
        return self._check_dimensions(vector)

    def _encode_sync(self, text: str) -> List[float]:
        return [float(x) for x in self.encoder.encode(text)]
