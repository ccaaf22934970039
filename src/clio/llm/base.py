"""Abstract base classes for the model collaborators."""

from abc import ABC, abstractmethod
from typing import Dict, List, Optional

from clio.utils.exceptions import UpstreamGenerationError


class CompletionProvider(ABC):
    """
    Abstract base class for text-completion providers.

    Implementations wrap a chat-completion API and raise
    UpstreamGenerationError when the call fails or yields no text.
    """

    @abstractmethod
    async def chat_completion(
        self,
        messages: List[Dict[str, str]],
        max_tokens: Optional[int] = None,
        temperature: Optional[float] = None,
    ) -> str:
        """
        Generate chat completion asynchronously.

        Args:
            messages: List of chat messages with role and content
            max_tokens: Maximum tokens to generate
            temperature: Sampling temperature

        Returns:
            Generated response text
        """
        pass


class EmbeddingProvider(ABC):
    """
    Abstract base class for embedding providers.

    Every vector returned has exactly ``dimensions`` entries; the vector
    stores rely on this.
    """

    def __init__(self, model: str, dimensions: int):
        self.model = model
        self.dimensions = dimensions

    @abstractmethod
    async def embed(self, text: str) -> List[float]:
        """
        Embed text into a fixed-length vector.

        Args:
            text: Text to embed

        Returns:
            Embedding vector of length ``dimensions``
        """
        pass

    def _check_dimensions(self, vector: List[float]) -> List[float]:
        """Reject vectors whose length differs from the configured size."""
        if len(vector) != self.dimensions:
            raise UpstreamGenerationError(
                f"Embedding model {self.model} returned {len(vector)} dimensions, "
                f"expected {self.dimensions}"
            )
        return vector
