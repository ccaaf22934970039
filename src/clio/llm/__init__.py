"""Model collaborators: text completion and embeddings.

Use the factories to build providers from settings:

    from clio.llm import create_completion_provider, create_embedding_provider
    llm = create_completion_provider(settings.llm)
    embedder = create_embedding_provider(settings.embedding, settings.llm)
"""

from typing import TYPE_CHECKING

from loguru import logger

from clio.llm.base import CompletionProvider, EmbeddingProvider
from clio.utils.exceptions import ConfigurationError

if TYPE_CHECKING:
    from clio.config.settings import EmbeddingSettings, LLMSettings


def create_completion_provider(settings: "LLMSettings") -> CompletionProvider:
    """Create the completion provider described by settings.

    Raises:
        ConfigurationError: If no API key is configured
    """
    if not settings.api_key:
        raise ConfigurationError("CLIO_LLM_API_KEY is required")

    from clio.llm.openai_provider import OpenAICompletionProvider

    logger.info(f"Using completion model {settings.model} at {settings.base_url}")
    return OpenAICompletionProvider(
        api_key=settings.api_key,
        model=settings.model,
        base_url=settings.base_url,
        temperature=settings.temperature,
    )


def create_embedding_provider(
    settings: "EmbeddingSettings",
    llm_settings: "LLMSettings",
) -> EmbeddingProvider:
    """Create the embedding provider described by settings.

    OpenAI embeddings reuse the LLM key and endpoint unless overridden.

    Raises:
        ConfigurationError: If the provider cannot be configured
    """
    if settings.provider == "sentence-transformers":
        from clio.llm.local_embeddings import SentenceTransformerEmbeddingProvider

        return SentenceTransformerEmbeddingProvider(
            model=settings.model,
            dimensions=settings.dimensions,
        )

    api_key = settings.api_key or llm_settings.api_key
    if not api_key:
        raise ConfigurationError("An API key is required for OpenAI embeddings")

    from clio.llm.openai_provider import OpenAIEmbeddingProvider

    logger.info(f"Using embedding model {settings.model} ({settings.dimensions} dims)")
    return OpenAIEmbeddingProvider(
        api_key=api_key,
        model=settings.model,
        dimensions=settings.dimensions,
        base_url=settings.base_url or llm_settings.base_url,
    )


__all__ = [
    "CompletionProvider",
    "EmbeddingProvider",
    "create_completion_provider",
    "create_embedding_provider",
]
