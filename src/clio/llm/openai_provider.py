"""OpenAI-compatible completion and embedding providers."""

from typing import Any, Dict, List, Optional

from loguru import logger
from openai import AsyncOpenAI

from clio.core.constants import OPENAI_EMBEDDING_DIMENSIONS, OPENAI_EMBEDDING_MODEL
from clio.llm.base import CompletionProvider, EmbeddingProvider
from clio.utils.exceptions import UpstreamGenerationError


class OpenAICompletionProvider(CompletionProvider):
    """Chat completions over any OpenAI-compatible endpoint (OpenRouter by default)."""

    def __init__(
        self,
        api_key: str,
        model: str,
        base_url: Optional[str] = None,
        temperature: float = 0.3,
        client: Optional[Any] = None,
    ):
        self.model = model
        self.temperature = temperature
        self.client = client or AsyncOpenAI(api_key=api_key, base_url=base_url)

    async def chat_completion(
        self,
        messages: List[Dict[str, str]],
        max_tokens: Optional[int] = None,
        temperature: Optional[float] = None,
    ) -> str:
        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                messages=messages,
                max_tokens=max_tokens,
                temperature=self.temperature if temperature is None else temperature,
            )
        except Exception as e:
            logger.debug(f"Completion request to {self.model} failed: {e}")
            raise UpstreamGenerationError(f"Completion failed: {e}") from e

        content = response.choices[0].message.content if response.choices else None
        if not content or not content.strip():
            raise UpstreamGenerationError(f"Completion from {self.model} was empty")
        return content.strip()


class OpenAIEmbeddingProvider(EmbeddingProvider):
    """Embeddings from the OpenAI embeddings API."""

    def __init__(
        self,
        api_key: str,
        model: str = OPENAI_EMBEDDING_MODEL,
        dimensions: int = OPENAI_EMBEDDING_DIMENSIONS,
        base_url: Optional[str] = None,
        client: Optional[Any] = None,
    ):
        super().__init__(model, dimensions)
        self.client = client or AsyncOpenAI(api_key=api_key, base_url=base_url)

    async def embed(self, text: str) -> List[float]:
        try:
            response = await self.client.embeddings.create(model=self.model, input=text)
            vector = list(response.data[0].embedding)
        except Exception as e:
            raise UpstreamGenerationError(f"Embedding failed: {e}") from e
        return self._check_dimensions(vector)
