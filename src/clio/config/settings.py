"""Pydantic settings models for Clio configuration."""

from typing import Literal, Optional, Tuple, Type

from pydantic import Field, model_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    TomlConfigSettingsSource,
)

from clio.core.constants import (
    DEFAULT_CHUNK_THRESHOLD,
    DEFAULT_MIN_SIMILARITY,
    DEFAULT_TOP_K,
    LOCAL_EMBEDDING_DIMENSIONS,
    LOCAL_EMBEDDING_MODEL,
    MAX_ACTIVE_CHARACTERS,
    OPENAI_EMBEDDING_DIMENSIONS,
    OPENAI_EMBEDDING_MODEL,
    RECENT_CHUNK_COUNT,
)


class StorageSettings(BaseSettings):
    """Vector store and session store configuration."""

    backend: Literal["memory", "chroma", "supabase"] = Field(
        default="memory",
        description="Vector store backend, fixed for the lifetime of the process",
    )
    collection_name: str = Field(
        default="memory_chunks",
        description="Chroma collection or Supabase table holding chunks",
    )

    # Chroma
    persist_directory: str = Field(
        default="./data/chunks",
        description="Directory for local ChromaDB persistence",
    )
    chroma_host: Optional[str] = Field(
        default=None,
        description="Chroma server host; when set, an HTTP client is used instead of local persistence",
    )
    chroma_port: int = Field(default=8000, ge=1, le=65535)

    # Supabase
    supabase_url: str = Field(default="", description="Supabase project URL")
    supabase_key: str = Field(default="", description="Supabase API key")
    search_function: str = Field(
        default="search_memory_chunks",
        description="Server-side similarity search function (Supabase RPC)",
    )

    # Sessions
    session_store: Literal["memory", "json"] = Field(
        default="memory",
        description="Where session metadata lives: process memory or JSON files",
    )
    session_directory: str = Field(
        default="./data/sessions",
        description="Directory for JSON session files",
    )

    model_config = SettingsConfigDict(env_prefix="CLIO_STORAGE_")


class LLMSettings(BaseSettings):
    """Text-completion provider configuration (OpenAI-compatible API)."""

    api_key: str = Field(default="", description="API key for the completion provider")
    base_url: str = Field(
        default="https://openrouter.ai/api/v1",
        description="Base URL of the OpenAI-compatible endpoint",
    )
    model: str = Field(default="qwen/qwen3-14b:free")
    temperature: float = Field(default=0.3, ge=0.0, le=2.0)
    analysis_max_tokens: int = Field(default=300, ge=1)
    summary_max_tokens: int = Field(default=100, ge=1)
    plot_summary_max_tokens: int = Field(default=150, ge=1)

    model_config = SettingsConfigDict(env_prefix="CLIO_LLM_")


class EmbeddingSettings(BaseSettings):
    """Embedding provider configuration.

    ``model`` and ``dimensions`` default to the selected provider's model, so
    switching to sentence-transformers alone yields a consistent 384-dim setup.
    """

    provider: Literal["openai", "sentence-transformers"] = Field(default="openai")
    model: str = Field(
        default=OPENAI_EMBEDDING_MODEL,
        description="Embedding model identifier",
    )
    dimensions: int = Field(
        default=OPENAI_EMBEDDING_DIMENSIONS,
        ge=1,
        description="Vector length; must match what the vector store expects",
    )
    api_key: Optional[str] = Field(
        default=None,
        description="API key for OpenAI embeddings (defaults to the LLM key)",
    )
    base_url: Optional[str] = Field(
        default=None,
        description="Embeddings endpoint (defaults to the LLM base URL)",
    )

    model_config = SettingsConfigDict(env_prefix="CLIO_EMBEDDING_")

    @model_validator(mode="after")
    def apply_provider_defaults(self) -> "EmbeddingSettings":
        if self.provider == "sentence-transformers":
            if "model" not in self.model_fields_set:
                self.model = LOCAL_EMBEDDING_MODEL
            if "dimensions" not in self.model_fields_set:
                self.dimensions = LOCAL_EMBEDDING_DIMENSIONS
        return self


class ChunkingSettings(BaseSettings):
    """Chunk formation configuration."""

    message_threshold: int = Field(
        default=DEFAULT_CHUNK_THRESHOLD,
        ge=1,
        description="Pending message count that forces a chunk to form",
    )

    model_config = SettingsConfigDict(env_prefix="CLIO_CHUNKING_")


class RetrievalSettings(BaseSettings):
    """Memory retrieval configuration."""

    top_k: int = Field(default=DEFAULT_TOP_K, ge=1, le=100)
    min_similarity: float = Field(
        default=DEFAULT_MIN_SIMILARITY,
        ge=-1.0,
        le=1.0,
        description="Minimum cosine similarity for a chunk to count as relevant",
    )
    recent_count: int = Field(
        default=RECENT_CHUNK_COUNT,
        ge=0,
        description="Most recent chunks always included regardless of similarity",
    )
    max_characters: int = Field(default=MAX_ACTIVE_CHARACTERS, ge=0)

    model_config = SettingsConfigDict(env_prefix="CLIO_RETRIEVAL_")


class LoggingSettings(BaseSettings):
    """Logging configuration."""

    level: str = Field(
        default="INFO",
        description="Log level (DEBUG, INFO, WARNING, ERROR)",
    )
    quiet: bool = Field(
        default=False,
        description="Suppress stderr output (used when running as subprocess)",
    )

    model_config = SettingsConfigDict(env_prefix="CLIO_LOGGING_")


class Settings(BaseSettings):
    """Root configuration for Clio."""

    storage: StorageSettings = Field(default_factory=StorageSettings)
    llm: LLMSettings = Field(default_factory=LLMSettings)
    embedding: EmbeddingSettings = Field(default_factory=EmbeddingSettings)
    chunking: ChunkingSettings = Field(default_factory=ChunkingSettings)
    retrieval: RetrievalSettings = Field(default_factory=RetrievalSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    model_config = SettingsConfigDict(
        toml_file="configs/clio.toml",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: Type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> Tuple[PydanticBaseSettingsSource, ...]:
        """Configure settings sources with TOML support.

        Priority (highest to lowest):
        1. Init settings (constructor arguments)
        2. Environment variables
        3. TOML config file
        4. Default values
        """
        return (
            init_settings,
            env_settings,
            TomlConfigSettingsSource(settings_cls),
        )
