"""Memory engine constants.

These constants define the defaults for chunk formation and retrieval.
Settings models read their defaults from here.
"""

# Chunk formation
DEFAULT_CHUNK_THRESHOLD = 8
"""Pending message count that forces a chunk to form."""

DEFAULT_IMPORTANCE = 0.5
"""Importance used when the analyzer cannot score a buffer."""

ORIGIN_CHUNK_IMPORTANCE = 0.9
"""Importance of the chunk created from a session's initial system message."""

MAX_KEYWORDS = 5
"""Maximum keywords kept from one analysis."""

CHUNK_SUMMARY_MAX_CHARS = 50
"""Maximum length of a chunk synopsis."""

# Retrieval
DEFAULT_TOP_K = 5
DEFAULT_MIN_SIMILARITY = 0.7
RECENT_CHUNK_COUNT = 2
"""Most recent chunks (by chunk index) always included in a retrieval."""

MAX_ACTIVE_CHARACTERS = 10

PLOT_SUMMARY_MAX_CHARS = 100
"""Maximum length of the synthesized "current story state" synopsis."""

PLOT_SUMMARY_PLACEHOLDER = "The story is in progress"
STORY_START_PLACEHOLDER = "The story has just begun"

# Labels used when the analyzer falls back
FALLBACK_PLOT_POINT = "development"
FALLBACK_EMOTION = "neutral"
ORIGIN_PLOT_POINT = "beginning"

# Embeddings
OPENAI_EMBEDDING_MODEL = "text-embedding-3-small"
OPENAI_EMBEDDING_DIMENSIONS = 1536

LOCAL_EMBEDDING_MODEL = "all-MiniLM-L6-v2"
LOCAL_EMBEDDING_DIMENSIONS = 384
"""Defaults applied when the sentence-transformers provider is selected."""
