"""Prompt templates for the memory pipeline."""

from typing import Dict, List, Optional

from clio.core.constants import CHUNK_SUMMARY_MAX_CHARS, MAX_KEYWORDS, PLOT_SUMMARY_MAX_CHARS

ANALYSIS_PROMPT = """You are assisting with collaborative fiction. Analyze the conversation below and decide whether it should be condensed into a memory chunk.

Conversation:
{transcript}

Story genre: {genre}
Known characters: {characters}

Assess:
1. importance: a score from 0 to 1
2. shouldCreateChunk: true if the conversation reached a natural break, otherwise false
3. plotPoint: one of beginning, development, conflict, climax, resolution, twist
4. emotion: one of positive, negative, neutral, tense, romantic, sad, surprised
5. newCharacters: names of characters that appear for the first time
6. keywords: at most {max_keywords} keywords

Respond with ONLY a JSON object like:
{{"importance": 0.6, "shouldCreateChunk": false, "plotPoint": "development", "emotion": "tense", "newCharacters": ["Mira"], "keywords": ["heist", "rooftop"]}}
"""

CHUNK_SUMMARY_PROMPT = """Summarize the following {genre}story conversation in at most {max_chars} characters.

Conversation:
{transcript}

Story background: {description}
Known characters: {characters}

Cover the main event, what the characters did or said, and how the plot moved.

Summary:"""

PLOT_SUMMARY_PROMPT = """Based on the story fragments below, describe the current state of the story in at most {max_chars} characters.

{summaries}

Cover where the story has got to, the state of the main characters, and the current scene.

Summary:"""


def _characters(characters: List[str]) -> str:
    return ", ".join(characters) if characters else "none"


def build_analysis_messages(
    transcript: str,
    genre: Optional[str],
    characters: List[str],
) -> List[Dict[str, str]]:
    prompt = ANALYSIS_PROMPT.format(
        transcript=transcript,
        genre=genre or "unknown",
        characters=_characters(characters),
        max_keywords=MAX_KEYWORDS,
    )
    return [{"role": "user", "content": prompt}]


def build_chunk_summary_messages(
    transcript: str,
    genre: Optional[str],
    description: Optional[str],
    characters: List[str],
) -> List[Dict[str, str]]:
    prompt = CHUNK_SUMMARY_PROMPT.format(
        transcript=transcript,
        genre=f"{genre} " if genre else "",
        description=description or "",
        characters=_characters(characters),
        max_chars=CHUNK_SUMMARY_MAX_CHARS,
    )
    return [{"role": "user", "content": prompt}]


def build_plot_summary_messages(summaries: str) -> List[Dict[str, str]]:
    prompt = PLOT_SUMMARY_PROMPT.format(summaries=summaries, max_chars=PLOT_SUMMARY_MAX_CHARS)
    return [{"role": "user", "content": prompt}]


def truncate(text: str, max_chars: int) -> str:
    """Trim text to ``max_chars``, preferring a word boundary."""
    text = " ".join(text.split())
    if len(text) <= max_chars:
        return text
    cut = text[:max_chars]
    space = cut.rfind(" ")
    if space > max_chars // 2:
        cut = cut[:space]
    return cut.rstrip(" ,;:")
