"""LLM-backed classification of pending conversation."""

import json
from typing import Any, Dict, List, Optional

from loguru import logger

from clio.core.constants import (
    DEFAULT_CHUNK_THRESHOLD,
    DEFAULT_IMPORTANCE,
    FALLBACK_EMOTION,
    FALLBACK_PLOT_POINT,
    MAX_KEYWORDS,
)
from clio.core.models import MemoryAnalysis, PendingMessage, SessionInfo, render_transcript
from clio.core.prompts import build_analysis_messages
from clio.llm.base import CompletionProvider
from clio.utils.exceptions import UpstreamGenerationError


class MemoryAnalyzer:
    """
    Scores pending messages and decides whether they form a natural break.

    Never raises: any failure of the completion call or of parsing its reply
    falls back to a deterministic rule based on the buffer length.
    """

    def __init__(
        self,
        llm: CompletionProvider,
        threshold: int = DEFAULT_CHUNK_THRESHOLD,
        temperature: float = 0.3,
        max_tokens: int = 300,
    ):
        self.llm = llm
        self.threshold = threshold
        self.temperature = temperature
        self.max_tokens = max_tokens

    async def analyze(
        self,
        messages: List[PendingMessage],
        session: SessionInfo,
        threshold: Optional[int] = None,
    ) -> MemoryAnalysis:
        """
        Classify the pending buffer.

        Args:
            messages: Pending messages, oldest first
            session: Session the messages belong to (genre and cast)
            threshold: Buffer length used by the fallback rule

        Returns:
            MemoryAnalysis with importance clamped to [0, 1]
        """
        threshold = threshold or self.threshold
        prompt = build_analysis_messages(
            render_transcript(messages), session.genre, session.characters
        )

        try:
            reply = await self.llm.chat_completion(
                prompt, max_tokens=self.max_tokens, temperature=self.temperature
            )
            analysis = parse_analysis(reply)
        except UpstreamGenerationError as e:
            logger.warning(f"Analysis failed for session {session.id}, using fallback: {e}")
            return fallback_analysis(len(messages), threshold)

        logger.debug(
            f"Analysis for session {session.id}: importance={analysis.importance:.2f} "
            f"cut={analysis.should_create_chunk}"
        )
        return analysis


def fallback_analysis(buffer_length: int, threshold: int) -> MemoryAnalysis:
    """Deterministic analysis used when the LLM cannot be consulted."""
    return MemoryAnalysis(
        should_create_chunk=buffer_length >= threshold,
        importance=DEFAULT_IMPORTANCE,
        plot_point=FALLBACK_PLOT_POINT,
        emotion=FALLBACK_EMOTION,
        new_characters=[],
        keywords=[],
        source="fallback",
    )


def _field(data: Dict[str, Any], camel: str, snake: str, default: Any = None) -> Any:
    if camel in data:
        return data[camel]
    return data.get(snake, default)


def _string_list(value: Any, name: str) -> List[str]:
    if value is None:
        return []
    if not isinstance(value, list):
        raise UpstreamGenerationError(f"Analysis field {name} is not a list")
    return [str(item).strip() for item in value if str(item).strip()]


def _optional_string(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def parse_analysis(reply: str) -> MemoryAnalysis:
    """
    Parse the JSON object in an analysis reply.

    Raises:
        UpstreamGenerationError: If no usable JSON object is found
    """
    start = reply.find("{")
    end = reply.rfind("}") + 1
    if start < 0 or end <= start:
        raise UpstreamGenerationError("No JSON object in analysis reply")

    try:
        data = json.loads(reply[start:end])
    except json.JSONDecodeError as e:
        raise UpstreamGenerationError(f"Malformed analysis JSON: {e}") from e
    if not isinstance(data, dict):
        raise UpstreamGenerationError("Analysis reply is not a JSON object")

    importance = _field(data, "importance", "importance", DEFAULT_IMPORTANCE)
    if importance is None:
        importance = DEFAULT_IMPORTANCE
    try:
        importance = float(importance)
    except (TypeError, ValueError) as e:
        raise UpstreamGenerationError(f"Importance is not a number: {importance!r}") from e

    should_cut = _field(data, "shouldCreateChunk", "should_create_chunk", False)
    if isinstance(should_cut, str):
        should_cut = should_cut.strip().lower() == "true"

    return MemoryAnalysis(
        should_create_chunk=bool(should_cut),
        importance=importance,
        plot_point=_optional_string(_field(data, "plotPoint", "plot_point")),
        emotion=_optional_string(data.get("emotion")),
        new_characters=_string_list(_field(data, "newCharacters", "new_characters"), "newCharacters"),
        keywords=_string_list(data.get("keywords"), "keywords")[:MAX_KEYWORDS],
        source="llm",
    )
