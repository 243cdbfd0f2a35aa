"""Conversation context analysis.

Decides whether a greeting is needed and summarises what the conversation has
covered so far. Blank history needs no service call.
"""

from typing import Any, Optional

from recipe_guard.models.models import ContextResponse, ConversationContext
from recipe_guard.prompts.prompts import CONTEXT_INSTRUCTIONS, build_context_prompt
from recipe_guard.tools.generation import TextGenerator, safe_execute_async
from recipe_guard.utils.config import config
from recipe_guard.utils.logger import logger
from recipe_guard.utils.normalizer import normalize_sequence

ALLOWED_TONES = frozenset({"friendly", "formal", "casual", "technical", "mixed"})

FIRST_MESSAGE_CONTEXT = ConversationContext(
    is_first_message=True,
    previous_topics=(),
    recent_changes=(),
    tone="friendly",
    greeting_needed=True,
)
FOLLOW_UP_CONTEXT = ConversationContext()


def _as_sequence(value: Any) -> tuple[str, ...]:
    if isinstance(value, (str, list, tuple)):
        return tuple(normalize_sequence(value))
    return ()


def _as_bool(value: Any) -> bool:
    return value if isinstance(value, bool) else False


def parse_context_response(data: dict[str, Any]) -> ConversationContext:
    """Build a context from the service JSON, defaulting every mistyped or missing field."""
    tone = data.get("conversation_tone")
    tone = tone.strip().lower() if isinstance(tone, str) else ""
    return ConversationContext(
        is_first_message=_as_bool(data.get("is_first_message")),
        previous_topics=_as_sequence(data.get("previous_topics")),
        recent_changes=_as_sequence(data.get("recent_changes")),
        tone=tone if tone in ALLOWED_TONES else "friendly",
        greeting_needed=_as_bool(data.get("greeting_needed")),
    )


class ContextAnalyzer:
    def __init__(self, generator: TextGenerator, model: Optional[str] = None) -> None:
        self.generator = generator
        self.model = model or config.CLASSIFIER_MODEL

    async def analyze(self, history: str) -> ConversationContext:
        """Context for the conversation so far. Never raises on service failure."""
        if not history or not history.strip():
            return FIRST_MESSAGE_CONTEXT

        data = await safe_execute_async(
            self.generator.generate(
                build_context_prompt(history),
                CONTEXT_INSTRUCTIONS,
                ContextResponse,
                model=self.model,
            ),
            "Conversation context analysis",
            default_return=None,
        )
        if not isinstance(data, dict):
            return FOLLOW_UP_CONTEXT

        context = parse_context_response(data)
        logger.debug(f"Context: tone={context.tone} greeting_needed={context.greeting_needed}")
        return context
