"""Intent classification for incoming user messages.

The text-generation service proposes a label; the classifier then enforces
the conversation-state contract:

- no history and no recipe → a first_message_* label
- a recipe exists → question, modification or clarification

Labels the service gets wrong (unknown, or out of contract) and service
failures fall back to a deterministic heuristic.
"""

import re
from typing import Any, Optional

from recipe_guard.models.models import (
    FIRST_MESSAGE_INTENTS,
    FOLLOW_UP_INTENTS,
    Intent,
    IntentLabel,
    IntentResponse,
)
from recipe_guard.prompts.prompts import CLASSIFICATION_INSTRUCTIONS, build_classification_prompt
from recipe_guard.tools.generation import TextGenerator
from recipe_guard.utils.config import config
from recipe_guard.utils.errors import GenerationError, InvalidInputError
from recipe_guard.utils.logger import logger
from recipe_guard.utils.normalizer import extract_first_url, normalize_text

DEFAULT_CONFIDENCE = 0.8
FALLBACK_CONFIDENCE = 0.5
DEFAULT_REASONING = "Classification completed"

_QUESTION_WORDS = re.compile(
    r"^(how|what|when|where|why|which|who|is|are|can|could|will|would|do|does|should|may)\b", re.IGNORECASE
)
_ACTION_VERBS = re.compile(
    r"\b(add|remove|change|reduce|increase|make|use|replace|swap|substitute|double|halve|skip|"
    r"take out|leave out|convert|scale)\b",
    re.IGNORECASE,
)
_POLITE_REQUEST = re.compile(r"^(please|can you|could you|would you|will you)\b", re.IGNORECASE)
_INGREDIENT_MARKER = re.compile(
    r"\bingredients?\b|^\s*[-*•]?\s*\d+(?:[.,/]\d+)?\s*(?:g|kg|ml|l|tsp|tbsp|cups?|oz|lb)\b",
    re.IGNORECASE | re.MULTILINE,
)
_STEP_MARKER = re.compile(
    r"\b(instructions?|directions?|method|steps?)\b|^\s*(?:step\s*)?\d+[.)]\s+\w",
    re.IGNORECASE | re.MULTILINE,
)


def looks_like_complete_recipe(message: str) -> bool:
    """Long multi-line text with both ingredient and step markers."""
    lines = [line for line in message.splitlines() if line.strip()]
    return len(lines) >= 4 and bool(_INGREDIENT_MARKER.search(message)) and bool(_STEP_MARKER.search(message))


def _is_question(text: str) -> bool:
    return text.endswith("?") or bool(_QUESTION_WORDS.match(text))


def heuristic_label(message: str, first_message: bool) -> IntentLabel:
    """Deterministic label used when the service is unavailable or out of contract."""
    text = message.strip()

    if first_message:
        if extract_first_url(text):
            return IntentLabel.FIRST_MESSAGE_LINK
        if looks_like_complete_recipe(message):
            return IntentLabel.FIRST_MESSAGE_COMPLETE_RECIPE
        if _is_question(text):
            return IntentLabel.FIRST_MESSAGE_QUERY
        return IntentLabel.FIRST_MESSAGE_FREE_TEXT

    if _POLITE_REQUEST.match(text) and _ACTION_VERBS.search(text):
        return IntentLabel.MODIFICATION
    if _is_question(text):
        return IntentLabel.QUESTION
    if _ACTION_VERBS.search(text):
        return IntentLabel.MODIFICATION
    return IntentLabel.CLARIFICATION


def _coerce_confidence(value: Any) -> float:
    if value is None or value == "":
        return DEFAULT_CONFIDENCE
    try:
        confidence = float(value)
    except (TypeError, ValueError):
        return DEFAULT_CONFIDENCE
    return min(max(confidence, 0.0), 1.0)


def _coerce_label(value: Any) -> Optional[IntentLabel]:
    try:
        return IntentLabel(str(value).strip().lower())
    except ValueError:
        return None


class IntentClassifier:
    """Classifies the current message given history and recipe state."""

    def __init__(self, generator: TextGenerator, model: Optional[str] = None) -> None:
        self.generator = generator
        self.model = model or config.CLASSIFIER_MODEL

    def _allowed(self, history: str, recipe_state: str) -> Optional[frozenset]:
        if recipe_state:
            return FOLLOW_UP_INTENTS
        if not history:
            return FIRST_MESSAGE_INTENTS
        return None

    def _finalize(self, label: IntentLabel, confidence: float, reasoning: str, message: str) -> Intent:
        detected_url = extract_first_url(message) if label == IntentLabel.FIRST_MESSAGE_LINK else ""
        return Intent(label=label, confidence=confidence, detected_url=detected_url, reasoning=reasoning)

    async def classify(self, message: str, history: str = "", recipe_state: str = "") -> Intent:
        """Classify ``message``.

        Raises:
            InvalidInputError: Blank message.
        """
        message = message or ""
        if not message.strip():
            raise InvalidInputError("Message must not be blank")
        history = normalize_text(history)
        recipe_state = (recipe_state or "").strip()

        allowed = self._allowed(history, recipe_state)
        first_message = not recipe_state
        fallback = heuristic_label(message, first_message)

        try:
            data = await self.generator.generate(
                build_classification_prompt(message, history, recipe_state),
                CLASSIFICATION_INSTRUCTIONS,
                IntentResponse,
                model=self.model,
            )
        except GenerationError as e:
            logger.warning(f"Intent classification failed, using heuristic: {e}")
            return self._finalize(
                fallback,
                FALLBACK_CONFIDENCE,
                f"Classification service unavailable; heuristic label used ({e})",
                message,
            )

        label = _coerce_label(data.get("intent"))
        confidence = _coerce_confidence(data.get("confidence"))
        reasoning = normalize_text(data.get("reasoning")) or DEFAULT_REASONING

        if label is None:
            logger.info(f"Unknown intent label {data.get('intent')!r}, using heuristic {fallback.value}")
            label = fallback
            reasoning = f"Unrecognised label from service; heuristic label used. {reasoning}"
        elif allowed is not None and label not in allowed:
            logger.info(f"Intent {label.value} violates conversation state, using heuristic {fallback.value}")
            label = fallback
            confidence = min(confidence, FALLBACK_CONFIDENCE)
            reasoning = f"Label did not match the conversation state; heuristic label used. {reasoning}"
        elif label == IntentLabel.FIRST_MESSAGE_LINK and not extract_first_url(message):
            logger.info(f"Link intent without a URL, using heuristic {fallback.value}")
            label = fallback
            confidence = min(confidence, FALLBACK_CONFIDENCE)
            reasoning = f"No URL in the message; heuristic label used. {reasoning}"

        intent = self._finalize(label, confidence, reasoning, message)
        logger.info(f"Classified intent {intent.label.value} ({intent.confidence:.2f})", extra={"intent": intent.label.value})
        return intent
