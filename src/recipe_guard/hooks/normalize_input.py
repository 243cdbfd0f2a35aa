"""Input normalization for one pipeline turn.

Callers hand the pipeline conversation history and recipe state in several
shapes:

1. History: plain text, a list of strings, a list of ``{"role", "content"}``
   mappings, or a JSON string of either list form
2. Recipe state: plain text, a mapping with recipe fields, a RecipeDraft,
   or a JSON string of a mapping

Result: downstream components receive history as "role: content" lines
(most recent MAX_HISTORY_MESSAGES only) and the recipe both as a draft and as
prompt text.
"""

import json
from dataclasses import dataclass
from typing import Any, Mapping, Optional

from pydantic import ValidationError

from recipe_guard.models.models import RecipeDraft
from recipe_guard.utils.config import config
from recipe_guard.utils.errors import InvalidInputError
from recipe_guard.utils.logger import logger
from recipe_guard.utils.normalizer import normalize_text


@dataclass(frozen=True)
class NormalizedInput:
    message: str
    history: str
    recipe: Optional[RecipeDraft]
    recipe_state: str


def _maybe_json(value: str) -> Any:
    stripped = value.strip()
    if not stripped or stripped[0] not in "[{":
        return value
    try:
        return json.loads(stripped)
    except (json.JSONDecodeError, ValueError):
        return value


def _history_line(entry: Any) -> str:
    if isinstance(entry, Mapping):
        role = normalize_text(entry.get("role")) or "user"
        content = normalize_text(entry.get("content") or entry.get("message"))
        return f"{role}: {content}" if content else ""
    return normalize_text(entry)


def normalize_history(history: Any, max_messages: Optional[int] = None) -> str:
    """Canonical history text, keeping only the most recent messages."""
    max_messages = max_messages or config.MAX_HISTORY_MESSAGES
    if history is None:
        return ""
    if isinstance(history, str):
        history = _maybe_json(history)
        if isinstance(history, str):
            lines = [line.strip() for line in history.splitlines() if line.strip()]
            return "\n".join(lines[-max_messages:])
    if isinstance(history, Mapping):
        history = [history]
    if not isinstance(history, (list, tuple)):
        raise InvalidInputError(f"Unsupported conversation history type: {type(history).__name__}")

    lines = [line for line in (_history_line(entry) for entry in history) if line]
    if len(lines) > max_messages:
        logger.debug(f"Trimming history from {len(lines)} to {max_messages} messages")
    return "\n".join(lines[-max_messages:])


def normalize_recipe_state(recipe_state: Any) -> tuple[Optional[RecipeDraft], str]:
    """(draft, prompt text) for the current recipe; (None, "") when there is none.

    Plain text that is not a recipe mapping is kept as prompt text with a
    draft holding it as the title, so follow-up intents still see a recipe.
    """
    if recipe_state is None:
        return None, ""
    if isinstance(recipe_state, RecipeDraft):
        draft = recipe_state
    else:
        if isinstance(recipe_state, str):
            recipe_state = _maybe_json(recipe_state)
        if isinstance(recipe_state, str):
            text = recipe_state.strip()
            if not text:
                return None, ""
            return RecipeDraft(title=text.splitlines()[0]), text
        if not isinstance(recipe_state, Mapping):
            raise InvalidInputError(f"Unsupported recipe state type: {type(recipe_state).__name__}")
        try:
            draft = RecipeDraft.model_validate(dict(recipe_state))
        except ValidationError as e:
            raise InvalidInputError(f"Invalid recipe state: {e}") from e

    if not (draft.title or draft.ingredients or draft.instructions):
        return None, ""
    return draft, draft.to_prompt_text()


def normalize_turn(message: Any, history: Any = None, recipe_state: Any = None) -> NormalizedInput:
    """Normalize all inputs of one turn.

    Raises:
        InvalidInputError: Blank message or unsupported input shapes.
    """
    text = message if isinstance(message, str) else normalize_text(message)
    if not text or not text.strip():
        raise InvalidInputError("Message must not be blank")

    recipe, state = normalize_recipe_state(recipe_state)
    normalized = NormalizedInput(
        message=text.strip(),
        history=normalize_history(history),
        recipe=recipe,
        recipe_state=state,
    )
    logger.debug(
        f"Normalized input: message={len(normalized.message)} chars, "
        f"history={len(normalized.history)} chars, recipe={'yes' if recipe else 'no'}"
    )
    return normalized
