"""Recipe pipeline: the single entry point for one conversation turn.

Flow:
    input → normalize → [IntentClassifier ∥ ContextAnalyzer] → route by intent
          → candidate draft → RepairOrchestrator → PipelineResult

Routing:
- first_message_link: fetch + extract, then structure through the writer
- first_message_free_text: generate from the request
- first_message_complete_recipe: structure the pasted text
- modification: modify the current recipe
- first_message_query / question / clarification: answer; the current recipe
  is returned unchanged and is not re-validated
"""

import asyncio
import uuid
from typing import Any, Mapping, Optional

from pydantic import ValidationError

from recipe_guard.agents.orchestrator import RepairOrchestrator
from recipe_guard.hooks.normalize_input import NormalizedInput, normalize_turn
from recipe_guard.models.models import (
    ConversationContext,
    Intent,
    IntentLabel,
    PipelineResult,
    RecipeDraft,
    UserProfile,
    Violation,
)
from recipe_guard.tools.context_analyzer import ContextAnalyzer
from recipe_guard.tools.extractor import RecipeLinkExtractor
from recipe_guard.tools.generation import GeminiTextGenerator, TextGenerator
from recipe_guard.tools.intent_classifier import IntentClassifier
from recipe_guard.tools.recipe_writer import RecipeWriter
from recipe_guard.utils.errors import ExtractionError, GenerationError, InvalidInputError
from recipe_guard.utils.logger import logger
from recipe_guard.utils.normalizer import extract_first_url, find_requested_ingredients

GREETING = "Hi! 👋"
PASTE_RECIPE_MESSAGE = (
    "I couldn't read a recipe from that link. "
    "Please paste the recipe text (ingredients and steps) and I'll take it from there."
)
GENERATION_FAILED_MESSAGE = "Sorry, I couldn't prepare the recipe right now. Please try again in a moment."
ANSWER_FAILED_MESSAGE = "Sorry, I couldn't answer that right now. Please try again in a moment."

ANSWER_INTENTS = frozenset({IntentLabel.FIRST_MESSAGE_QUERY, IntentLabel.QUESTION, IntentLabel.CLARIFICATION})


def format_violations(violations: tuple[Violation, ...]) -> str:
    """Numbered list of residual violations for the user-facing message."""
    lines = ["⚠️ I couldn't fully fix these issues, please review before cooking:"]
    lines.extend(f"{index}. {violation.message}" for index, violation in enumerate(violations, start=1))
    return "\n".join(lines)


def compose_message(context: ConversationContext, body: str, violations: tuple[Violation, ...] = ()) -> str:
    parts = []
    if context.greeting_needed:
        parts.append(GREETING)
    if body:
        parts.append(body)
    if violations:
        parts.append(format_violations(violations))
    return "\n\n".join(parts)


def coerce_profile(user_profile: Any) -> UserProfile:
    if user_profile is None:
        return UserProfile.default()
    if isinstance(user_profile, UserProfile):
        return user_profile
    if isinstance(user_profile, Mapping):
        try:
            return UserProfile.model_validate(dict(user_profile))
        except ValidationError as e:
            raise InvalidInputError(f"Invalid user profile: {e}") from e
    raise InvalidInputError(f"Unsupported user profile type: {type(user_profile).__name__}")


class RecipePipeline:
    """Wires classifier, analyzer, extractor, writer and orchestrator together."""

    def __init__(
        self,
        generator: Optional[TextGenerator] = None,
        link_extractor: Optional[RecipeLinkExtractor] = None,
        classifier: Optional[IntentClassifier] = None,
        analyzer: Optional[ContextAnalyzer] = None,
        writer: Optional[RecipeWriter] = None,
        orchestrator: Optional[RepairOrchestrator] = None,
    ) -> None:
        if generator is None and not all((classifier, analyzer, writer)):
            generator = GeminiTextGenerator()
        self.classifier = classifier or IntentClassifier(generator)
        self.analyzer = analyzer or ContextAnalyzer(generator)
        self.writer = writer or RecipeWriter(generator)
        self.orchestrator = orchestrator or RepairOrchestrator(self.writer)
        self.link_extractor = link_extractor or RecipeLinkExtractor()

    async def _candidate(self, intent: Intent, turn: NormalizedInput, profile: UserProfile) -> RecipeDraft:
        """Produce the draft to validate for a recipe-producing intent."""
        if intent.label == IntentLabel.FIRST_MESSAGE_LINK:
            url = intent.detected_url or extract_first_url(turn.message)
            extraction = await self.link_extractor.extract(url)
            return await self.writer.structure(extraction, profile)
        if intent.label == IntentLabel.FIRST_MESSAGE_COMPLETE_RECIPE:
            return await self.writer.structure(turn.message, profile)
        if intent.label == IntentLabel.MODIFICATION and turn.recipe is not None:
            return await self.writer.modify(turn.recipe, turn.message, profile)
        return await self.writer.generate(turn.message, profile)

    async def _answer(
        self, intent: Intent, context: ConversationContext, turn: NormalizedInput, profile: UserProfile
    ) -> PipelineResult:
        try:
            body = await self.writer.answer(turn.message, profile, draft=turn.recipe, history=turn.history)
        except GenerationError as e:
            logger.warning(f"Answer generation failed: {e}")
            body = ANSWER_FAILED_MESSAGE
        return PipelineResult(
            recipe=turn.recipe,
            violations=(),
            message=compose_message(context, body),
            intent=intent,
            context=context,
        )

    async def process(
        self,
        user_message: Any,
        conversation_history: Any = None,
        current_recipe_state: Any = None,
        user_profile: Any = None,
    ) -> PipelineResult:
        """Run one conversation turn.

        Raises:
            InvalidInputError: Blank message or malformed history, recipe state
                or profile.
        """
        run_id = uuid.uuid4().hex[:8]
        turn = normalize_turn(user_message, conversation_history, current_recipe_state)
        profile = coerce_profile(user_profile)

        intent, context = await asyncio.gather(
            self.classifier.classify(turn.message, turn.history, turn.recipe_state),
            self.analyzer.analyze(turn.history),
        )
        logger.info("Processing turn", extra={"run_id": run_id, "intent": intent.label.value})

        if intent.label in ANSWER_INTENTS:
            return await self._answer(intent, context, turn, profile)

        try:
            draft = await self._candidate(intent, turn, profile)
        except ExtractionError as e:
            logger.warning(f"Link extraction failed: {e}", extra={"run_id": run_id})
            return PipelineResult(
                recipe=None,
                message=compose_message(context, PASTE_RECIPE_MESSAGE),
                intent=intent,
                context=context,
            )
        except GenerationError as e:
            logger.error(f"Recipe generation failed: {e}", extra={"run_id": run_id})
            return PipelineResult(
                recipe=turn.recipe,
                message=compose_message(context, GENERATION_FAILED_MESSAGE),
                intent=intent,
                context=context,
            )

        requested = find_requested_ingredients(turn.message, draft.ingredients)
        outcome = await self.orchestrator.run(draft, profile, requested, run_id=run_id)

        title = outcome.draft.title or "your recipe"
        if intent.label == IntentLabel.MODIFICATION:
            body = f"Here's the updated **{title}**."
        else:
            body = f"Here's **{title}**."

        return PipelineResult(
            recipe=outcome.draft,
            violations=outcome.violations,
            message=compose_message(context, body, outcome.violations),
            intent=intent,
            context=context,
            repair_iterations=outcome.iterations,
        )
