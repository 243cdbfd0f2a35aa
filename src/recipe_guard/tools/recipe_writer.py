"""Recipe writer: every recipe-producing generation call.

Each operation returns a new RecipeDraft built from the service's JSON;
the input draft is never changed. Service failures surface as
GenerationError and are handled by the caller.
"""

from typing import Iterable, Optional

from pydantic import ValidationError

from recipe_guard.models.models import AnswerResponse, ExtractionResult, RecipeDraft, RecipeSchema, UserProfile, Violation
from recipe_guard.prompts.prompts import (
    build_answer_prompt,
    build_modification_prompt,
    build_repair_prompt,
    get_answer_instructions,
    get_writer_instructions,
)
from recipe_guard.tools.generation import TextGenerator
from recipe_guard.utils.errors import GenerationError
from recipe_guard.utils.logger import logger


class RecipeWriter:
    """Thin layer between pipeline tasks and the TextGenerator."""

    def __init__(self, generator: TextGenerator, model: Optional[str] = None) -> None:
        self.generator = generator
        self.model = model

    async def _write(self, task: str, prompt: str, profile: UserProfile) -> RecipeDraft:
        data = await self.generator.generate(
            prompt,
            get_writer_instructions(task, profile),
            RecipeSchema,
            model=self.model,
        )
        try:
            draft = RecipeDraft.model_validate(data)
        except ValidationError as e:
            raise GenerationError(f"Service returned an invalid recipe for '{task}': {e}") from e
        logger.debug(f"Writer task '{task}' produced '{draft.title}'")
        return draft

    async def generate(self, request: str, profile: UserProfile) -> RecipeDraft:
        """Write a recipe from a free-text request."""
        return await self._write("generate", f"Recipe request:\n{request}", profile)

    async def structure(self, source: str | ExtractionResult, profile: UserProfile) -> RecipeDraft:
        """Turn pasted recipe text or an extraction into a rule-compliant draft."""
        if isinstance(source, ExtractionResult):
            text = source.to_draft().to_prompt_text()
            if source.source_url:
                text = f"Source: {source.source_url}\n{text}"
        else:
            text = source
        return await self._write("structure", f"Recipe to structure:\n{text}", profile)

    async def modify(self, draft: RecipeDraft, request: str, profile: UserProfile) -> RecipeDraft:
        """Apply the user's requested change to ``draft``."""
        return await self._write("modify", build_modification_prompt(draft, request), profile)

    async def repair(self, draft: RecipeDraft, violations: Iterable[Violation], profile: UserProfile) -> RecipeDraft:
        """Return a new draft with every listed violation addressed."""
        return await self._write("repair", build_repair_prompt(draft, violations), profile)

    async def answer(
        self,
        question: str,
        profile: UserProfile,
        draft: Optional[RecipeDraft] = None,
        history: str = "",
    ) -> str:
        """Markdown answer to a general or recipe-specific question."""
        data = await self.generator.generate(
            build_answer_prompt(question, draft, history),
            get_answer_instructions(profile),
            AnswerResponse,
            model=self.model,
        )
        answer = str(data.get("answer") or "").strip()
        if not answer:
            raise GenerationError("Service returned an empty answer")
        return answer
