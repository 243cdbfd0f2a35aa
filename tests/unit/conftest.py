"""Shared fixtures for unit tests.

FakeGenerator stands in for the text-generation service: responses are
queued per output schema name and every call is recorded.
"""

from typing import Any, Optional

import pytest

from recipe_guard.models.models import RecipeDraft, UserProfile
from recipe_guard.utils.errors import GenerationError


class FakeGenerator:
    """In-memory TextGenerator.

    ``responses`` maps a schema class name to a list of dicts or exceptions.
    Items are consumed in order; the last one repeats.
    """

    def __init__(self, responses: Optional[dict[str, list[Any]]] = None) -> None:
        self.responses = {name: list(items) for name, items in (responses or {}).items()}
        self.calls: list[dict[str, Any]] = []

    def calls_for(self, schema_name: str) -> list[dict[str, Any]]:
        return [call for call in self.calls if call["schema"] == schema_name]

    async def generate(self, prompt, instructions, output_schema, model=None):
        name = output_schema.__name__
        self.calls.append({"prompt": prompt, "instructions": instructions, "schema": name, "model": model})

        queue = self.responses.get(name)
        if not queue:
            raise GenerationError(f"No fake response for {name}")
        item = queue.pop(0) if len(queue) > 1 else queue[0]
        if isinstance(item, Exception):
            raise item
        return item


@pytest.fixture
def fake_generator():
    return FakeGenerator()


@pytest.fixture
def clean_recipe() -> RecipeDraft:
    return RecipeDraft(
        title="Tomato Pasta",
        description="A quick weeknight pasta with a fresh tomato sauce.",
        ingredients=("200g spaghetti", "400g tomatoes, chopped", "2 cloves garlic", "1 tbsp olive oil"),
        instructions=(
            "Boil the spaghetti in salted water on the stove for 10 minutes.",
            "Fry the garlic in olive oil in a frying pan for 1 minute.",
            "Add the tomatoes and simmer for 10 minutes.",
            "Toss the spaghetti with the sauce and serve.",
        ),
    )


@pytest.fixture
def default_profile() -> UserProfile:
    return UserProfile.default()


@pytest.fixture
def make_generator():
    """FakeGenerator factory: ``make_generator({"RecipeSchema": [...]})``."""
    return FakeGenerator
