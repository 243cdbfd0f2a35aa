"""Unit tests for intent classification.

The service response is faked; the tests cover the conversation-state
contract and the heuristic fallback.
"""

import pytest

from recipe_guard.models.models import IntentLabel
from recipe_guard.tools.intent_classifier import (
    FALLBACK_CONFIDENCE,
    IntentClassifier,
    heuristic_label,
    looks_like_complete_recipe,
)
from recipe_guard.utils.errors import GenerationError, InvalidInputError

PASTED_RECIPE = """Pancakes
Ingredients:
- 200 g flour
- 2 eggs
- 300 ml milk
Method:
1. Whisk everything together.
2. Fry ladlefuls in a hot pan."""


def _response(intent, confidence=0.9, reasoning="ok", detected_url=""):
    return {"intent": intent, "confidence": confidence, "reasoning": reasoning, "detected_url": detected_url}


class TestHeuristicLabel:
    @pytest.mark.parametrize(
        "message,expected",
        [
            ("https://allrecipes.com/recipe/1", IntentLabel.FIRST_MESSAGE_LINK),
            ("check www.bbcgoodfood.com/recipes/chili", IntentLabel.FIRST_MESSAGE_LINK),
            (PASTED_RECIPE, IntentLabel.FIRST_MESSAGE_COMPLETE_RECIPE),
            ("What can you do?", IntentLabel.FIRST_MESSAGE_QUERY),
            ("I want chicken fajitas", IntentLabel.FIRST_MESSAGE_FREE_TEXT),
        ],
    )
    def test_first_message(self, message, expected):
        assert heuristic_label(message, first_message=True) == expected

    @pytest.mark.parametrize(
        "message,expected",
        [
            ("Can you make it vegetarian?", IntentLabel.MODIFICATION),
            ("How long does this take?", IntentLabel.QUESTION),
            ("add more salt", IntentLabel.MODIFICATION),
            ("yes, the second one", IntentLabel.CLARIFICATION),
        ],
    )
    def test_follow_up(self, message, expected):
        assert heuristic_label(message, first_message=False) == expected

    def test_short_text_is_not_a_complete_recipe(self):
        assert not looks_like_complete_recipe("ingredients for a cake?")


class TestIntentClassifier:
    @pytest.mark.asyncio
    async def test_link_first_message(self, make_generator):
        generator = make_generator({"IntentResponse": [_response("first_message_link", 0.95)]})

        intent = await IntentClassifier(generator).classify("https://allrecipes.com/recipe/1", "", "")

        assert intent.label == IntentLabel.FIRST_MESSAGE_LINK
        assert intent.detected_url == "https://allrecipes.com/recipe/1"
        assert intent.confidence == 0.95

    @pytest.mark.asyncio
    async def test_uses_classifier_model(self, make_generator):
        generator = make_generator({"IntentResponse": [_response("first_message_free_text")]})

        await IntentClassifier(generator, model="lite").classify("I want soup")

        call = generator.calls[0]
        assert call["model"] == "lite"
        assert "This is the FIRST message" in call["prompt"]
        assert "No recipe exists yet" in call["prompt"]

    @pytest.mark.asyncio
    async def test_recipe_state_included_in_prompt(self, make_generator):
        generator = make_generator({"IntentResponse": [_response("modification")]})

        await IntentClassifier(generator).classify("add garlic", "user: soup please", "Title: Soup")

        prompt = generator.calls[0]["prompt"]
        assert "Conversation history:\nuser: soup please" in prompt
        assert "Current recipe state:\nTitle: Soup" in prompt

    @pytest.mark.asyncio
    async def test_first_message_label_with_recipe_replaced(self, make_generator):
        """A recipe exists, so first_message_* labels are out of contract."""
        generator = make_generator({"IntentResponse": [_response("first_message_free_text", 0.9)]})

        intent = await IntentClassifier(generator).classify("add more garlic", "", "Title: Soup")

        assert intent.label == IntentLabel.MODIFICATION
        assert intent.confidence == FALLBACK_CONFIDENCE

    @pytest.mark.asyncio
    async def test_follow_up_label_without_history_replaced(self, make_generator):
        generator = make_generator({"IntentResponse": [_response("question", 0.3)]})

        intent = await IntentClassifier(generator).classify("What can you do?", "", "")

        assert intent.label == IntentLabel.FIRST_MESSAGE_QUERY
        assert intent.confidence == 0.3

    @pytest.mark.asyncio
    async def test_link_label_without_url_replaced(self, make_generator):
        generator = make_generator({"IntentResponse": [_response("first_message_link", 0.9)]})

        intent = await IntentClassifier(generator).classify("I found a great lasagne recipe link on my favourite blog")

        assert intent.label == IntentLabel.FIRST_MESSAGE_FREE_TEXT
        assert intent.detected_url == ""
        assert intent.confidence == FALLBACK_CONFIDENCE

    @pytest.mark.asyncio
    async def test_unknown_label_falls_back(self, make_generator):
        generator = make_generator({"IntentResponse": [_response("recipe_request")]})

        intent = await IntentClassifier(generator).classify("I want fajitas")

        assert intent.label == IntentLabel.FIRST_MESSAGE_FREE_TEXT
        assert "heuristic" in intent.reasoning

    @pytest.mark.asyncio
    async def test_label_case_and_missing_fields_tolerated(self, make_generator):
        generator = make_generator({"IntentResponse": [{"intent": " QUESTION "}]})

        intent = await IntentClassifier(generator).classify("why?", "user: hi", "Title: Soup")

        assert intent.label == IntentLabel.QUESTION
        assert intent.confidence == 0.8
        assert intent.reasoning == "Classification completed"
        assert intent.detected_url == ""

    @pytest.mark.asyncio
    async def test_out_of_range_confidence_clamped(self, make_generator):
        generator = make_generator({"IntentResponse": [_response("first_message_free_text", 7)]})

        intent = await IntentClassifier(generator).classify("Lasagne")

        assert intent.confidence == 1.0

    @pytest.mark.asyncio
    async def test_service_failure_uses_heuristic(self, make_generator):
        generator = make_generator({"IntentResponse": [GenerationError("down")]})

        intent = await IntentClassifier(generator).classify("https://allrecipes.com/recipe/1")

        assert intent.label == IntentLabel.FIRST_MESSAGE_LINK
        assert intent.detected_url == "https://allrecipes.com/recipe/1"
        assert intent.confidence == FALLBACK_CONFIDENCE

    @pytest.mark.asyncio
    @pytest.mark.parametrize("message", ["", "   ", None])
    async def test_blank_message_rejected(self, make_generator, message):
        generator = make_generator()

        with pytest.raises(InvalidInputError):
            await IntentClassifier(generator).classify(message)
        assert generator.calls == []
