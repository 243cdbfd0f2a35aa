"""Unit tests for turn input normalization."""

import json

import pytest

from recipe_guard.hooks.normalize_input import normalize_history, normalize_recipe_state, normalize_turn
from recipe_guard.models.models import RecipeDraft
from recipe_guard.utils.errors import InvalidInputError


class TestNormalizeHistory:
    def test_none(self):
        assert normalize_history(None) == ""

    def test_plain_text_lines(self):
        assert normalize_history("user: hi\n\n  assistant: hello  ") == "user: hi\nassistant: hello"

    def test_role_mappings(self):
        history = [{"role": "user", "content": "soup please"}, {"role": "assistant", "content": "Here it is"}]
        assert normalize_history(history) == "user: soup please\nassistant: Here it is"

    def test_json_string(self):
        history = json.dumps([{"role": "user", "content": "soup please"}])
        assert normalize_history(history) == "user: soup please"

    def test_missing_role_defaults_to_user(self):
        assert normalize_history([{"message": "hi"}, {"role": "assistant"}]) == "user: hi"

    def test_keeps_most_recent(self):
        history = [f"message {i}" for i in range(15)]
        assert normalize_history(history, max_messages=3) == "message 12\nmessage 13\nmessage 14"

    def test_unsupported_type(self):
        with pytest.raises(InvalidInputError):
            normalize_history(42)


class TestNormalizeRecipeState:
    @pytest.mark.parametrize("state", [None, "", "   ", {}])
    def test_no_recipe(self, state):
        assert normalize_recipe_state(state) == (None, "")

    def test_draft(self, clean_recipe):
        draft, text = normalize_recipe_state(clean_recipe)
        assert draft is clean_recipe
        assert text.startswith("Title: Tomato Pasta")

    def test_mapping_and_json(self, clean_recipe):
        mapping = {"title": "Tomato Pasta", "ingredients": ["200g spaghetti"], "instructions": ["Boil."]}

        from_mapping, _ = normalize_recipe_state(mapping)
        from_json, _ = normalize_recipe_state(json.dumps(mapping))

        assert from_mapping == from_json
        assert from_mapping.ingredients == ("200g spaghetti",)

    def test_plain_text(self):
        draft, text = normalize_recipe_state("Tomato Pasta\n200g spaghetti\nBoil it.")
        assert draft == RecipeDraft(title="Tomato Pasta")
        assert text == "Tomato Pasta\n200g spaghetti\nBoil it."

    def test_json_list_rejected(self):
        with pytest.raises(InvalidInputError):
            normalize_recipe_state('["Tomato Pasta", "Boil."]')

    def test_unsupported_type(self):
        with pytest.raises(InvalidInputError):
            normalize_recipe_state(3.5)


class TestNormalizeTurn:
    def test_strips_message(self):
        turn = normalize_turn("  add garlic  ", ["user: pasta"], None)
        assert turn.message == "add garlic"
        assert turn.history == "user: pasta"
        assert turn.recipe is None
        assert turn.recipe_state == ""

    @pytest.mark.parametrize("message", ["", " \n ", None])
    def test_blank_message(self, message):
        with pytest.raises(InvalidInputError):
            normalize_turn(message)
