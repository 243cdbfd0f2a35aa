"""Unit tests for the text-generation service and its error helpers."""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from recipe_guard.models.models import RecipeSchema
from recipe_guard.tools.generation import (
    GeminiTextGenerator,
    is_transient_error,
    parse_json_response,
    safe_execute_async,
    safe_execute_sync,
)
from recipe_guard.utils.errors import GenerationError


def _client_returning(*texts_or_errors):
    """MagicMock genai client whose generate_content yields the given texts / raises the given errors."""
    client = MagicMock()
    side_effects = []
    for item in texts_or_errors:
        if isinstance(item, Exception):
            side_effects.append(item)
        else:
            side_effects.append(MagicMock(text=item))
    client.models.generate_content.side_effect = side_effects
    return client


class TestParseJsonResponse:
    def test_direct_json(self):
        assert parse_json_response('{"title": "Soup"}') == {"title": "Soup"}

    def test_json_wrapped_in_prose(self):
        text = 'Here you go:\n```json\n{"title": "Soup", "ingredients": []}\n```'
        assert parse_json_response(text) == {"title": "Soup", "ingredients": []}

    @pytest.mark.parametrize("text", [None, "", "no json here", "[1, 2, 3]", "{broken"])
    def test_unrecoverable_returns_none(self, text):
        assert parse_json_response(text) is None


class TestSafeExecute:
    @pytest.mark.asyncio
    async def test_async_returns_default_on_error(self):
        async def failing():
            raise RuntimeError("boom")

        assert await safe_execute_async(failing(), "op", default_return="fallback") == "fallback"

    @pytest.mark.asyncio
    async def test_async_reraise(self):
        async def failing():
            raise RuntimeError("boom")

        with pytest.raises(RuntimeError):
            await safe_execute_async(failing(), "op", reraise=True)

    def test_sync_returns_value(self):
        assert safe_execute_sync(lambda: 42, "op") == 42

    def test_sync_returns_default_on_error(self):
        assert safe_execute_sync(lambda: 1 / 0, "op", default_return=0) == 0


class TestTransientErrors:
    @pytest.mark.parametrize("message", ["Connection reset", "429 Too Many Requests", "503 UNAVAILABLE", "Read timeout"])
    def test_transient(self, message):
        assert is_transient_error(Exception(message))

    def test_permanent(self):
        assert not is_transient_error(Exception("400 API key not valid"))


class TestGeminiTextGenerator:
    """Gemini calls with a mocked client and patched sleep."""

    @pytest.mark.asyncio
    async def test_returns_parsed_json(self):
        client = _client_returning('{"title": "Soup"}')
        generator = GeminiTextGenerator(client=client, model="test-model", max_retries=3)

        result = await generator.generate("prompt", "instructions", RecipeSchema)

        assert result == {"title": "Soup"}
        kwargs = client.models.generate_content.call_args.kwargs
        assert kwargs["model"] == "test-model"
        assert kwargs["contents"] == "prompt"
        assert kwargs["config"].system_instruction == "instructions"
        assert kwargs["config"].response_mime_type == "application/json"

    @pytest.mark.asyncio
    async def test_model_override(self):
        client = _client_returning('{"intent": "question"}')
        generator = GeminiTextGenerator(client=client, model="main-model")

        await generator.generate("prompt", "instructions", RecipeSchema, model="lite-model")

        assert client.models.generate_content.call_args.kwargs["model"] == "lite-model"

    @pytest.mark.asyncio
    async def test_retries_transient_error_with_backoff(self, monkeypatch):
        from recipe_guard.tools import generation

        monkeypatch.setattr(generation.config, "DELAY_BETWEEN_RETRIES", 1)
        monkeypatch.setattr(generation.config, "EXPONENTIAL_BACKOFF", True)
        client = _client_returning(Exception("503 unavailable"), Exception("connection reset"), '{"ok": true}')
        generator = GeminiTextGenerator(client=client, max_retries=3)

        with patch("recipe_guard.tools.generation.asyncio.sleep", new_callable=AsyncMock) as mock_sleep:
            result = await generator.generate("prompt", "instructions", RecipeSchema)

        assert result == {"ok": True}
        assert [call.args[0] for call in mock_sleep.await_args_list] == [1, 2]

    @pytest.mark.asyncio
    async def test_unparseable_response_is_retried(self):
        client = _client_returning("not json", '{"ok": true}')
        generator = GeminiTextGenerator(client=client, max_retries=2)

        with patch("recipe_guard.tools.generation.asyncio.sleep", new_callable=AsyncMock):
            assert await generator.generate("prompt", "instructions", RecipeSchema) == {"ok": True}

    @pytest.mark.asyncio
    async def test_permanent_error_fails_immediately(self):
        client = _client_returning(Exception("400 API key not valid"))
        generator = GeminiTextGenerator(client=client, max_retries=3)

        with patch("recipe_guard.tools.generation.asyncio.sleep", new_callable=AsyncMock) as mock_sleep:
            with pytest.raises(GenerationError, match="API key"):
                await generator.generate("prompt", "instructions", RecipeSchema)

        assert client.models.generate_content.call_count == 1
        mock_sleep.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_exhausted_retries_raise(self):
        client = _client_returning(*[Exception("timeout")] * 3)
        generator = GeminiTextGenerator(client=client, max_retries=3)

        with patch("recipe_guard.tools.generation.asyncio.sleep", new_callable=AsyncMock) as mock_sleep:
            with pytest.raises(GenerationError, match="after 3 attempts"):
                await generator.generate("prompt", "instructions", RecipeSchema)

        assert client.models.generate_content.call_count == 3
        assert mock_sleep.await_count == 2

    def test_missing_api_key_raises(self, monkeypatch):
        from recipe_guard.tools import generation

        monkeypatch.setattr(generation.config, "GEMINI_API_KEY", "")
        with pytest.raises(ValueError, match="GEMINI_API_KEY"):
            GeminiTextGenerator()
