"""Text-generation service.

Every language-model call in the pipeline goes through ``TextGenerator``:
recipe writing, repair, intent classification, context analysis and Q&A.

Core Functions:
- safe_execute_async() / safe_execute_sync(): log-and-fall-back wrappers for optional steps
- parse_json_response(): Lenient JSON parsing (direct, then regex extraction)
- GeminiTextGenerator.generate(): Gemini call in JSON mode with exponential backoff retries
"""

import asyncio
import json
import re
from typing import Any, Optional, Protocol

from google import genai
from google.genai import types
from pydantic import BaseModel

from recipe_guard.utils.config import config
from recipe_guard.utils.errors import GenerationError
from recipe_guard.utils.logger import logger

TRANSIENT_ERROR_KEYWORDS = ("timeout", "connection", "429", "500", "502", "503", "unavailable", "retryable")


# ============================================================================
# Error Handling Helpers
# ============================================================================


def _log_error(operation_name: str, exception: Exception, log_level: str = "warning") -> None:
    msg = f"{operation_name}: {exception}"
    if log_level == "debug":
        logger.debug(msg)
    elif log_level == "error":
        logger.error(msg)
    else:
        logger.warning(msg)


async def safe_execute_async(
    coro,
    operation_name: str,
    log_level: str = "warning",
    default_return=None,
    reraise: bool = False,
):
    """Run an awaitable, logging failures and returning ``default_return`` instead.

    Used for steps that degrade gracefully (context analysis, optional
    parsing). With ``reraise=True`` the original exception is re-raised after
    logging.
    """
    try:
        return await coro
    except Exception as e:
        _log_error(operation_name, e, log_level)
        if reraise:
            raise
        return default_return


def safe_execute_sync(
    func,
    operation_name: str,
    log_level: str = "warning",
    default_return=None,
    reraise: bool = False,
):
    """Synchronous version of safe_execute_async."""
    try:
        return func()
    except Exception as e:
        _log_error(operation_name, e, log_level)
        if reraise:
            raise
        return default_return


def parse_json_response(response_text: Optional[str]) -> Optional[dict]:
    """Parse a JSON object out of a model response.

    Tries ``json.loads`` on the whole text first, then extracts the outermost
    ``{...}`` span (models sometimes wrap JSON in prose or code fences).

    Returns:
        The parsed dict, or None when no JSON object can be recovered.
    """
    if not response_text:
        return None

    def _parse_json_direct():
        return json.loads(response_text)

    def _parse_json_regex():
        json_match = re.search(r"\{.*\}", response_text, re.DOTALL)
        if json_match:
            return json.loads(json_match.group())
        return None

    parsed = safe_execute_sync(_parse_json_direct, "Direct JSON parse", log_level="debug")
    if not isinstance(parsed, dict):
        parsed = safe_execute_sync(_parse_json_regex, "Regex JSON extraction", log_level="debug")

    if not isinstance(parsed, dict):
        logger.warning("Failed to parse JSON from model response")
        return None
    return parsed


def is_transient_error(error: Exception) -> bool:
    error_str = str(error).lower()
    return any(keyword in error_str for keyword in TRANSIENT_ERROR_KEYWORDS)


class TextGenerator(Protocol):
    """Anything that turns (prompt, instructions, schema) into a JSON dict."""

    async def generate(
        self,
        prompt: str,
        instructions: str,
        output_schema: type[BaseModel],
        model: Optional[str] = None,
    ) -> dict[str, Any]: ...


class GeminiTextGenerator:
    """TextGenerator backed by the Gemini API (google-genai).

    The sync client runs in a worker thread via ``asyncio.to_thread``.
    Responses are requested as JSON constrained by the pydantic schema.

    **Retry Strategy:**
    - Transient errors (timeouts, connection, 429/5xx) and unparseable
      responses: retry with exponential backoff (1s → 2s → 4s)
    - Permanent errors (bad key, malformed request): fail immediately
    - Exhausted retries: GenerationError
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        temperature: Optional[float] = None,
        max_output_tokens: Optional[int] = None,
        max_retries: Optional[int] = None,
        client: Optional[genai.Client] = None,
    ) -> None:
        self.model = model or config.GEMINI_MODEL
        self.temperature = config.TEMPERATURE if temperature is None else temperature
        self.max_output_tokens = max_output_tokens or config.MAX_OUTPUT_TOKENS
        self.max_retries = max_retries or config.MAX_RETRIES

        if client is None:
            http_options = types.HttpOptions(base_url=config.GEMINI_BASE_URL) if config.GEMINI_BASE_URL else None
            client = genai.Client(api_key=api_key or config.require_api_key(), http_options=http_options)
        self.client = client

    async def _generate_once(
        self, prompt: str, instructions: str, output_schema: type[BaseModel], model: str
    ) -> Optional[dict[str, Any]]:
        response = await asyncio.to_thread(
            self.client.models.generate_content,
            model=model,
            contents=prompt,
            config=types.GenerateContentConfig(
                system_instruction=instructions,
                response_mime_type="application/json",
                response_schema=output_schema,
                temperature=self.temperature,
                max_output_tokens=self.max_output_tokens,
            ),
        )
        return parse_json_response(response.text)

    async def generate(
        self,
        prompt: str,
        instructions: str,
        output_schema: type[BaseModel],
        model: Optional[str] = None,
    ) -> dict[str, Any]:
        """Call Gemini and return the parsed JSON object.

        Raises:
            GenerationError: Permanent API error, or no usable response after
                ``max_retries`` attempts.
        """
        model = model or self.model
        delay_seconds = config.DELAY_BETWEEN_RETRIES
        last_error: Optional[Exception] = None

        for attempt in range(1, self.max_retries + 1):
            try:
                result = await self._generate_once(prompt, instructions, output_schema, model)
                if result is not None:
                    return result
                last_error = GenerationError("Model returned no parseable JSON")
            except Exception as e:
                if not is_transient_error(e):
                    logger.warning(f"Generation failed with permanent error: {e}")
                    raise GenerationError(f"Generation failed: {e}") from e
                last_error = e

            if attempt < self.max_retries:
                logger.debug(
                    f"Retrying generation (attempt {attempt + 1}/{self.max_retries}) "
                    f"after {delay_seconds}s: {last_error}"
                )
                await asyncio.sleep(delay_seconds)
                if config.EXPONENTIAL_BACKOFF:
                    delay_seconds *= 2

        logger.warning(f"Generation exhausted all {self.max_retries} attempts: {last_error}")
        raise GenerationError(f"Generation failed after {self.max_retries} attempts: {last_error}")
