"""Error taxonomy for the extraction-and-repair pipeline.

- InvalidInputError: blank or malformed mandatory input. Fatal, never retried.
- ExtractionError: page fetch failed or no extraction strategy matched.
  Recoverable: the caller asks the user to paste the recipe text instead.
- FetchError: network-level subclass of ExtractionError.
- ValidatorError: a validator crashed. Converted into a validator_error
  violation by the orchestrator, never propagated.
- GenerationError: the text-generation service is unreachable or returned
  unusable output after all retries.
"""

from typing import Optional


class RecipeGuardError(Exception):
    """Base class for all pipeline errors."""


class InvalidInputError(RecipeGuardError, ValueError):
    """Mandatory input is blank or malformed."""


class ExtractionError(RecipeGuardError):
    """Structured recipe data could not be extracted from a page."""

    def __init__(self, message: str, url: Optional[str] = None) -> None:
        super().__init__(message)
        self.url = url


class FetchError(ExtractionError):
    """The page could not be fetched."""

    def __init__(self, message: str, url: Optional[str] = None, status: Optional[int] = None) -> None:
        super().__init__(message, url=url)
        self.status = status


class ValidatorError(RecipeGuardError):
    """A validator raised instead of returning a result."""

    def __init__(self, validator: str, cause: BaseException) -> None:
        super().__init__(f"Validator '{validator}' failed: {cause}")
        self.validator = validator
        self.cause = cause


class GenerationError(RecipeGuardError):
    """The text-generation service failed or returned unusable output."""
