"""Configuration management for Recipe Guard.

Loads environment variables from system environment and .env file.
Priority order: system environment > .env file > hardcoded defaults
"""

import os
from typing import Optional

from dotenv import load_dotenv


# Load .env file (if exists, silently continues if missing)
load_dotenv()


class Config:
    """Application configuration loaded from environment variables."""

    def __init__(self) -> None:
        """Initialize configuration from environment variables."""
        # Gemini API Key: only required once the Gemini generator is constructed
        self.GEMINI_API_KEY: str = os.getenv("GEMINI_API_KEY", "")
        # Main model used for recipe generation, structuring and repair
        self.GEMINI_MODEL: str = os.getenv("GEMINI_MODEL", "gemini-2.5-flash")
        # Classifier Model: small fast model for intent classification and context analysis
        self.CLASSIFIER_MODEL: str = os.getenv("CLASSIFIER_MODEL", "gemini-2.5-flash-lite")

        # LLM Model Parameters
        # Temperature: 0.2 keeps repaired recipes close to the previous draft
        self.TEMPERATURE: float = float(os.getenv("TEMPERATURE", "0.2"))
        # Max Output Tokens: a full recipe with warnings fits in 4096
        self.MAX_OUTPUT_TOKENS: int = int(os.getenv("MAX_OUTPUT_TOKENS", "4096"))

        # Generation Retry Configuration - handles transient API failures
        # MAX_RETRIES: attempts per generation call before GenerationError is raised
        self.MAX_RETRIES: int = int(os.getenv("MAX_RETRIES", "3"))
        # DELAY_BETWEEN_RETRIES: initial delay in seconds (doubled each retry if EXPONENTIAL_BACKOFF)
        self.DELAY_BETWEEN_RETRIES: int = int(os.getenv("DELAY_BETWEEN_RETRIES", "1"))
        self.EXPONENTIAL_BACKOFF: bool = os.getenv("EXPONENTIAL_BACKOFF", "true").lower() in ("true", "1", "yes")

        # Web Fetcher Configuration
        # FETCH_TIMEOUT_SECONDS: total timeout for one page fetch
        self.FETCH_TIMEOUT_SECONDS: int = int(os.getenv("FETCH_TIMEOUT_SECONDS", "10"))
        # FETCH_USER_AGENT: some recipe sites reject requests without a browser-like agent
        self.FETCH_USER_AGENT: str = os.getenv(
            "FETCH_USER_AGENT",
            "Mozilla/5.0 (compatible; RecipeGuard/1.0; +https://example.com/bot)",
        )
        # MAX_PAGE_SIZE_MB: pages above this size are rejected before parsing
        self.MAX_PAGE_SIZE_MB: int = int(os.getenv("MAX_PAGE_SIZE_MB", "5"))

        # Conversation Context
        # MAX_HISTORY_MESSAGES: most recent history messages passed to classifier and analyzer
        self.MAX_HISTORY_MESSAGES: int = int(os.getenv("MAX_HISTORY_MESSAGES", "10"))

        # Optional override for the Gemini API endpoint (e.g. a proxy)
        self.GEMINI_BASE_URL: Optional[str] = os.getenv("GEMINI_BASE_URL")

    def validate(self) -> None:
        """Validate configuration values.

        Raises:
            ValueError: If a value is out of its allowed range.
        """
        if not (0.0 <= self.TEMPERATURE <= 1.0):
            raise ValueError(
                f"TEMPERATURE must be between 0.0 and 1.0, got: {self.TEMPERATURE}"
            )
        if self.MAX_OUTPUT_TOKENS < 512:
            raise ValueError(
                f"MAX_OUTPUT_TOKENS must be at least 512, got: {self.MAX_OUTPUT_TOKENS}"
            )
        if self.MAX_RETRIES < 1:
            raise ValueError(
                f"MAX_RETRIES must be at least 1, got: {self.MAX_RETRIES}"
            )
        if self.DELAY_BETWEEN_RETRIES < 0:
            raise ValueError(
                f"DELAY_BETWEEN_RETRIES must not be negative, got: {self.DELAY_BETWEEN_RETRIES}"
            )
        if self.FETCH_TIMEOUT_SECONDS < 1:
            raise ValueError(
                f"FETCH_TIMEOUT_SECONDS must be at least 1 second, got: {self.FETCH_TIMEOUT_SECONDS}"
            )
        if self.MAX_PAGE_SIZE_MB < 1:
            raise ValueError(
                f"MAX_PAGE_SIZE_MB must be at least 1, got: {self.MAX_PAGE_SIZE_MB}"
            )
        if self.MAX_HISTORY_MESSAGES < 1:
            raise ValueError(
                f"MAX_HISTORY_MESSAGES must be at least 1, got: {self.MAX_HISTORY_MESSAGES}"
            )

    def require_api_key(self) -> str:
        """Return the Gemini API key.

        Raises:
            ValueError: If GEMINI_API_KEY is not set.
        """
        if not self.GEMINI_API_KEY:
            raise ValueError("GEMINI_API_KEY environment variable is required")
        return self.GEMINI_API_KEY


# Create module-level config instance and validate immediately
config = Config()
config.validate()
