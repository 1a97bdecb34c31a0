"""
Configuration loader for the job aggregation pipeline.

Loads all settings from environment variables (.env file).
Validates required settings and provides type-safe access.
"""

import os
from typing import Optional
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()


class Config:
    """
    Centralized configuration for pipeline components.

    All values loaded from environment variables - NO SECRETS IN CODE.
    """

    # ===== MongoDB =====
    MONGODB_URI: str = os.getenv("MONGODB_URI", "")
    MONGO_DB_NAME: str = os.getenv("MONGO_DB_NAME", "jobs")

    # ===== Redis (optional fast cache) =====
    # Empty means the in-process cache is used instead
    REDIS_URL: str = os.getenv("REDIS_URL", "")

    # ===== LLM (Perplexity, OpenAI-compatible API) =====
    PERPLEXITY_API_KEY: str = os.getenv("PERPLEXITY_API_KEY", "")
    PERPLEXITY_BASE_URL: str = os.getenv("PERPLEXITY_BASE_URL", "https://api.perplexity.ai")
    PERPLEXITY_MODEL: str = os.getenv("PERPLEXITY_MODEL", "sonar-pro")
    SIGNAL_MODEL: str = os.getenv("SIGNAL_MODEL", "sonar")
    LLM_REQUESTS_PER_MINUTE: int = int(os.getenv("LLM_REQUESTS_PER_MINUTE", "50"))

    # Temperature settings
    SEARCH_TEMPERATURE: float = 0.2  # Job search prompt
    ANALYTICAL_TEMPERATURE: float = 0.1  # Signal extraction

    # ===== Scraping =====
    PLAYWRIGHT_HEADLESS: bool = os.getenv("PLAYWRIGHT_HEADLESS", "true").lower() == "true"
    ENABLE_BROWSER_SCRAPERS: bool = os.getenv("ENABLE_BROWSER_SCRAPERS", "true").lower() == "true"
    ENABLE_LLM_SEARCH: bool = os.getenv("ENABLE_LLM_SEARCH", "true").lower() == "true"

    @classmethod
    def validate(cls) -> None:
        """
        Validate that all required configuration is present.
        Raises ValueError if critical settings are missing.
        """
        required_settings = {
            "MONGODB_URI": cls.MONGODB_URI,
        }
        if cls.ENABLE_LLM_SEARCH:
            required_settings["PERPLEXITY_API_KEY"] = cls.PERPLEXITY_API_KEY

        missing = [name for name, value in required_settings.items() if not value]

        if missing:
            raise ValueError(
                f"Missing required configuration: {', '.join(missing)}. "
                f"Please check your .env file."
            )

    @classmethod
    def get_llm_api_key(cls) -> Optional[str]:
        """API key for the LLM provider, or None when not configured."""
        return cls.PERPLEXITY_API_KEY or None

    @classmethod
    def summary(cls) -> str:
        """Return a summary of current configuration (without secrets)."""
        return f"""
Configuration Summary:
  MongoDB: {'✓' if cls.MONGODB_URI else '✗'} ({cls.MONGO_DB_NAME})
  Redis: {'✓' if cls.REDIS_URL else '✗ (in-memory fast cache)'}
  Perplexity: {'✓' if cls.PERPLEXITY_API_KEY else '✗'} ({cls.PERPLEXITY_MODEL})
  LLM Search: {'enabled' if cls.ENABLE_LLM_SEARCH else 'disabled'}
  Browser Scrapers: {'enabled' if cls.ENABLE_BROWSER_SCRAPERS else 'disabled'}
  Headless: {cls.PLAYWRIGHT_HEADLESS}
"""
