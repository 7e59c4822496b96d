"""Factory for creating LLM provider instances."""

from typing import Optional
from config import Config
from llm.providers.base import LLMProvider
from llm.providers.openai import OpenAIProvider, OPENROUTER_BASE_URL
from logger import get_logger

logger = get_logger()

SUPPORTED_PROVIDERS = ("openai", "openrouter")


def get_llm_provider(config: Config) -> Optional[LLMProvider]:
    """Create an LLM provider instance based on configuration.

    Args:
        config: Application configuration.

    Returns:
        LLMProvider instance, or None if LLM is disabled.

    Raises:
        ValueError: If provider is configured but settings are invalid.
    """
    # Check if LLM is enabled
    if not getattr(config, "llm_enabled", False):
        logger.info("LLM categorization is disabled")
        return None

    provider_name = getattr(config, "llm_provider", None)

    if provider_name is None:
        logger.info("No LLM provider configured")
        return None

    if provider_name not in SUPPORTED_PROVIDERS:
        raise ValueError(f"Unknown LLM provider: {provider_name}")

    api_key = getattr(config, "llm_api_key", None)
    if not api_key:
        raise ValueError(
            f"{provider_name} provider selected but llm api_key not configured"
        )

    base_url = getattr(config, "llm_base_url", None)
    if provider_name == "openrouter" and not base_url:
        base_url = OPENROUTER_BASE_URL

    model = getattr(config, "llm_model", None)
    logger.info(f"Initializing {provider_name} provider (model: {model or 'default'})")

    return OpenAIProvider(api_key=api_key, model=model, base_url=base_url)
