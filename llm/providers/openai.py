"""OpenAI-compatible chat completion provider.

OpenRouter exposes the same API, so it is served by this provider with a
different base URL.
"""

from typing import Any, Dict, Optional
from openai import OpenAI
from llm.providers.base import LLMProvider
from logger import get_logger

logger = get_logger()

OPENROUTER_BASE_URL = "https://openrouter.ai/api/v1"


class OpenAIProvider(LLMProvider):
    """Completion provider backed by the OpenAI chat completions API."""

    def __init__(
        self,
        api_key: str,
        model: Optional[str] = None,
        base_url: Optional[str] = None,
    ):
        """Initialize OpenAI provider.

        Args:
            api_key: API key for the service.
            model: Model to use (e.g., "gpt-4o-mini"). If None, uses prompt default.
            base_url: Optional API base URL for OpenAI-compatible services.
        """
        self.client = OpenAI(api_key=api_key, base_url=base_url)
        self.model = model

    def complete(
        self, system_prompt: str, user_prompt: str, parameters: Dict[str, Any]
    ) -> str:
        """Send one chat completion request and return the reply text.

        Raises:
            Exception: If the API call fails.
        """
        model = self.model or parameters.get("model", "gpt-4o-mini")
        temperature = parameters.get("temperature", 0.1)
        max_tokens = parameters.get("max_tokens", 2000)

        logger.debug(f"Requesting completion from {model}")

        try:
            response = self.client.chat.completions.create(
                model=model,
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": user_prompt},
                ],
                temperature=temperature,
                max_tokens=max_tokens,
            )
        except Exception as e:
            logger.error(f"OpenAI API error: {e}")
            raise

        if not response.choices:
            logger.warning("OpenAI returned no choices")
            return ""
        return response.choices[0].message.content or ""
