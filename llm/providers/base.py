"""Base provider interface for LLM implementations."""

from abc import ABC, abstractmethod
from typing import Any, Dict


class LLMProvider(ABC):
    """Abstract base class for completion providers.

    A provider turns a rendered prompt into raw response text. Parsing and
    validating that text is left to the caller, so any chat-completion
    backend can be plugged in.
    """

    @abstractmethod
    def complete(
        self, system_prompt: str, user_prompt: str, parameters: Dict[str, Any]
    ) -> str:
        """Run one completion.

        Args:
            system_prompt: System message text.
            user_prompt: User message text.
            parameters: Prompt parameters (model, temperature, max_tokens).

        Returns:
            The response text, possibly empty.

        Raises:
            Exception: If the API call fails.
        """
        pass
