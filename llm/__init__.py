"""LLM integration module for transaction categorization."""

from llm.factory import get_llm_provider
from llm.providers.base import LLMProvider

__all__ = ["get_llm_provider", "LLMProvider"]
