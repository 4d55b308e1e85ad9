"""LLM provider implementations."""

from .base import BaseLLMProvider, ErrorType, LLMProviderConfig, LLMProviderError
from .openai import OpenAIProvider

__all__ = [
    "BaseLLMProvider",
    "ErrorType",
    "LLMProviderError",
    "LLMProviderConfig",
    "OpenAIProvider",
]
