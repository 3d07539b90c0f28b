"""Completion clients and factory helpers."""

from query_copilot.config import Settings
from query_copilot.llm.base import CompletionClient, CompletionOptions, LLMError
from query_copilot.llm.openai_adapter import OpenAIClient


def create_completion_client(settings: Settings) -> CompletionClient:
    """Create the default completion client for current settings."""
    return OpenAIClient(
        api_key=settings.openai_api_key,
        model=settings.openai_model,
        base_url=settings.openai_base_url,
        timeout_seconds=settings.request_timeout_seconds,
    )


__all__ = [
    "CompletionClient",
    "CompletionOptions",
    "LLMError",
    "OpenAIClient",
    "create_completion_client",
]
