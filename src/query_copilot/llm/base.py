"""Provider-independent completion interface."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass


class LLMError(RuntimeError):
    """Raised when a completion request fails or returns unusable output."""


@dataclass(frozen=True)
class CompletionOptions:
    system_prompt: str | None = None
    temperature: float = 0.1
    max_tokens: int = 1200
    json_mode: bool = True


class CompletionClient(ABC):
    """Abstract text-completion client.

    Implementations own retry and backoff. An empty string is a valid
    "no answer" and callers decide what it means.
    """

    @abstractmethod
    async def complete(self, prompt: str, options: CompletionOptions | None = None) -> str:
        """Return the model's text for ``prompt``."""
