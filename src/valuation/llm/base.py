"""Abstract base class for LLM providers used by the valuation service."""

from abc import ABC, abstractmethod
from dataclasses import dataclass

SYSTEM_PROMPT = (
    "You are an expert New York City real estate analyst. You compare listings "
    "against typical market rates for their neighborhood and estimate how far "
    "below market each one is priced.\n\n"
    "Return ONLY a JSON array (no markdown, no explanation)."
)


@dataclass(frozen=True)
class LLMCompletion:
    """Raw completion text plus token usage reported by the provider."""

    text: str
    input_tokens: int = 0
    output_tokens: int = 0

    @property
    def total_tokens(self) -> int:
        return self.input_tokens + self.output_tokens


class LLMProvider(ABC):
    """Base class that every LLM provider must implement."""

    @property
    @abstractmethod
    def provider_id(self) -> str:
        """Unique identifier for this provider (e.g. 'anthropic')."""

    @abstractmethod
    def complete(
        self,
        prompt: str,
        model: str | None = None,
        *,
        system: str | None = None,
        max_tokens: int = 2000,
        temperature: float = 0.1,
    ) -> LLMCompletion:
        """Send a prompt to the LLM and return the completion.

        Args:
            prompt: User message (the valuation request).
            model: Override the provider's default model. None uses default.
            system: Override the system prompt. None falls back to SYSTEM_PROMPT.
            max_tokens: Upper bound on generated tokens.
            temperature: Sampling temperature.

        Returns:
            LLMCompletion with the response text (expected to be JSON).
        """

    @property
    @abstractmethod
    def default_model(self) -> str:
        """The default model ID used when no override is specified."""

    @property
    @abstractmethod
    def env_var(self) -> str | None:
        """Environment variable name for the API key, or None if not needed."""
