"""Anthropic Claude LLM provider."""

import logging
import os

from src.valuation.llm.base import SYSTEM_PROMPT, LLMCompletion, LLMProvider

logger = logging.getLogger(__name__)


class AnthropicProvider(LLMProvider):
    """LLM provider using the Anthropic Messages API."""

    @property
    def provider_id(self) -> str:
        return "anthropic"

    @property
    def default_model(self) -> str:
        return "claude-3-5-haiku-latest"

    @property
    def env_var(self) -> str:
        return "ANTHROPIC_API_KEY"

    def complete(
        self,
        prompt: str,
        model: str | None = None,
        *,
        system: str | None = None,
        max_tokens: int = 2000,
        temperature: float = 0.1,
    ) -> LLMCompletion:
        api_key = os.environ.get("ANTHROPIC_API_KEY")
        if not api_key:
            msg = "ANTHROPIC_API_KEY environment variable is required"
            raise ValueError(msg)

        try:
            import anthropic
        except ImportError:
            msg = (
                "anthropic is required for valuation. "
                "Install with: pip install 'undervalued-listings-finder[anthropic]'"
            )
            raise ImportError(msg) from None

        client = anthropic.Anthropic(api_key=api_key)
        use_model = model or self.default_model

        logger.debug("Sending valuation batch to Anthropic API (%s)", use_model)
        message = client.messages.create(
            model=use_model,
            max_tokens=max_tokens,
            temperature=temperature,
            system=system if system is not None else SYSTEM_PROMPT,
            messages=[{"role": "user", "content": prompt}],
        )

        usage = getattr(message, "usage", None)
        return LLMCompletion(
            text=message.content[0].text,  # type: ignore[union-attr]
            input_tokens=getattr(usage, "input_tokens", 0) or 0,
            output_tokens=getattr(usage, "output_tokens", 0) or 0,
        )
