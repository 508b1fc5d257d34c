"""OpenAI LLM provider."""

import logging
import os

from src.valuation.llm.base import SYSTEM_PROMPT, LLMCompletion, LLMProvider

logger = logging.getLogger(__name__)


class OpenAIProvider(LLMProvider):
    """LLM provider using the OpenAI chat completions API."""

    @property
    def provider_id(self) -> str:
        return "openai"

    @property
    def default_model(self) -> str:
        return "gpt-4o-mini"

    @property
    def env_var(self) -> str:
        return "OPENAI_API_KEY"

    def complete(
        self,
        prompt: str,
        model: str | None = None,
        *,
        system: str | None = None,
        max_tokens: int = 2000,
        temperature: float = 0.1,
    ) -> LLMCompletion:
        api_key = os.environ.get("OPENAI_API_KEY")
        if not api_key:
            msg = "OPENAI_API_KEY environment variable is required"
            raise ValueError(msg)

        try:
            import openai
        except ImportError:
            msg = (
                "openai is required for valuation. "
                "Install with: pip install 'undervalued-listings-finder[openai]'"
            )
            raise ImportError(msg) from None

        client = openai.OpenAI(api_key=api_key)
        return _chat_completion(
            client,
            model or self.default_model,
            system if system is not None else SYSTEM_PROMPT,
            prompt,
            max_tokens=max_tokens,
            temperature=temperature,
        )


def _chat_completion(
    client: object,
    model: str,
    system: str,
    prompt: str,
    *,
    max_tokens: int,
    temperature: float,
) -> LLMCompletion:
    """Run a chat completion on any OpenAI-compatible client."""
    logger.debug("Sending valuation batch to chat completions API (%s)", model)
    response = client.chat.completions.create(  # type: ignore[attr-defined]
        model=model,
        max_tokens=max_tokens,
        temperature=temperature,
        messages=[
            {"role": "system", "content": system},
            {"role": "user", "content": prompt},
        ],
    )
    usage = getattr(response, "usage", None)
    return LLMCompletion(
        text=response.choices[0].message.content or "",
        input_tokens=getattr(usage, "prompt_tokens", 0) or 0,
        output_tokens=getattr(usage, "completion_tokens", 0) or 0,
    )
