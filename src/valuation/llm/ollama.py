"""Ollama local LLM provider (OpenAI-compatible API)."""

import logging
import os

from src.valuation.llm.base import SYSTEM_PROMPT, LLMCompletion, LLMProvider
from src.valuation.llm.openai import _chat_completion

logger = logging.getLogger(__name__)

_OLLAMA_BASE_URL = "http://localhost:11434/v1"


class OllamaProvider(LLMProvider):
    """LLM provider using a local Ollama instance via OpenAI-compatible API."""

    @property
    def provider_id(self) -> str:
        return "ollama"

    @property
    def default_model(self) -> str:
        return "llama3"

    @property
    def env_var(self) -> None:
        return None

    def complete(
        self,
        prompt: str,
        model: str | None = None,
        *,
        system: str | None = None,
        max_tokens: int = 2000,
        temperature: float = 0.1,
    ) -> LLMCompletion:
        try:
            import openai
        except ImportError:
            msg = (
                "openai is required for Ollama (OpenAI-compatible API). "
                "Install with: pip install 'undervalued-listings-finder[openai]'"
            )
            raise ImportError(msg) from None

        base_url = os.environ.get("OLLAMA_BASE_URL", _OLLAMA_BASE_URL)
        client = openai.OpenAI(base_url=base_url, api_key="ollama")
        return _chat_completion(
            client,
            model or self.default_model,
            system if system is not None else SYSTEM_PROMPT,
            prompt,
            max_tokens=max_tokens,
            temperature=temperature,
        )
