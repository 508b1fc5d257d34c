"""Google Gemini LLM provider (google-genai SDK)."""

import logging
import os

from src.valuation.llm.base import SYSTEM_PROMPT, LLMCompletion, LLMProvider

logger = logging.getLogger(__name__)


class GeminiProvider(LLMProvider):
    """LLM provider using the Google Gemini API (google-genai SDK)."""

    @property
    def provider_id(self) -> str:
        return "gemini"

    @property
    def default_model(self) -> str:
        return "gemini-2.5-flash"

    @property
    def env_var(self) -> str:
        return "GOOGLE_API_KEY"

    def complete(
        self,
        prompt: str,
        model: str | None = None,
        *,
        system: str | None = None,
        max_tokens: int = 2000,
        temperature: float = 0.1,
    ) -> LLMCompletion:
        api_key = os.environ.get("GOOGLE_API_KEY")
        if not api_key:
            msg = "GOOGLE_API_KEY environment variable is required"
            raise ValueError(msg)

        try:
            from google import genai
            from google.genai import types as genai_types
        except ImportError:
            msg = (
                "google-genai is required for valuation. "
                "Install with: pip install 'undervalued-listings-finder[gemini]'"
            )
            raise ImportError(msg) from None

        use_model = model or self.default_model

        logger.debug("Sending valuation batch to Gemini API (%s)", use_model)
        client = genai.Client(api_key=api_key)
        response = client.models.generate_content(
            model=use_model,
            contents=prompt,
            config=genai_types.GenerateContentConfig(
                system_instruction=system if system is not None else SYSTEM_PROMPT,
                max_output_tokens=max_tokens,
                temperature=temperature,
            ),
        )

        usage = getattr(response, "usage_metadata", None)
        return LLMCompletion(
            text=response.text or "",
            input_tokens=getattr(usage, "prompt_token_count", 0) or 0,
            output_tokens=getattr(usage, "candidates_token_count", 0) or 0,
        )
