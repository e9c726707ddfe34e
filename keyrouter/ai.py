"""
Gemini provider: one generate call for one (key, model) pair.

Uses the google-genai SDK. Retry and key rotation are NOT handled here;
the dispatcher owns that. Errors from the SDK propagate unchanged so the
classifier can read their status code and message.
"""

import logging
from typing import Optional

from google import genai
from google.genai import types

from .errors import ProviderError

logger = logging.getLogger(__name__)


class GeminiProvider:
    """Stateless Gemini text generation."""

    def __init__(
        self,
        temperature: float = 1.0,
        max_output_tokens: int = 8192,
        timeout_ms: Optional[int] = 60_000,
    ):
        self.temperature = temperature
        self.max_output_tokens = max_output_tokens
        self.timeout_ms = timeout_ms

    def _client(self, secret: str) -> genai.Client:
        http_options = types.HttpOptions(timeout=self.timeout_ms) if self.timeout_ms else None
        return genai.Client(api_key=secret, http_options=http_options)

    def generate(self, secret: str, model: str, prompt: str) -> str:
        client = self._client(secret)
        response = client.models.generate_content(
            model=model,
            contents=prompt,
            config=types.GenerateContentConfig(
                temperature=self.temperature,
                top_p=0.95,
                top_k=40,
                max_output_tokens=self.max_output_tokens,
            ),
        )
        self._validate_response(response)
        return response.text

    @staticmethod
    def _validate_response(response):
        """Validate a Gemini API response before accessing .text."""
        if not response:
            raise ProviderError("Empty response from Gemini API")

        if not getattr(response, "candidates", None):
            raise ProviderError("No candidates in Gemini response")

        candidate = response.candidates[0]
        finish = getattr(candidate, "finish_reason", None)
        # finish_reason is a string enum like "STOP", "MAX_TOKENS" etc.
        reason = getattr(finish, "name", str(finish)) if finish else None
        if reason and reason not in ("STOP", "FINISH_REASON_UNSPECIFIED", "UNSPECIFIED"):
            if reason == "MAX_TOKENS":
                logger.warning("Response hit max token limit: returning partial content")
                if getattr(response, "text", None):
                    return  # Accept partial
                raise ProviderError("Hit max tokens with no content")
            raise ProviderError(f"Abnormal finish reason: {finish}")

        if not response.text or not response.text.strip():
            raise ProviderError("Empty text in Gemini response")
