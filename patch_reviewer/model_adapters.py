"""
Model adapter for requesting chat completions from a language model API.
"""

import os
import random
import time
from typing import Any, Callable, Dict, List, Optional

import requests

from patch_reviewer.custom_exceptions import (
    AIProviderAPIError,
    MissingConfigurationError,
    ReviewGenerationError,
)
from patch_reviewer.logging_config import get_logger

logger = get_logger(__name__)

DEFAULT_ENDPOINT = "https://api.openai.com/v1/chat/completions"
DEFAULT_MODEL = "gpt-4o"
DEFAULT_MAX_TOKENS = 1000
DEFAULT_TIMEOUT = 60
PROVIDER = "openai"


class ModelAdapter:
    """Sends prompts to an OpenAI-compatible chat completions endpoint."""

    def __init__(self, config: Dict[str, Any]):
        """
        Initialize the model adapter with configuration.

        Args:
            config: Dictionary containing model configuration
                   (api_key, endpoint, model, max_tokens, timeout, rate_limiting)
        """
        api_key = config.get("api_key") or os.environ.get("OPENAI_API_KEY")

        # Keys pasted into secrets often carry a trailing newline
        if api_key:
            api_key = api_key.strip().replace('\n', '').replace('\r', '')

        self.api_key = api_key if api_key else None
        if not self.api_key:
            logger.error("OpenAI API key is missing")
            raise MissingConfigurationError("OPENAI_API_KEY")

        self.endpoint = config.get("endpoint") or DEFAULT_ENDPOINT
        self.model = config.get("model") or DEFAULT_MODEL
        self.max_tokens = int(config.get("max_tokens", DEFAULT_MAX_TOKENS))
        # Pinned to zero so repeated runs over the same patch read the same
        self.temperature = 0
        self.timeout = config.get("timeout", DEFAULT_TIMEOUT)

        # Rate limiting configuration
        self.rate_limit_config = config.get("rate_limiting", {})
        self.max_retries = max(1, int(self.rate_limit_config.get("max_retries", 3)))
        self.initial_backoff = self.rate_limit_config.get("initial_backoff", 1)
        self.max_backoff = self.rate_limit_config.get("max_backoff", 60)

    def __repr__(self) -> str:
        return f"ModelAdapter(endpoint={self.endpoint!r}, model={self.model!r})"

    def generate_response(self, prompt: str) -> str:
        """
        Generate a response from the configured AI model.

        Args:
            prompt: The prompt to send to the AI model

        Returns:
            The generated response text, possibly empty

        Raises:
            AIProviderAPIError: If the API call keeps failing
            ReviewGenerationError: If the response has no readable content
        """
        return self._with_retry(self._call_openai, prompt)

    def _with_retry(self, api_call_func: Callable[[str], str], prompt: str) -> str:
        """
        Execute an API call with exponential backoff and full jitter.

        Only rate limits, server errors and transport failures are retried.
        """
        attempt = 0

        while True:
            attempt += 1
            try:
                return api_call_func(prompt)
            except AIProviderAPIError as e:
                if not e.is_retryable or attempt >= self.max_retries:
                    logger.error(f"Model request failed after {attempt} attempt(s): {e}")
                    raise

                # Full jitter: random(0, min(cap, base * 2^attempt))
                current_max = min(self.max_backoff, self.initial_backoff * (2 ** (attempt - 1)))
                sleep_time = random.uniform(0, current_max)

                logger.warning(
                    f"API call failed: {e}. Retrying in {sleep_time:.2f} seconds. "
                    f"Attempt {attempt}/{self.max_retries}"
                )
                time.sleep(sleep_time)

    def build_messages(self, prompt: str) -> List[Dict[str, str]]:
        return [{"role": "system", "content": prompt}]

    def _call_openai(self, prompt: str) -> str:
        """Call the chat completions API."""
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json"
        }

        payload = {
            "model": self.model,
            "messages": self.build_messages(prompt),
            "max_tokens": self.max_tokens,
            "temperature": self.temperature,
        }

        try:
            response = requests.post(self.endpoint, json=payload, headers=headers, timeout=self.timeout)
        except requests.RequestException as e:
            raise AIProviderAPIError(PROVIDER, response_text=str(e)) from e

        if response.status_code != 200:
            raise AIProviderAPIError(PROVIDER, response.status_code, response.text[:500])

        return self._extract_content(response)

    def _extract_content(self, response: requests.Response) -> str:
        try:
            content: Optional[str] = response.json()["choices"][0]["message"]["content"]
        except (ValueError, KeyError, IndexError, TypeError) as e:
            raise ReviewGenerationError(f"unexpected response format: {e}") from e

        return content or ""
