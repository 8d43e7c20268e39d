"""
Errors raised by the patch reviewer.

Each class has a numeric code: 1xxx configuration, 2xxx remote APIs,
4xxx model output.
"""

from typing import Optional


class PatchReviewerError(Exception):
    """Root of every error the reviewer raises on purpose."""

    code = 0

    def __init__(self, message: str, error_code: Optional[int] = None):
        self.message = message
        self.error_code = self.code if error_code is None else error_code
        super().__init__(f"[Error {self.error_code}] {message}")


class ConfigurationError(PatchReviewerError):
    code = 1000


class MissingConfigurationError(ConfigurationError):
    """A required setting (environment variable, config file) is absent."""

    code = 1001

    def __init__(self, config_key: str):
        self.config_key = config_key
        super().__init__(f"Missing required configuration: {config_key}")


class InvalidConfigurationError(ConfigurationError):
    """A setting is present but cannot be used."""

    code = 1002

    def __init__(self, config_key: str, reason: str):
        self.config_key = config_key
        super().__init__(f"Invalid configuration value for {config_key}: {reason}")


class APIError(PatchReviewerError):
    """
    A remote call failed.

    ``status_code`` is None when no response came back at all (timeout,
    connection reset); ``response_text`` then holds the transport error.
    """

    code = 2000

    def __init__(self, message: str, status_code: Optional[int] = None,
                 response_text: Optional[str] = None):
        self.status_code = status_code
        self.response_text = response_text
        if status_code:
            message = f"{message} (Status: {status_code})"
        super().__init__(message)


class GitHubAPIError(APIError):
    code = 2001

    def __init__(self, endpoint: str, status_code: Optional[int] = None,
                 response_text: Optional[str] = None):
        self.endpoint = endpoint
        super().__init__(f"GitHub API error calling {endpoint}", status_code, response_text)


class AIProviderAPIError(APIError):
    """The chat completions endpoint answered with an error or not at all."""

    code = 2002

    def __init__(self, provider: str, status_code: Optional[int] = None,
                 response_text: Optional[str] = None):
        self.provider = provider
        super().__init__(f"{provider} API error", status_code, response_text)

    @property
    def is_retryable(self) -> bool:
        return self.status_code is None or self.status_code == 429 or self.status_code >= 500


class ReviewGenerationError(PatchReviewerError):
    """The model answered 200 but the body has no completion in it."""

    code = 4002

    def __init__(self, reason: str):
        super().__init__(f"Failed to generate review: {reason}")
