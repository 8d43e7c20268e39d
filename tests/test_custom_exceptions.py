import unittest

from patch_reviewer.custom_exceptions import (
    AIProviderAPIError,
    ConfigurationError,
    GitHubAPIError,
    InvalidConfigurationError,
    MissingConfigurationError,
    PatchReviewerError,
    ReviewGenerationError,
)


class TestErrorCodes(unittest.TestCase):
    """Test the error codes and messages."""

    def test_codes(self):
        """Every error carries its category code."""
        cases = [
            (MissingConfigurationError("GITHUB_TOKEN"), 1001),
            (InvalidConfigurationError("MAX_TOKENS", "must be at least 1"), 1002),
            (GitHubAPIError("compare", 404), 2001),
            (AIProviderAPIError("openai", 500), 2002),
            (ReviewGenerationError("no choices"), 4002),
        ]
        for error, code in cases:
            self.assertIsInstance(error, PatchReviewerError)
            self.assertEqual(error.error_code, code)
            self.assertTrue(str(error).startswith(f"[Error {code}]"))

    def test_configuration_errors_share_base(self):
        self.assertIsInstance(MissingConfigurationError("x"), ConfigurationError)
        self.assertIsInstance(InvalidConfigurationError("x", "bad"), ConfigurationError)

    def test_status_in_message(self):
        """The status code is appended only when a response came back."""
        self.assertEqual(GitHubAPIError("comments", 422).message,
                         "GitHub API error calling comments (Status: 422)")
        self.assertEqual(GitHubAPIError("comments", response_text="timed out").message,
                         "GitHub API error calling comments")

    def test_retryable(self):
        """Rate limits, server errors and transport failures are retryable."""
        self.assertTrue(AIProviderAPIError("openai").is_retryable)
        self.assertTrue(AIProviderAPIError("openai", 429).is_retryable)
        self.assertTrue(AIProviderAPIError("openai", 503).is_retryable)
        self.assertFalse(AIProviderAPIError("openai", 400).is_retryable)


if __name__ == '__main__':
    unittest.main()
