import json
import unittest
from unittest.mock import patch

import responses

from patch_reviewer.custom_exceptions import (
    AIProviderAPIError,
    MissingConfigurationError,
    ReviewGenerationError,
)
from patch_reviewer.model_adapters import DEFAULT_ENDPOINT, ModelAdapter


class TestModelAdapter(unittest.TestCase):
    """Test the ModelAdapter class."""

    def setUp(self):
        """Set up test fixtures."""
        self.openai_config = {
            "api_key": "test-key-openai",
            "endpoint": DEFAULT_ENDPOINT,
            "model": "gpt-4o",
            "max_tokens": 1000,
            "rate_limiting": {"max_retries": 3, "initial_backoff": 0},
        }

    def test_init_defaults(self):
        """Unset values fall back to the defaults."""
        adapter = ModelAdapter({"api_key": "k"})

        self.assertEqual(adapter.model, "gpt-4o")
        self.assertEqual(adapter.endpoint, DEFAULT_ENDPOINT)
        self.assertEqual(adapter.max_tokens, 1000)
        self.assertEqual(adapter.temperature, 0)

    def test_generate_response_calls_chat_api(self):
        """generate_response goes straight to the chat completions call."""
        adapter = ModelAdapter(self.openai_config)

        with patch.object(adapter, "_call_openai", return_value="LGTM") as mock_call:
            self.assertEqual(adapter.generate_response("review this"), "LGTM")

        mock_call.assert_called_once_with("review this")

    @patch.dict('os.environ', {'OPENAI_API_KEY': ' env-key-openai\n'})
    def test_init_api_key_from_env(self):
        """Test that API key is taken from environment if not in config."""
        config = self.openai_config.copy()
        del config["api_key"]
        adapter = ModelAdapter(config)
        self.assertEqual(adapter.api_key, "env-key-openai")

    @patch.dict('os.environ', {}, clear=True)
    def test_init_missing_api_key(self):
        """Test that a missing API key is a configuration error."""
        config = self.openai_config.copy()
        del config["api_key"]
        with self.assertRaises(MissingConfigurationError):
            ModelAdapter(config)

    @responses.activate
    def test_call_openai_chat(self):
        """Test the chat completions request and response."""
        responses.add(
            responses.POST,
            DEFAULT_ENDPOINT,
            json={"choices": [{"message": {"content": "Review response"}}]},
            status=200
        )

        adapter = ModelAdapter(self.openai_config)
        response = adapter.generate_response("Test prompt")

        self.assertEqual(response, "Review response")
        self.assertEqual(len(responses.calls), 1)

        payload = json.loads(responses.calls[0].request.body)
        self.assertEqual(payload["model"], "gpt-4o")
        self.assertEqual(payload["messages"], [{"role": "system", "content": "Test prompt"}])
        self.assertEqual(payload["max_tokens"], 1000)
        self.assertEqual(payload["temperature"], 0)
        self.assertEqual(responses.calls[0].request.headers["Authorization"], "Bearer test-key-openai")

    @responses.activate
    def test_null_content(self):
        """A null message content is read as an empty review."""
        responses.add(
            responses.POST,
            DEFAULT_ENDPOINT,
            json={"choices": [{"message": {"content": None}}]},
            status=200
        )

        adapter = ModelAdapter(self.openai_config)

        self.assertEqual(adapter.generate_response("Test prompt"), "")

    @responses.activate
    def test_malformed_response(self):
        """A response without choices cannot be turned into a review."""
        responses.add(responses.POST, DEFAULT_ENDPOINT, json={"choices": []}, status=200)

        adapter = ModelAdapter(self.openai_config)

        with self.assertRaises(ReviewGenerationError):
            adapter.generate_response("Test prompt")

    @responses.activate
    def test_client_error_not_retried(self):
        """Client errors other than 429 fail on the first attempt."""
        responses.add(
            responses.POST,
            DEFAULT_ENDPOINT,
            json={"error": {"message": "API error"}},
            status=400
        )

        adapter = ModelAdapter(self.openai_config)

        with self.assertRaises(AIProviderAPIError) as cm:
            adapter.generate_response("Test prompt")

        self.assertEqual(cm.exception.status_code, 400)
        self.assertEqual(len(responses.calls), 1)

    @responses.activate
    @patch("patch_reviewer.model_adapters.time.sleep")
    def test_rate_limit_retried(self, mock_sleep):
        """A 429 response is retried with backoff."""
        responses.add(responses.POST, DEFAULT_ENDPOINT, json={"error": "slow down"}, status=429)
        responses.add(
            responses.POST,
            DEFAULT_ENDPOINT,
            json={"choices": [{"message": {"content": "Review response"}}]},
            status=200
        )

        adapter = ModelAdapter(self.openai_config)

        self.assertEqual(adapter.generate_response("Test prompt"), "Review response")
        self.assertEqual(len(responses.calls), 2)
        mock_sleep.assert_called_once()

    @responses.activate
    @patch("patch_reviewer.model_adapters.time.sleep")
    def test_server_error_exhausts_retries(self, mock_sleep):
        """Persistent server errors are raised after the last attempt."""
        responses.add(responses.POST, DEFAULT_ENDPOINT, body="upstream down", status=503)

        adapter = ModelAdapter(self.openai_config)

        with self.assertRaises(AIProviderAPIError) as cm:
            adapter.generate_response("Test prompt")

        self.assertEqual(cm.exception.status_code, 503)
        self.assertEqual(len(responses.calls), 3)
        self.assertEqual(mock_sleep.call_count, 2)


if __name__ == '__main__':
    unittest.main()
