import json
import unittest

import responses

from patch_reviewer.custom_exceptions import GitHubAPIError, MissingConfigurationError
from patch_reviewer.github_client import GitHubClient
from patch_reviewer.models import CommitRange


class TestGitHubClient(unittest.TestCase):
    """Test the GitHubClient class."""

    def setUp(self):
        """Set up test fixtures."""
        self.token = "test-token"
        self.client = GitHubClient(self.token, timeout=5)
        self.compare_url = "https://api.github.com/repos/octo/hello/compare/base-sha...head-sha"
        self.comments_url = "https://api.github.com/repos/octo/hello/pulls/7/comments"

    def test_missing_token(self):
        """A client cannot be built without a token."""
        with self.assertRaises(MissingConfigurationError):
            GitHubClient("")

    def test_repr_hides_token(self):
        """The token never shows up in the client's repr."""
        self.assertNotIn(self.token, repr(self.client))

    @responses.activate
    def test_compare_commits(self):
        """Test the three-dot compare request."""
        payload = {
            "files": [{"filename": "a.py", "patch": "@@ -1 +1 @@\n-a\n+b"}],
            "commits": [{"sha": "c1"}, {"sha": "c2"}],
        }
        responses.add(responses.GET, self.compare_url, json=payload, status=200)

        data = self.client.compare_commits("octo", "hello", "base-sha", "head-sha")

        self.assertEqual(data, payload)
        commit_range = CommitRange(owner="octo", repo="hello", base="base-sha", head="head-sha")
        self.assertTrue(responses.calls[0].request.url.endswith(f"/compare/{commit_range.basehead}"))
        request_headers = responses.calls[0].request.headers
        self.assertEqual(request_headers["Authorization"], f"Bearer {self.token}")
        self.assertEqual(request_headers["Accept"], "application/vnd.github.v3+json")

    @responses.activate
    def test_compare_commits_not_found(self):
        """HTTP errors are raised as GitHubAPIError with the status code."""
        responses.add(responses.GET, self.compare_url, json={"message": "Not Found"}, status=404)

        with self.assertRaises(GitHubAPIError) as cm:
            self.client.compare_commits("octo", "hello", "base-sha", "head-sha")

        self.assertEqual(cm.exception.status_code, 404)
        self.assertIn("Not Found", cm.exception.response_text)

    @responses.activate
    def test_connection_error(self):
        """Transport failures are raised as GitHubAPIError without a status."""
        with self.assertRaises(GitHubAPIError) as cm:
            self.client.compare_commits("octo", "hello", "base-sha", "head-sha")

        self.assertIsNone(cm.exception.status_code)

    @responses.activate
    def test_create_review_comment(self):
        """Test the review comment payload."""
        responses.add(responses.POST, self.comments_url, json={"id": 1}, status=201)

        result = self.client.create_review_comment(
            owner="octo",
            repo="hello",
            pull_number=7,
            commit_id="c2",
            path="a.py",
            body="Check the bounds.",
            position=11,
        )

        self.assertEqual(result, {"id": 1})
        self.assertEqual(json.loads(responses.calls[0].request.body), {
            "commit_id": "c2",
            "path": "a.py",
            "body": "Check the bounds.",
            "position": 11,
        })

    @responses.activate
    def test_create_review_comment_rejected(self):
        """A rejected comment raises GitHubAPIError."""
        responses.add(responses.POST, self.comments_url, json={"message": "Validation Failed"}, status=422)

        with self.assertRaises(GitHubAPIError) as cm:
            self.client.create_review_comment("octo", "hello", 7, "c2", "a.py", "body", 3)

        self.assertEqual(cm.exception.status_code, 422)

    @responses.activate
    def test_get_pull_request(self):
        """Test fetching pull request details."""
        responses.add(
            responses.GET,
            "https://api.github.com/repos/octo/hello/pulls/7",
            json={"base": {"sha": "b"}, "head": {"sha": "h"}},
            status=200
        )

        pull = self.client.get_pull_request("octo", "hello", 7)

        self.assertEqual(pull["head"]["sha"], "h")

    @responses.activate
    def test_custom_base_url(self):
        """Enterprise API URLs are honoured."""
        client = GitHubClient(self.token, base_url="https://ghe.example.com/api/v3/")
        responses.add(
            responses.GET,
            "https://ghe.example.com/api/v3/repos/octo/hello/compare/a...b",
            json={"files": [], "commits": []},
            status=200
        )

        self.assertEqual(client.compare_commits("octo", "hello", "a", "b"), {"files": [], "commits": []})


if __name__ == '__main__':
    unittest.main()
