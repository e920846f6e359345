"""
Unit tests for the GitHub REST client and merge provenance
"""

import os
import sys
import tempfile
import unittest
from unittest.mock import Mock

import requests

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from gate.errors import GitHubError
from gate.github import COMMENT_LIMIT, GitHubClient, verify_merge_provenance

MERGED_PR = {
    "number": 42,
    "merged_at": "2024-05-01T10:00:00Z",
    "merge_commit_sha": "mergesha",
    "head": {"sha": "headsha"},
}


def response(data=None, status=200):
    resp = Mock()
    resp.ok = 200 <= status < 300
    resp.status_code = status
    resp.content = b"{}" if data is not None else b""
    resp.text = str(data)
    resp.json.return_value = data
    return resp


class TestGitHubClient(unittest.TestCase):
    """Test REST calls against a mocked session"""

    def setUp(self):
        self.session = Mock()
        self.session.headers = {}
        self.client = GitHubClient("org/infra", "ghs_token", session=self.session)

    def test_auth_headers(self):
        self.assertEqual(self.session.headers["Authorization"], "Bearer ghs_token")

    def test_find_merged_pull_request(self):
        self.session.request.return_value = response([MERGED_PR])
        self.assertEqual(self.client.find_merged_pull_request("mergesha"), 42)
        method, url = self.session.request.call_args.args
        self.assertEqual(method, "GET")
        self.assertEqual(url, "https://api.github.com/repos/org/infra/commits/mergesha/pulls")

    def test_rebase_merge_matches_head(self):
        self.session.request.return_value = response([MERGED_PR])
        self.assertEqual(self.client.find_merged_pull_request("headsha"), 42)

    def test_open_pull_request_is_not_provenance(self):
        open_pr = {**MERGED_PR, "merged_at": None}
        self.session.request.return_value = response([open_pr])
        self.assertIsNone(self.client.find_merged_pull_request("mergesha"))

    def test_unrelated_commit(self):
        self.session.request.return_value = response([MERGED_PR])
        self.assertIsNone(self.client.find_merged_pull_request("othersha"))

    def test_http_error(self):
        self.session.request.return_value = response({"message": "Not Found"}, status=404)
        with self.assertRaises(GitHubError):
            self.client.pull_requests_for_commit("sha")

    def test_network_error(self):
        self.session.request.side_effect = requests.ConnectionError("reset")
        with self.assertRaises(GitHubError):
            self.client.pull_requests_for_commit("sha")

    def test_non_json_success_body(self):
        resp = response([], 200)
        resp.content = b"<html>proxy</html>"
        resp.json.side_effect = requests.exceptions.JSONDecodeError("Expecting value", "<html>proxy</html>", 0)
        self.session.request.return_value = resp
        with self.assertRaises(GitHubError):
            self.client.post_comment(42, "hello")

    def test_post_comment(self):
        self.session.request.return_value = response({"html_url": "https://github.com/org/infra/pull/42#c1"}, 201)
        url = self.client.post_comment(42, "hello")
        self.assertEqual(url, "https://github.com/org/infra/pull/42#c1")
        self.assertEqual(self.session.request.call_args.kwargs["json"], {"body": "hello"})

    def test_post_comment_truncates(self):
        self.session.request.return_value = response({"html_url": ""}, 201)
        self.client.post_comment(42, "x" * (COMMENT_LIMIT + 10))
        body = self.session.request.call_args.kwargs["json"]["body"]
        self.assertLessEqual(len(body), COMMENT_LIMIT)
        self.assertIn("truncated", body)

    def test_upload_sarif(self):
        with tempfile.NamedTemporaryFile("w", suffix=".sarif", delete=False) as f:
            f.write('{"runs": []}')
        self.addCleanup(os.unlink, f.name)
        self.session.request.return_value = response({"id": "upload-1"}, 202)

        self.assertEqual(self.client.upload_sarif("sha", "refs/heads/main", f.name), "upload-1")
        payload = self.session.request.call_args.kwargs["json"]
        self.assertEqual(payload["commit_sha"], "sha")
        self.assertTrue(payload["sarif"])


class TestVerifyMergeProvenance(unittest.TestCase):
    """Test the fail-closed provenance check"""

    def test_merged(self):
        client = Mock()
        client.find_merged_pull_request.return_value = 42
        self.assertEqual(verify_merge_provenance(client, "sha"), 42)

    def test_not_merged(self):
        client = Mock()
        client.find_merged_pull_request.return_value = None
        self.assertIsNone(verify_merge_provenance(client, "sha"))

    def test_lookup_failure_fails_closed(self):
        client = Mock()
        client.find_merged_pull_request.side_effect = GitHubError("HTTP 502")
        self.assertIsNone(verify_merge_provenance(client, "sha"))

    def test_missing_sha(self):
        client = Mock()
        self.assertIsNone(verify_merge_provenance(client, ""))
        client.find_merged_pull_request.assert_not_called()


if __name__ == '__main__':
    unittest.main()
