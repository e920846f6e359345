"""
GitHub REST client
Merge provenance lookups, pull request comments and code-scanning uploads
"""

import base64
import gzip
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

import requests

from .errors import GitHubError

logger = logging.getLogger(__name__)

API_VERSION = "2022-11-28"
# Hard limit on issue comment bodies
COMMENT_LIMIT = 65536


class GitHubClient:
    """Thin wrapper over the endpoints the gate needs"""

    def __init__(self, repository: str, token: str, api_url: str = "https://api.github.com",
                 session: Optional[requests.Session] = None, timeout: int = 30):
        self.repository = repository
        self.api_url = api_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({
            "Authorization": f"Bearer {token}",
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": API_VERSION,
        })

    def _url(self, path: str) -> str:
        return f"{self.api_url}/repos/{self.repository}/{path.lstrip('/')}"

    def _request(self, method: str, path: str, **kwargs) -> Any:
        try:
            resp = self.session.request(method, self._url(path), timeout=self.timeout, **kwargs)
        except requests.RequestException as e:
            raise GitHubError(f"{method} {path} failed: {e}")
        if not resp.ok:
            raise GitHubError(f"{method} {path} returned HTTP {resp.status_code}: {resp.text[:200]}")
        if not resp.content:
            return None
        try:
            return resp.json()
        except ValueError as e:
            raise GitHubError(f"{method} {path} returned a non-JSON body: {e}")

    def pull_requests_for_commit(self, commit_sha: str) -> List[Dict[str, Any]]:
        """List pull requests associated with a commit"""
        return self._request("GET", f"commits/{commit_sha}/pulls") or []

    def find_merged_pull_request(self, commit_sha: str) -> Optional[int]:
        """
        Find the merged pull request a commit came from

        Args:
            commit_sha: Commit pushed to the protected branch

        Returns:
            Pull request number, or None when the commit has no merged pull request
        """
        for pr in self.pull_requests_for_commit(commit_sha):
            if not pr.get("merged_at"):
                continue
            head_sha = (pr.get("head") or {}).get("sha")
            if commit_sha in (pr.get("merge_commit_sha"), head_sha):
                return pr.get("number")
        return None

    def post_comment(self, issue_number: int, body: str) -> str:
        """Comment on a pull request and return the comment URL"""
        if len(body) > COMMENT_LIMIT:
            body = body[:COMMENT_LIMIT - 40] + "\n\n_(comment truncated)_"
        data = self._request("POST", f"issues/{issue_number}/comments", json={"body": body})
        return (data or {}).get("html_url", "")

    def upload_sarif(self, commit_sha: str, ref: str, sarif_path: Path) -> str:
        """Upload a SARIF file to code scanning and return the upload id"""
        payload = base64.b64encode(gzip.compress(Path(sarif_path).read_bytes())).decode("ascii")
        data = self._request(
            "POST",
            "code-scanning/sarifs",
            json={"commit_sha": commit_sha, "ref": ref, "sarif": payload, "tool_name": "gate-scan"},
        )
        return (data or {}).get("id", "")


def verify_merge_provenance(client: GitHubClient, commit_sha: str) -> Optional[int]:
    """
    Prove a commit on the protected branch came from a merged pull request

    Lookup failures count as missing provenance.

    Returns:
        The merged pull request number, or None
    """
    if not commit_sha:
        return None
    try:
        number = client.find_merged_pull_request(commit_sha)
    except GitHubError as e:
        logger.error("Merge provenance lookup failed for %s: %s", commit_sha, e)
        return None
    if number is None:
        logger.warning("This commit did not come from a merged PR: %s", commit_sha)
    else:
        logger.info("Commit %s came from merged PR #%s", commit_sha[:12], number)
    return number
