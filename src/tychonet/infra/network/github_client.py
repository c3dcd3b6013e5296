from __future__ import annotations

import logging
from typing import Any, Dict, List

import requests

from tychonet.domain.errors import SourceControlError
from tychonet.domain.models import CommitInfo
from tychonet.domain.ports import CommitResolver
from tychonet.infra.network.common import DEFAULT_TIMEOUT, USER_AGENT

logger = logging.getLogger(__name__)

GITHUB_API_ROOT = "https://api.github.com"
GITHUB_API_VERSION = "2022-11-28"


class GithubClient(CommitResolver):
    """Resolves refs to commit metadata through the GitHub REST API."""

    def __init__(self, token: str, repo: str, timeout: float = DEFAULT_TIMEOUT) -> None:
        owner, sep, name = repo.partition("/")
        if not sep or not owner or not name:
            raise ValueError(f"expected repository as 'owner/name', got {repo!r}")

        self._base_url = f"{GITHUB_API_ROOT}/repos/{owner}/{name}/"
        self._timeout = timeout
        self._headers: Dict[str, str] = {
            "User-Agent": USER_AGENT,
            "X-GitHub-Api-Version": GITHUB_API_VERSION,
        }
        if token:
            self._headers["Authorization"] = f"Bearer {token}"

    def get_commit_sha(self, ref: str) -> str:
        """Resolve a branch name, tag or short sha to the full commit sha."""
        response = self._get(f"commits/{ref}", accept="application/vnd.github.sha")
        return response.text.strip()

    def get_commit_info(self, sha: str) -> Dict[str, str]:
        data = self._get_json(f"git/commits/{sha}", dict)
        return {
            "html_url": str(data.get("html_url", "")),
            "message": str(data.get("message", "")),
        }

    def get_commit_branches(self, sha: str) -> List[str]:
        """Names of the branches whose head is `sha`."""
        data = self._get_json(f"commits/{sha}/branches-where-head", list)
        return [
            str(item["name"]) for item in data if isinstance(item, dict) and item.get("name")
        ]

    def resolve(self, ref: str) -> CommitInfo:
        """
        Resolve a ref into full commit metadata.

        Raises:
            SourceControlError: On any transport or API error.
        """
        sha = self.get_commit_sha(ref)
        info = self.get_commit_info(sha)
        branches = self.get_commit_branches(sha)
        logger.debug(f"Resolved '{ref}' to {sha} (branches: {branches})")
        return CommitInfo(
            sha=sha,
            html_url=info["html_url"],
            message=info["message"],
            branches=branches,
        )

    def _get(self, path: str, accept: str = "application/vnd.github+json") -> Any:
        headers = dict(self._headers)
        headers["Accept"] = accept
        url = self._base_url + path
        try:
            response = requests.get(url, headers=headers, timeout=self._timeout)
            response.raise_for_status()
            return response
        except requests.exceptions.RequestException as e:
            msg = f"GitHub API communication failure: {e}"
            logger.error(msg)
            raise SourceControlError(msg) from e

    def _get_json(self, path: str, expected: type) -> Any:
        """GET a JSON document and check the type of its root."""
        response = self._get(path)
        try:
            data = response.json()
        except ValueError as e:
            msg = f"GitHub API returned invalid JSON for '{path}': {e}"
            logger.error(msg)
            raise SourceControlError(msg) from e

        if not isinstance(data, expected):
            msg = f"GitHub API returned unexpected payload for '{path}': {type(data).__name__}"
            logger.error(msg)
            raise SourceControlError(msg)
        return data
