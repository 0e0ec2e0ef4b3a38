"""Git and GitHub API utilities for prcov.

This module provides the GitHub REST client used to compare commits and to
publish results (PR comments and check runs), plus local ``git`` helpers.
"""

from __future__ import annotations

import asyncio
import hashlib
import logging
import os
import re
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import requests

from prcov.errors import CollaboratorError, ConfigurationError, NotFoundError

logger = logging.getLogger(__name__)

# GitHub API constants
GITHUB_API_BASE = "https://api.github.com"
_GITHUB_AUTH_ENV_KEY = "GITHUB_" + "TOKEN"
_REQUEST_TIMEOUT = 30
_PAGE_SIZE = 100
_COMPARE_FILE_LIMIT = 300
_HTTP_NOT_FOUND = 404


def _git_executable() -> str:
    """Resolve the full path to the ``git`` executable."""
    return shutil.which("git") or "git"


@dataclass
class GitHubPRInfo:
    """Information about a GitHub pull request."""

    owner: str
    """Repository owner (username or organization)."""

    repo: str
    """Repository name."""

    pr_number: int
    """Pull request number."""


@dataclass
class CheckRunParams:
    """Parameters for creating a completed check run."""

    owner: str
    """Repository owner."""

    repo: str
    """Repository name."""

    name: str
    """Check run name shown in the PR checks list."""

    head_sha: str
    """Commit the check run is attached to."""

    conclusion: str
    """``success`` or ``failure``."""

    title: str
    """Output title."""

    summary: str
    """Output summary (markdown)."""

    text: str = ""
    """Output details (markdown)."""


class GitHubAPIError(CollaboratorError):
    """Exception raised when GitHub API operations fail."""


class GitOperationError(CollaboratorError):
    """Exception raised when git operations fail."""


class GitHubAPI:
    """Client for interacting with the GitHub API.

    Handles authentication, API requests, commit comparison, PR comment
    management and check runs.
    """

    def __init__(self, token: str | None = None, *, api_url: str = GITHUB_API_BASE) -> None:
        """Initialize the GitHub API client.

        Args:
            token: GitHub token. If not provided, will try to read from the
                GITHUB_TOKEN environment variable.
            api_url: REST API root (GitHub Enterprise servers use their own).

        Raises:
            ConfigurationError: If no token is available.
        """
        self._token = token or os.environ.get(_GITHUB_AUTH_ENV_KEY)
        if not self._token:
            raise ConfigurationError(
                f"GitHub token required. Set {_GITHUB_AUTH_ENV_KEY} environment variable "
                "or pass token to constructor."
            )

        self._api_url = api_url.rstrip("/")
        self._session_headers = {
            "Authorization": f"Bearer {self._token}",
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": "2022-11-28",
        }

    # ── Commits ──────────────────────────────────────────────────

    def compare_commits(self, owner: str, repo: str, base: str, head: str) -> list[dict[str, Any]]:
        """Return the changed-file entries between two commits.

        Args:
            owner: Repository owner.
            repo: Repository name.
            base: Base commit SHA or ref.
            head: Head commit SHA or ref.

        Returns:
            File entries as returned by the API (``filename``, ``status``, ...).
            The API lists changed files on the first page only and caps them
            at 300, so a larger comparison is truncated.

        Raises:
            NotFoundError: If either ref cannot be resolved.
            GitHubAPIError: If the API request fails.
        """
        url = f"{self._api_url}/repos/{owner}/{repo}/compare/{base}...{head}"

        data = self._get(url)
        files: list[dict[str, Any]] = data.get("files") or []
        if len(files) >= _COMPARE_FILE_LIMIT:
            logger.warning(
                "Compare %s...%s returned %d files, the API limit; later files are not scored",
                base,
                head,
                len(files),
            )

        logger.debug("Compared %s...%s: %d changed file(s)", base, head, len(files))
        return files

    # ── Comments ─────────────────────────────────────────────────

    def list_comments(self, pr_info: GitHubPRInfo) -> list[dict[str, Any]]:
        """Return every comment of a pull request, following pagination.

        Raises:
            GitHubAPIError: If the API request fails.
        """
        url = (
            f"{self._api_url}/repos/{pr_info.owner}/{pr_info.repo}/"
            f"issues/{pr_info.pr_number}/comments"
        )

        comments: list[dict[str, Any]] = []
        page = 1
        while True:
            batch: list[dict[str, Any]] = self._get(
                url, params={"per_page": _PAGE_SIZE, "page": page}
            )
            comments.extend(batch)
            if len(batch) < _PAGE_SIZE:
                break
            page += 1
        return comments

    def create_comment(self, pr_info: GitHubPRInfo, body: str) -> dict[str, Any]:
        """Create a new comment on a pull request.

        Args:
            pr_info: Pull request information.
            body: Comment body (markdown formatted).

        Returns:
            GitHub API response as a dictionary.

        Raises:
            GitHubAPIError: If the API request fails.
        """
        url = (
            f"{self._api_url}/repos/{pr_info.owner}/{pr_info.repo}/"
            f"issues/{pr_info.pr_number}/comments"
        )

        result: dict[str, Any] = self._post(url, {"body": body})
        return result

    def update_comment(self, pr_info: GitHubPRInfo, comment_id: int, body: str) -> dict[str, Any]:
        """Update an existing comment on a pull request.

        Raises:
            GitHubAPIError: If the API request fails.
        """
        url = f"{self._api_url}/repos/{pr_info.owner}/{pr_info.repo}/issues/comments/{comment_id}"

        result: dict[str, Any] = self._patch(url, {"body": body})
        return result

    def find_comment_by_marker(self, pr_info: GitHubPRInfo, marker: str) -> dict[str, Any] | None:
        """Find the first PR comment whose body starts with *marker*.

        Raises:
            GitHubAPIError: If the API request fails.
        """
        for comment in self.list_comments(pr_info):
            if (comment.get("body") or "").startswith(marker):
                result: dict[str, Any] = comment
                return result

        return None

    def upsert_comment(self, pr_info: GitHubPRInfo, body: str, marker: str) -> dict[str, Any]:
        """Create or update a comment on a PR.

        If a comment starting with the given marker exists, it is updated in
        place. Otherwise, a new comment is created.

        Args:
            pr_info: Pull request information.
            body: Comment body (markdown formatted). Should start with the marker.
            marker: Unique marker identifying this comment.

        Returns:
            GitHub API response as a dictionary.

        Raises:
            GitHubAPIError: If the API request fails.
        """
        if not body.startswith(marker):
            body = f"{marker}\n{body}"

        existing = self.find_comment_by_marker(pr_info, marker)

        if existing:
            logger.info("Updating existing comment %d", existing["id"])
            return self.update_comment(pr_info, existing["id"], body)

        logger.info("Creating new comment")
        return self.create_comment(pr_info, body)

    # ── Checks ───────────────────────────────────────────────────

    def create_check_run(self, params: CheckRunParams) -> dict[str, Any]:
        """Create a completed check run on a commit.

        Raises:
            GitHubAPIError: If the API request fails.
        """
        url = f"{self._api_url}/repos/{params.owner}/{params.repo}/check-runs"

        data: dict[str, Any] = {
            "name": params.name,
            "head_sha": params.head_sha,
            "status": "completed",
            "conclusion": params.conclusion,
            "output": {
                "title": params.title,
                "summary": params.summary,
                "text": params.text,
            },
        }

        logger.info("Creating check run '%s' on %s", params.name, params.head_sha[:7])
        result: dict[str, Any] = self._post(url, data)
        return result

    # ── Transport ────────────────────────────────────────────────

    def _get(self, url: str, params: dict[str, Any] | None = None) -> Any:
        """Make a GET request to the GitHub API.

        Raises:
            NotFoundError: If the resource does not exist.
            GitHubAPIError: If the request fails.
        """
        try:
            response = requests.get(
                url, params=params, headers=self._session_headers, timeout=_REQUEST_TIMEOUT
            )
            response.raise_for_status()
            return response.json()
        except requests.HTTPError as exc:
            if exc.response is not None and exc.response.status_code == _HTTP_NOT_FOUND:
                raise NotFoundError(f"GitHub resource not found: {url}") from exc
            raise GitHubAPIError(f"GET request failed: {exc}") from exc
        except (requests.RequestException, ValueError) as exc:
            raise GitHubAPIError(f"GET request failed: {exc}") from exc

    def _post(self, url: str, data: dict[str, Any]) -> Any:
        """Make a POST request to the GitHub API.

        Raises:
            GitHubAPIError: If the request fails.
        """
        try:
            response = requests.post(
                url, json=data, headers=self._session_headers, timeout=_REQUEST_TIMEOUT
            )
            response.raise_for_status()
            return response.json()
        except (requests.RequestException, ValueError) as exc:
            raise GitHubAPIError(f"POST request failed: {exc}") from exc

    def _patch(self, url: str, data: dict[str, Any]) -> Any:
        """Make a PATCH request to the GitHub API.

        Raises:
            GitHubAPIError: If the request fails.
        """
        try:
            response = requests.patch(
                url, json=data, headers=self._session_headers, timeout=_REQUEST_TIMEOUT
            )
            response.raise_for_status()
            return response.json()
        except (requests.RequestException, ValueError) as exc:
            raise GitHubAPIError(f"PATCH request failed: {exc}") from exc


def compute_comment_marker(prefix: str) -> str:
    """Generate a unique marker for a GitHub comment.

    This creates an HTML comment marker that can be used to identify
    and update specific comments on a PR.

    Args:
        prefix: Prefix for the marker (e.g., "prcov:Python Coverage").

    Returns:
        HTML comment marker string.
    """
    hash_str = hashlib.sha256(prefix.encode()).hexdigest()[:8]
    return f"<!-- {prefix}:{hash_str} -->"


_GIT_REF_MAX_LENGTH = 255
_GIT_REF_UNSAFE = re.compile(r"[\x00-\x1f\x7f \~\^:\?\*\[\]\\;|&$`()<>{}!#'\"]")
_UNKNOWN_REVISION_RE = re.compile(r"unknown revision|bad revision|not a valid object name")


def validate_git_ref(ref: str) -> None:
    """Validate a git ref to prevent injection and malformed inputs.

    Raises:
        ConfigurationError: If the ref is invalid.
    """
    if not ref:
        raise ConfigurationError("Git ref must not be empty")
    if len(ref) > _GIT_REF_MAX_LENGTH:
        raise ConfigurationError(f"Git ref exceeds {_GIT_REF_MAX_LENGTH} characters")
    if _GIT_REF_UNSAFE.search(ref):
        raise ConfigurationError(f"Git ref contains unsafe characters: {ref!r}")
    if ref.startswith("-"):
        raise ConfigurationError("Git ref must not start with a dash")
    if ".." in ref:
        raise ConfigurationError("Git ref must not contain '..'")


async def git_diff_name_status(repo_path: Path | str, base: str, head: str) -> str:
    """Run ``git diff --name-status base...head`` and return its output.

    Args:
        repo_path: Path to git repository.
        base: Base commit.
        head: Head commit.

    Returns:
        Raw ``--name-status`` output.

    Raises:
        ConfigurationError: If a ref is malformed.
        NotFoundError: If git cannot resolve a ref.
        GitOperationError: If git fails for any other reason.
    """
    validate_git_ref(base)
    validate_git_ref(head)

    cmd = [_git_executable(), "diff", "--name-status", f"{base}...{head}"]
    logger.debug("Running: %s", " ".join(cmd))

    try:
        proc = await asyncio.create_subprocess_exec(
            *cmd,
            cwd=Path(repo_path),
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
        stdout, stderr = await proc.communicate()
    except OSError as exc:
        raise GitOperationError(f"Failed to run git: {exc}") from exc

    if proc.returncode != 0:
        message = stderr.decode("utf-8", errors="replace").strip()
        if _UNKNOWN_REVISION_RE.search(message):
            raise NotFoundError(
                f"Cannot resolve commits {base}...{head}: {message}",
                context={"base": base, "head": head},
            )
        raise GitOperationError(f"git diff {base}...{head} failed: {message}")

    return stdout.decode("utf-8", errors="replace")
