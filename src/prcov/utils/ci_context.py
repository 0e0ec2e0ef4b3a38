"""Pull-request run context.

The repository, pull request number and commit SHAs are carried in an
explicit :class:`PullRequestContext` value handed to the pipeline, so the
core never reads the hosted environment itself.
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, replace
from pathlib import Path
from typing import TYPE_CHECKING, Any

from prcov.errors import ConfigurationError
from prcov.utils.git import GitHubPRInfo

if TYPE_CHECKING:
    from collections.abc import Mapping

logger = logging.getLogger(__name__)

# Expected number of parts when splitting "owner/repo"
_OWNER_REPO_PARTS = 2
_SHORT_SHA_LENGTH = 7
PULL_REQUEST_EVENT = "pull_request"


@dataclass(frozen=True)
class PullRequestContext:
    """Where and on what the pipeline runs."""

    owner: str | None = None
    """Repository owner (org or user)."""

    repo: str | None = None
    """Repository name."""

    pr_number: int | None = None
    """Pull request number."""

    base_sha: str | None = None
    """Base commit of the pull request."""

    head_sha: str | None = None
    """Head commit of the pull request."""

    event_name: str | None = None
    """Triggering event name, when known."""

    @classmethod
    def from_github_env(cls, environ: Mapping[str, str] | None = None) -> PullRequestContext:
        """Build a context from GitHub Actions environment variables.

        Reads ``GITHUB_REPOSITORY``, ``GITHUB_EVENT_NAME`` and the event
        payload at ``GITHUB_EVENT_PATH``. Missing values are left as None.
        """
        env = os.environ if environ is None else environ

        owner, repo = parse_repository(env.get("GITHUB_REPOSITORY", ""))
        payload = _load_event_payload(env.get("GITHUB_EVENT_PATH", ""))
        pull_request = payload.get("pull_request")
        if not isinstance(pull_request, dict):
            pull_request = {}

        return cls(
            owner=owner,
            repo=repo,
            pr_number=_parse_int(pull_request.get("number")),
            base_sha=_nested_str(pull_request, "base", "sha"),
            head_sha=_nested_str(pull_request, "head", "sha"),
            event_name=env.get("GITHUB_EVENT_NAME") or None,
        )

    def with_overrides(self, **values: Any) -> PullRequestContext:
        """Return a copy where every non-None value in *values* replaces the current one."""
        return replace(self, **{key: value for key, value in values.items() if value is not None})

    @property
    def is_pull_request(self) -> bool:
        """Return False only when the triggering event is known and is not a pull request."""
        return self.event_name in (None, PULL_REQUEST_EVENT)

    @property
    def short_sha(self) -> str:
        """Abbreviated head SHA, or an empty string."""
        return (self.head_sha or "")[:_SHORT_SHA_LENGTH]

    def require_commits(self) -> tuple[str, str]:
        """Return ``(base_sha, head_sha)``.

        Raises:
            ConfigurationError: If either commit is missing.
        """
        if not self.base_sha or not self.head_sha:
            raise ConfigurationError(
                "Base and head commits are required "
                f"(base: {self.base_sha or 'missing'}, head: {self.head_sha or 'missing'}). "
                "Run on a pull_request event or pass --base and --head."
            )
        return self.base_sha, self.head_sha

    def require_repository(self) -> tuple[str, str]:
        """Return ``(owner, repo)``.

        Raises:
            ConfigurationError: If the repository is unknown.
        """
        if not self.owner or not self.repo:
            raise ConfigurationError("Repository is required (owner/repo); pass --repository")
        return self.owner, self.repo

    def pr_info(self) -> GitHubPRInfo:
        """Return the pull request coordinates used for commenting.

        Raises:
            ConfigurationError: If the repository or PR number is unknown.
        """
        owner, repo = self.require_repository()
        if self.pr_number is None:
            raise ConfigurationError("Pull request number is required; pass --pr")
        return GitHubPRInfo(owner=owner, repo=repo, pr_number=self.pr_number)


def parse_repository(value: str) -> tuple[str | None, str | None]:
    """Split ``owner/repo`` into its parts; (None, None) if malformed."""
    parts = value.split("/") if value else []
    if len(parts) != _OWNER_REPO_PARTS or not all(parts):
        return None, None
    return parts[0], parts[1]


def is_ci() -> bool:
    """Return True when running under a CI service."""
    return os.getenv("GITHUB_ACTIONS") == "true" or os.getenv("CI") == "true"


def _load_event_payload(path: str) -> dict[str, Any]:
    """Read the webhook payload GitHub Actions writes for the triggering event."""
    if not path:
        return {}
    try:
        payload = json.loads(Path(path).read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        logger.warning("Could not read event payload %s: %s", path, exc)
        return {}
    return payload if isinstance(payload, dict) else {}


def _nested_str(data: dict[str, Any], *keys: str) -> str | None:
    node: Any = data
    for key in keys:
        if not isinstance(node, dict):
            return None
        node = node.get(key)
    return str(node) if node else None


def _parse_int(value: Any) -> int | None:
    """Parse value to int, return None if invalid."""
    if value is None or value == "" or isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None
