"""Publishing of coverage results to GitHub.

A single :class:`Publisher` interface with two variants:

- :class:`CommentPublisher` upserts one PR comment, identified by a hidden
  marker, so reruns on the same PR update it instead of adding new ones.
- :class:`CheckPublisher` creates a completed check run on the head commit
  whose conclusion carries the verdict.

Both optionally append the rendered body to the Actions job summary file.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

from prcov.agents.reporters.markdown import to_percent
from prcov.errors import ConfigurationError
from prcov.models.coverage import PublishType
from prcov.utils.git import CheckRunParams, GitHubAPI, compute_comment_marker

if TYPE_CHECKING:
    from prcov.models.coverage import AverageCoverage
    from prcov.utils.ci_context import PullRequestContext
    from prcov.utils.git import GitHubPRInfo

logger = logging.getLogger(__name__)


@dataclass
class PublishResult:
    """Outcome of a publish call."""

    kind: PublishType
    """Which variant published."""

    url: str = ""
    """HTML URL of the comment or check run."""

    body: str = ""
    """Exact text that was published."""


class Publisher(ABC):
    """Surfaces a rendered message and verdict on the pull request."""

    kind: PublishType

    def __init__(self, api: GitHubAPI, *, summary_path: str | Path | None = None) -> None:
        """Initialize the publisher.

        Args:
            api: Authenticated GitHub client.
            summary_path: Job summary file to append to (``$GITHUB_STEP_SUMMARY``).
        """
        self._api = api
        self._summary_path = Path(summary_path) if summary_path else None

    def publish(
        self, message: str, verdict: bool, average_cover: AverageCoverage, title: str
    ) -> PublishResult:
        """Publish *message* with its verdict.

        Raises:
            GitHubAPIError: If the GitHub call fails.
        """
        result = self._publish(message, verdict, average_cover, title)
        if self._summary_path is not None:
            write_job_summary(self._summary_path, f"# {title}\n{message}")
        return result

    @abstractmethod
    def _publish(
        self, message: str, verdict: bool, average_cover: AverageCoverage, title: str
    ) -> PublishResult:
        """Variant-specific publication."""


class CommentPublisher(Publisher):
    """Creates or updates the coverage comment on a pull request."""

    kind = PublishType.COMMENT

    def __init__(
        self,
        api: GitHubAPI,
        pr_info: GitHubPRInfo,
        *,
        summary_path: str | Path | None = None,
    ) -> None:
        super().__init__(api, summary_path=summary_path)
        self._pr_info = pr_info

    @staticmethod
    def marker_for(title: str) -> str:
        """Return the hidden marker that identifies the comment for *title*."""
        return compute_comment_marker(f"prcov:{title}")

    def _publish(
        self, message: str, verdict: bool, average_cover: AverageCoverage, title: str  # noqa: ARG002
    ) -> PublishResult:
        marker = self.marker_for(title)
        body = f"{marker}\n# {title}\n{message}"

        logger.info(
            "Publishing coverage comment to PR #%d in %s/%s",
            self._pr_info.pr_number,
            self._pr_info.owner,
            self._pr_info.repo,
        )
        response = self._api.upsert_comment(self._pr_info, body, marker)
        return PublishResult(kind=self.kind, url=str(response.get("html_url", "")), body=body)


class CheckPublisher(Publisher):
    """Creates a check run on the head commit."""

    kind = PublishType.CHECK

    def __init__(
        self,
        api: GitHubAPI,
        owner: str,
        repo: str,
        head_sha: str,
        *,
        summary_path: str | Path | None = None,
    ) -> None:
        super().__init__(api, summary_path=summary_path)
        self._owner = owner
        self._repo = repo
        self._head_sha = head_sha

    def _publish(
        self, message: str, verdict: bool, average_cover: AverageCoverage, title: str
    ) -> PublishResult:
        params = CheckRunParams(
            owner=self._owner,
            repo=self._repo,
            name=title,
            head_sha=self._head_sha,
            conclusion="success" if verdict else "failure",
            title="Coverage passed" if verdict else "Coverage failed",
            summary=(
                f"Coverage {to_percent(average_cover.ratio)} / "
                f"{to_percent(average_cover.threshold)}"
            ),
            text=message,
        )

        logger.info("Publishing GitHub check...")
        response = self._api.create_check_run(params)
        return PublishResult(kind=self.kind, url=str(response.get("html_url", "")), body=message)


def create_publisher(
    publish_type: PublishType,
    api: GitHubAPI,
    context: PullRequestContext,
    *,
    summary_path: str | Path | None = None,
) -> Publisher:
    """Select the publisher variant for *publish_type*.

    Raises:
        ConfigurationError: If the context lacks what the variant needs.
    """
    if publish_type is PublishType.COMMENT:
        return CommentPublisher(api, context.pr_info(), summary_path=summary_path)

    owner, repo = context.require_repository()
    if not context.head_sha:
        raise ConfigurationError("No head SHA found. Cannot create a check.")
    return CheckPublisher(api, owner, repo, context.head_sha, summary_path=summary_path)


def write_job_summary(path: str | Path, body: str) -> None:
    """Append *body* to the GitHub Actions job summary file."""
    summary_file = Path(path)
    with summary_file.open("a", encoding="utf-8") as f:
        f.write(body)
        f.write("\n")
    logger.debug("Wrote job summary to %s", summary_file)
