"""Tests for the score pipeline (agents/pipelines/score.py)."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any
from unittest.mock import MagicMock, patch

import pytest

if TYPE_CHECKING:
    from pathlib import Path

from prcov.agents.analyzers.diff import DiffProvider, GitDiffProvider, GitHubDiffProvider
from prcov.agents.pipelines import ScorePipeline, create_score_pipeline
from prcov.agents.reporters.publisher import CheckPublisher, CommentPublisher, PublishResult
from prcov.config import PrcovConfig, apply_overrides
from prcov.errors import CollaboratorError, ConfigurationError, MalformedReportError, NotFoundError
from prcov.models.coverage import DiffFileSet, PublishType
from prcov.utils.ci_context import PullRequestContext


class _StaticDiffProvider(DiffProvider):
    """Diff provider returning a fixed diff set and recording calls."""

    def __init__(self, diff_set: DiffFileSet | Exception) -> None:
        self._diff_set = diff_set
        self.calls: list[tuple[str, str]] = []

    async def compare(self, base: str, head: str) -> DiffFileSet:
        self.calls.append((base, head))
        if isinstance(self._diff_set, Exception):
            raise self._diff_set
        return self._diff_set


def _write_report(root: Path, files: dict[str, tuple[int, int]]) -> None:
    data: dict[str, Any] = {
        "files": {
            path: {"summary": {"covered_lines": covered, "num_statements": total}}
            for path, (covered, total) in files.items()
        }
    }
    (root / "coverage.json").write_text(json.dumps(data), encoding="utf-8")


@pytest.fixture()
def context() -> PullRequestContext:
    """Pull request context with both commits known."""
    return PullRequestContext(
        owner="octocat",
        repo="hello-world",
        pr_number=42,
        base_sha="base000",
        head_sha="head1234567",
        event_name="pull_request",
    )


@pytest.fixture()
def diff_provider() -> _StaticDiffProvider:
    """Diff where B.py is new and A.py modified."""
    return _StaticDiffProvider(
        DiffFileSet(new_files=frozenset({"B.py"}), modified_files=frozenset({"A.py"}))
    )


def _config(**overrides: Any) -> PrcovConfig:
    return apply_overrides(PrcovConfig(), **overrides)


# ── ScorePipeline ────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_pipeline_passes_and_publishes(
    tmp_path: Path, context: PullRequestContext, diff_provider: _StaticDiffProvider
) -> None:
    _write_report(tmp_path, {"A.py": (8, 10), "B.py": (2, 2)})
    publisher = MagicMock()
    publisher.publish.return_value = PublishResult(kind=PublishType.COMMENT, url="u")
    config = _config(threshold_overall=0.7, threshold_new=0.9, threshold_modified=0.7, title="T")

    result = await ScorePipeline(
        config, context, diff_provider, publisher, report_root=tmp_path
    ).run()

    assert diff_provider.calls == [("base000", "head1234567")]
    assert result.passed
    assert not result.fails_host
    assert [e.path for e in result.files_coverage.new_cover] == ["B.py"]
    assert [e.path for e in result.files_coverage.modified_cover] == ["A.py"]
    assert "updated for commit: `head123`" in result.message

    publisher.publish.assert_called_once()
    message, verdict, average_cover, title = publisher.publish.call_args[0]
    assert message == result.message
    assert verdict is True
    assert average_cover.total == 12
    assert title == "T"
    assert result.publication is not None
    assert result.publication.url == "u"


@pytest.mark.asyncio
async def test_pipeline_failing_comment_fails_host(
    tmp_path: Path, context: PullRequestContext, diff_provider: _StaticDiffProvider
) -> None:
    _write_report(tmp_path, {"A.py": (8, 10), "B.py": (2, 2)})
    config = _config(threshold_overall=0.9, publish_type="comment")

    result = await ScorePipeline(config, context, diff_provider, report_root=tmp_path).run()

    assert not result.passed
    assert result.fails_host
    assert result.publication is None


@pytest.mark.asyncio
async def test_pipeline_failing_check_does_not_fail_host(
    tmp_path: Path, context: PullRequestContext, diff_provider: _StaticDiffProvider
) -> None:
    _write_report(tmp_path, {"A.py": (8, 10), "B.py": (2, 2)})
    config = _config(threshold_overall=0.9, publish_type="check")

    result = await ScorePipeline(config, context, diff_provider, report_root=tmp_path).run()

    assert not result.passed
    assert not result.fails_host


@pytest.mark.asyncio
async def test_pipeline_invalid_config_stops_before_diff(
    tmp_path: Path, context: PullRequestContext, diff_provider: _StaticDiffProvider
) -> None:
    config = _config(threshold_new=80)

    with pytest.raises(ConfigurationError, match="thresholds.new"):
        await ScorePipeline(config, context, diff_provider, report_root=tmp_path).run()

    assert diff_provider.calls == []


@pytest.mark.asyncio
async def test_pipeline_missing_commits(
    tmp_path: Path, diff_provider: _StaticDiffProvider
) -> None:
    context = PullRequestContext(owner="o", repo="r", pr_number=1)

    with pytest.raises(ConfigurationError, match="Base and head commits are required"):
        await ScorePipeline(_config(), context, diff_provider, report_root=tmp_path).run()


@pytest.mark.asyncio
async def test_pipeline_missing_report(
    tmp_path: Path, context: PullRequestContext, diff_provider: _StaticDiffProvider
) -> None:
    publisher = MagicMock()

    with pytest.raises(NotFoundError):
        await ScorePipeline(
            _config(), context, diff_provider, publisher, report_root=tmp_path
        ).run()

    publisher.publish.assert_not_called()


@pytest.mark.asyncio
async def test_pipeline_malformed_report(
    tmp_path: Path, context: PullRequestContext, diff_provider: _StaticDiffProvider
) -> None:
    (tmp_path / "coverage.json").write_text("{}", encoding="utf-8")

    with pytest.raises(MalformedReportError):
        await ScorePipeline(_config(), context, diff_provider, report_root=tmp_path).run()


@pytest.mark.asyncio
async def test_pipeline_diff_failure_propagates(
    tmp_path: Path, context: PullRequestContext
) -> None:
    _write_report(tmp_path, {"A.py": (1, 1)})
    provider = _StaticDiffProvider(CollaboratorError("compare failed"))

    with pytest.raises(CollaboratorError, match="compare failed"):
        await ScorePipeline(_config(), context, provider, report_root=tmp_path).run()


@pytest.mark.asyncio
async def test_pipeline_uses_configured_report_path(
    tmp_path: Path, context: PullRequestContext, diff_provider: _StaticDiffProvider
) -> None:
    (tmp_path / "build").mkdir()
    (tmp_path / "build" / "cov.json").write_text(
        json.dumps({"files": {"A.py": {"summary": {"covered_lines": 1, "num_statements": 2}}}}),
        encoding="utf-8",
    )

    result = await ScorePipeline(
        _config(coverage_file="build/cov.json"), context, diff_provider, report_root=tmp_path
    ).run()

    assert result.files_coverage.average_cover.total == 2
    assert result.files_coverage.new_cover == ()


# ── create_score_pipeline ────────────────────────────────────────


def test_create_pipeline_github_comment(context: PullRequestContext) -> None:
    with patch("prcov.agents.pipelines.score.GitHubAPI") as mock_api_cls:
        pipeline = create_score_pipeline(_config(), context, token="t")

    mock_api_cls.assert_called_once_with(token="t", api_url="https://api.github.com")
    assert isinstance(pipeline._diff_provider, GitHubDiffProvider)
    assert isinstance(pipeline._publisher, CommentPublisher)


def test_create_pipeline_git_check(context: PullRequestContext, tmp_path: Path) -> None:
    config = _config(diff_source="git", publish_type="check")

    with patch("prcov.agents.pipelines.score.GitHubAPI"):
        pipeline = create_score_pipeline(config, context, token="t", repo_path=tmp_path)

    assert isinstance(pipeline._diff_provider, GitDiffProvider)
    assert isinstance(pipeline._publisher, CheckPublisher)


def test_create_pipeline_dry_run_with_git_needs_no_token(context: PullRequestContext) -> None:
    with patch("prcov.agents.pipelines.score.GitHubAPI") as mock_api_cls:
        pipeline = create_score_pipeline(_config(diff_source="git"), context, dry_run=True)

    mock_api_cls.assert_not_called()
    assert pipeline._publisher is None


def test_create_pipeline_validates_first(context: PullRequestContext) -> None:
    with (
        patch("prcov.agents.pipelines.score.GitHubAPI") as mock_api_cls,
        pytest.raises(ConfigurationError, match="Invalid publish type"),
    ):
        create_score_pipeline(_config(publish_type="status"), context, token="t")

    mock_api_cls.assert_not_called()
