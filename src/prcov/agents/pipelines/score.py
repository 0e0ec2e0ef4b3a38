"""Score pipeline: diff, parse, classify, aggregate, score, render and publish.

Every step depends on the previous one, so the pipeline is a single
sequential chain. Boundary calls (commit diff, report read, publish) are
awaited; any failure propagates and aborts the run without a verdict.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

from prcov.adapters.coverage import CoveragePyAdapter, read_report
from prcov.agents.analyzers.coverage import aggregate
from prcov.agents.analyzers.diff import GitDiffProvider, GitHubDiffProvider, classify
from prcov.agents.analyzers.threshold import score
from prcov.agents.reporters.markdown import render_summary
from prcov.agents.reporters.publisher import create_publisher
from prcov.config import ensure_valid
from prcov.models.coverage import PublishType
from prcov.utils.git import GitHubAPI

if TYPE_CHECKING:
    from prcov.adapters.coverage import CoverageAdapter
    from prcov.agents.analyzers.diff import DiffProvider
    from prcov.agents.reporters.publisher import Publisher, PublishResult
    from prcov.config import PrcovConfig
    from prcov.models.coverage import DiffFileSet, FilesCoverage, ScoreResult
    from prcov.utils.ci_context import PullRequestContext

logger = logging.getLogger(__name__)


@dataclass
class ScorePipelineResult:
    """Result of a score pipeline run."""

    diff_set: DiffFileSet
    """Changed files between base and head."""

    files_coverage: FilesCoverage
    """Aggregated coverage."""

    score: ScoreResult
    """Verdict."""

    message: str
    """Rendered markdown summary."""

    publish_type: PublishType
    """Configured publishing mode."""

    publication: PublishResult | None = None
    """What was published; None on a dry run."""

    @property
    def passed(self) -> bool:
        return self.score.pass_overall

    @property
    def fails_host(self) -> bool:
        """Return True when the invoking process must report failure.

        In check mode the failure is carried by the check conclusion instead.
        """
        return not self.score.pass_overall and self.publish_type is PublishType.COMMENT


class ScorePipeline:
    """Runs one coverage scoring invocation."""

    def __init__(
        self,
        config: PrcovConfig,
        context: PullRequestContext,
        diff_provider: DiffProvider,
        publisher: Publisher | None = None,
        *,
        adapter: CoverageAdapter | None = None,
        report_root: Path | str = ".",
    ) -> None:
        """Initialize the pipeline.

        Args:
            config: Validated configuration.
            context: Repository, PR and commits to score.
            diff_provider: Source of changed files.
            publisher: Where to publish; None for a dry run.
            adapter: Report parser (coverage.py JSON by default).
            report_root: Directory relative report paths are resolved against.
        """
        self.config = config
        self.context = context
        self._diff_provider = diff_provider
        self._publisher = publisher
        self._adapter = adapter or CoveragePyAdapter(strip_prefix=config.report.strip_prefix)
        self._report_root = Path(report_root)

    async def run(self) -> ScorePipelineResult:
        """Execute the pipeline.

        Raises:
            ConfigurationError: If configuration or commits are invalid.
            NotFoundError: If the report or a commit cannot be found.
            MalformedReportError: If the report cannot be parsed.
            CollaboratorError: If the diff provider or publisher fails.
        """
        ensure_valid(self.config)
        base, head = self.context.require_commits()
        publish_type = self.config.publish.publish_type_enum
        gate_mode = self.config.publish.gate_mode_enum

        logger.info("Comparing commits: base %s <> head %s", base, head)
        diff_set = await self._diff_provider.compare(base, head)
        logger.info(
            "Git new files: %s modified files: %s",
            sorted(diff_set.new_files),
            sorted(diff_set.modified_files),
        )

        report_path = self._report_root / self.config.report.coverage_file
        raw_report = await asyncio.to_thread(read_report, report_path)
        records = self._adapter.parse(raw_report)

        classified = classify(records, diff_set)
        files_coverage = aggregate(classified, self.config.thresholds.as_thresholds())
        result = score(files_coverage, gate_mode)
        message = render_summary(
            files_coverage, result, head_sha=self.context.head_sha or "", gate_mode=gate_mode
        )

        publication = None
        if self._publisher is not None:
            logger.info("Publishing results as %s...", publish_type.value)
            publication = await asyncio.to_thread(
                self._publisher.publish,
                message,
                result.pass_overall,
                files_coverage.average_cover,
                self.config.publish.title,
            )

        return ScorePipelineResult(
            diff_set=diff_set,
            files_coverage=files_coverage,
            score=result,
            message=message,
            publish_type=publish_type,
            publication=publication,
        )


def create_score_pipeline(
    config: PrcovConfig,
    context: PullRequestContext,
    *,
    token: str | None = None,
    dry_run: bool = False,
    repo_path: Path | str = ".",
    summary_path: str | Path | None = None,
) -> ScorePipeline:
    """Wire the diff provider and publisher selected by *config*.

    Configuration is validated before any collaborator is created.

    Raises:
        ConfigurationError: If configuration or context is incomplete.
    """
    ensure_valid(config)
    context.require_commits()

    api: GitHubAPI | None = None
    if config.publish.diff_source == "github" or not dry_run:
        api = GitHubAPI(token=token, api_url=config.publish.api_url)

    diff_provider: DiffProvider
    if config.publish.diff_source == "github" and api is not None:
        owner, repo = context.require_repository()
        diff_provider = GitHubDiffProvider(api, owner, repo)
    else:
        diff_provider = GitDiffProvider(repo_path)

    publisher = None
    if not dry_run and api is not None:
        publisher = create_publisher(
            config.publish.publish_type_enum, api, context, summary_path=summary_path
        )

    return ScorePipeline(config, context, diff_provider, publisher, report_root=repo_path)
