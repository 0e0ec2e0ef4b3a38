"""prcov CLI: top-level command group."""

from __future__ import annotations

import asyncio
import copy
import json
import logging
import os
from dataclasses import asdict
from typing import TYPE_CHECKING, Any

import click
import yaml
from rich.console import Console
from rich.logging import RichHandler

from prcov import __version__
from prcov.agents.pipelines import create_score_pipeline
from prcov.agents.reporters.terminal import CLIReporter, reporter
from prcov.config import (
    CONFIG_FILE_NAME,
    apply_overrides,
    load_config,
    read_action_inputs,
    validate_config,
)
from prcov.errors import ConfigurationError, PrcovError
from prcov.models.coverage import Classification
from prcov.telemetry import capture_exception, init_sentry
from prcov.utils.ci_context import PullRequestContext, parse_repository

if TYPE_CHECKING:
    from prcov.agents.pipelines import ScorePipelineResult
    from prcov.config import PrcovConfig

logger = logging.getLogger(__name__)
console = Console()
err_reporter = CLIReporter(Console(stderr=True))

FAILED_THRESHOLD_MESSAGE = "Coverage is lower than configured threshold"

# Masking thresholds
_MIN_MASKED_VALUE_LENGTH = 8
_SENSITIVE_KEYS = {"token", "dsn", "api_key", "password"}


def _config_to_dict(config: PrcovConfig) -> dict[str, Any]:
    """Convert PrcovConfig to dictionary for display."""
    result = asdict(config)
    # Remove the raw field as it's redundant
    result.pop("raw", None)
    return result


def _mask_sensitive_values(config_dict: dict[str, Any]) -> dict[str, Any]:
    """Recursively mask sensitive values in configuration dict."""
    result = copy.deepcopy(config_dict)

    def _mask_dict(data: dict[str, Any]) -> None:
        for key, value in data.items():
            if key in _SENSITIVE_KEYS and isinstance(value, str) and value:
                if len(value) > _MIN_MASKED_VALUE_LENGTH:
                    data[key] = f"{value[:4]}...{value[-4:]}"
                else:
                    data[key] = "***"
            elif isinstance(value, dict):
                _mask_dict(value)

    _mask_dict(result)
    return result


def _configure_logging(*, verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(name)s: %(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
    )


def _result_to_dict(result: ScorePipelineResult) -> dict[str, Any]:
    """Machine-readable view of a pipeline result."""
    files_coverage = result.files_coverage
    payload: dict[str, Any] = {
        "passed": result.passed,
        "publish_type": result.publish_type.value,
        "sections": dict(result.score.pass_by_section),
    }
    for section in Classification:
        average = files_coverage.section_average(section)
        section_payload: dict[str, Any] = {
            "lines_covered": average.covered if average else 0,
            "lines_total": average.total if average else 0,
            "ratio": average.ratio if average else 0.0,
            "threshold": average.threshold if average else 0.0,
        }
        # The overall section spans the whole report; only changed files are listed.
        if section is not Classification.OVERALL:
            section_payload["files"] = [
                {
                    "path": entry.path,
                    "lines_covered": entry.lines_covered,
                    "lines_total": entry.lines_total,
                    "ratio": entry.ratio,
                }
                for entry in files_coverage.section_files(section)
            ]
        payload[section.value] = section_payload
    payload["published_url"] = result.publication.url if result.publication else None
    return payload


def _build_context(
    *,
    base: str | None,
    head: str | None,
    repository: str | None,
    pr_number: int | None,
) -> PullRequestContext:
    """Build the run context from the GitHub environment and explicit options."""
    owner = repo = None
    if repository:
        owner, repo = parse_repository(repository)
        if owner is None:
            raise ConfigurationError(
                f"Invalid repository '{repository}'. Expected the form owner/repo."
            )
    return PullRequestContext.from_github_env().with_overrides(
        owner=owner,
        repo=repo,
        pr_number=pr_number,
        base_sha=base,
        head_sha=head,
    )


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Show debug logging.")
@click.version_option(version=__version__, prog_name="prcov")
def cli(*, verbose: bool) -> None:
    """prcov: pull request coverage gate for GitHub."""
    _configure_logging(verbose=verbose)


@cli.group("config")
def config_group() -> None:
    """Inspect `.prcov.yml` configuration."""


@config_group.command("show")
@click.option(
    "--path",
    default=".",
    type=click.Path(exists=True, file_okay=False, resolve_path=True),
    help="Project root directory.",
)
@click.option(
    "--json-output",
    "as_json",
    is_flag=True,
    help="Output as JSON instead of YAML.",
)
@click.option(
    "--no-mask",
    is_flag=True,
    help="Show sensitive values unmasked (use with caution).",
)
def config_show(path: str, *, as_json: bool, no_mask: bool) -> None:
    """Display resolved configuration with masked sensitive values.

    Action inputs (``INPUT_*``) present in the environment are applied on top
    of the file, as they are for ``prcov score``.

    Example:
      prcov config show
      prcov config show --json-output
    """
    try:
        config = apply_overrides(load_config(path), **read_action_inputs())
    except PrcovError as e:
        reporter.print_error(f"Failed to load configuration: {e}")
        raise click.Abort from e

    config_dict = _config_to_dict(config)
    if not no_mask:
        config_dict = _mask_sensitive_values(config_dict)

    if as_json:
        click.echo(json.dumps(config_dict, indent=2))
    else:
        console.print()
        console.print("[bold cyan]Configuration:[/bold cyan]")
        console.print()
        click.echo(yaml.safe_dump(config_dict, sort_keys=False, default_flow_style=False))


@config_group.command("validate")
@click.option(
    "--path",
    default=".",
    type=click.Path(exists=True, file_okay=False, resolve_path=True),
    help="Project root directory.",
)
def config_validate(path: str) -> None:
    """Validate `.prcov.yml` and any action inputs.

    Example:
      prcov config validate
    """
    try:
        config = apply_overrides(load_config(path), **read_action_inputs())
    except PrcovError as e:
        reporter.print_error(f"Failed to load configuration: {e}")
        raise click.Abort from e

    errors = validate_config(config)

    if not errors:
        reporter.print_success("Configuration is valid!")
        return

    reporter.print_error(f"Found {len(errors)} configuration error(s):")
    console.print()
    for idx, error in enumerate(errors, start=1):
        console.print(f"  {idx}. [red]{error}[/red]")
    console.print()
    console.print(
        f"[dim]Fix these errors in {CONFIG_FILE_NAME} and run 'prcov config validate' again.[/dim]"
    )
    raise click.Abort


@cli.command("score")
@click.option(
    "--path",
    default=".",
    type=click.Path(exists=True, file_okay=False, resolve_path=True),
    help="Project root directory (config, report and git checkout).",
)
@click.option("--coverage-file", default=None, help="coverage.py JSON report path.")
@click.option("--publish-type", default=None, help="Publish as 'comment' or 'check'.")
@click.option("--title", default=None, help="Comment heading and check run name.")
@click.option("--threshold-overall", default=None, help="Minimum overall ratio (0 to 1).")
@click.option("--threshold-new", default=None, help="Minimum ratio for new files (0 to 1).")
@click.option(
    "--threshold-modified", default=None, help="Minimum ratio for modified files (0 to 1)."
)
@click.option("--gate-mode", default=None, help="'aggregate' or 'file'.")
@click.option("--diff-source", default=None, help="'github' (compare API) or 'git' (local).")
@click.option("--strip-prefix", default=None, help="Leading directory removed from report paths.")
@click.option("--base", default=None, help="Base commit SHA (defaults to the PR base).")
@click.option("--head", default=None, help="Head commit SHA (defaults to the PR head).")
@click.option("--repository", default=None, help="Repository as owner/repo.")
@click.option("--pr", "pr_number", type=int, default=None, help="Pull request number.")
@click.option("--token", envvar="GITHUB_TOKEN", default=None, help="GitHub token.")
@click.option("--dry-run", is_flag=True, help="Score and print without publishing.")
@click.option("--json-output", "as_json", is_flag=True, help="Output raw JSON instead of tables.")
def score_command(
    path: str,
    coverage_file: str | None,
    publish_type: str | None,
    title: str | None,
    threshold_overall: str | None,
    threshold_new: str | None,
    threshold_modified: str | None,
    gate_mode: str | None,
    diff_source: str | None,
    strip_prefix: str | None,
    base: str | None,
    head: str | None,
    repository: str | None,
    pr_number: int | None,
    token: str | None,
    *,
    dry_run: bool,
    as_json: bool,
) -> None:
    """Score pull request coverage against thresholds and publish the result.

    Exits 1 when the verdict fails in comment mode. In check mode the verdict
    is carried by the check run conclusion and the command exits 0.

    Examples:
        prcov score --coverage-file coverage.json --threshold-new 0.8
        prcov score --dry-run --diff-source git --base main --head HEAD
    """
    try:
        config = load_config(path)
        config = apply_overrides(config, **read_action_inputs())
        config = apply_overrides(
            config,
            coverage_file=coverage_file,
            strip_prefix=strip_prefix,
            threshold_overall=threshold_overall,
            threshold_new=threshold_new,
            threshold_modified=threshold_modified,
            publish_type=publish_type,
            title=title,
            gate_mode=gate_mode,
            diff_source=diff_source,
        )
        init_sentry(config.sentry)

        context = _build_context(
            base=base, head=head, repository=repository, pr_number=pr_number
        )
        if not context.is_pull_request and not (base and head):
            logger.info("Event %s is not a pull request", context.event_name)
            reporter.print_info(
                f"Skipping: '{context.event_name}' events are not scored (pull_request only)."
            )
            return

        pipeline = create_score_pipeline(
            config,
            context,
            token=token,
            dry_run=dry_run,
            repo_path=path,
            summary_path=os.environ.get("GITHUB_STEP_SUMMARY") or None,
        )
        result = asyncio.run(pipeline.run())
    except PrcovError as exc:
        capture_exception(exc)
        err_reporter.print_error(str(exc))
        raise SystemExit(1) from exc

    if as_json:
        click.echo(json.dumps(_result_to_dict(result), indent=2))
    else:
        reporter.print_header(config.publish.title)
        reporter.print_coverage_summary(result.files_coverage, result.score)
        if result.publication is not None and result.publication.url:
            reporter.print_info(f"Published: {result.publication.url}")

    if result.fails_host:
        err_reporter.print_error(FAILED_THRESHOLD_MESSAGE)
        raise SystemExit(1)
