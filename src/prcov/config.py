"""Configuration parsing from ``.prcov.yml`` and GitHub Action inputs."""

from __future__ import annotations

import logging
import math
import os
import re
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import TYPE_CHECKING, Any

import yaml

from prcov.errors import ConfigurationError
from prcov.models.coverage import GateMode, PublishType, Thresholds

if TYPE_CHECKING:
    from collections.abc import Mapping

logger = logging.getLogger(__name__)

CONFIG_FILE_NAME = ".prcov.yml"
DEFAULT_TITLE = "☂️ Python Coverage"
DEFAULT_COVERAGE_FILE = "coverage.json"
DIFF_SOURCES = ("github", "git")

_ENV_VAR_RE = re.compile(r"\$\{(\w+)\}")
_TRUTHY = {True, "true", "1", "yes"}

# GitHub Actions exposes ``with:`` inputs as INPUT_<NAME> (upper-cased)
_ACTION_INPUTS = {
    "coverage_file": "INPUT_COVERAGEFILE",
    "publish_type": "INPUT_PUBLISHTYPE",
    "title": "INPUT_TITLE",
    "threshold_overall": "INPUT_THRESHOLDALL",
    "threshold_new": "INPUT_THRESHOLDNEW",
    "threshold_modified": "INPUT_THRESHOLDMODIFIED",
}


def _resolve_env_vars(value: str) -> str:
    """Replace ``${VAR_NAME}`` placeholders with environment variable values."""

    def _replace(match: re.Match[str]) -> str:
        var = match.group(1)
        resolved = os.environ.get(var)
        if resolved is None:
            logger.warning("Environment variable %s is not set (referenced in config)", var)
            return ""
        return resolved

    return _ENV_VAR_RE.sub(_replace, value)


def _resolve_dict(data: dict[str, Any]) -> dict[str, Any]:
    """Recursively resolve environment variables in a dictionary."""
    result: dict[str, Any] = {}
    for key, value in data.items():
        if isinstance(value, str):
            result[key] = _resolve_env_vars(value)
        elif isinstance(value, dict):
            result[key] = _resolve_dict(value)
        elif isinstance(value, list):
            result[key] = [
                _resolve_env_vars(item) if isinstance(item, str) else item for item in value
            ]
        else:
            result[key] = value
    return result


def _section(raw: dict[str, Any], name: str) -> dict[str, Any]:
    value = raw.get(name, {})
    return value if isinstance(value, dict) else {}


def parse_ratio(value: Any, key: str) -> float:
    """Convert a configured threshold to float.

    Raises:
        ConfigurationError: If the value is not a number.
    """
    if isinstance(value, bool):
        raise ConfigurationError(f"{key} must be a number (got: {value!r})")
    try:
        ratio = float(value)
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(f"{key} must be a number (got: {value!r})") from exc
    if math.isnan(ratio):
        raise ConfigurationError(f"{key} must be a number (got: {value!r})")
    return ratio


@dataclass
class ReportConfig:
    """Coverage report location."""

    coverage_file: str = DEFAULT_COVERAGE_FILE
    """Path to the coverage.py JSON report."""

    strip_prefix: str = ""
    """Leading directory removed from report paths. Defaults to ``GITHUB_WORKSPACE``."""


@dataclass
class ThresholdConfig:
    """Minimum coverage ratios (0.0 to 1.0). 0 disables a gate."""

    overall: float = 0.0
    """Minimum ratio across every report file."""

    new: float = 0.0
    """Minimum ratio across files added by the PR."""

    modified: float = 0.0
    """Minimum ratio across files modified by the PR."""

    def as_thresholds(self) -> Thresholds:
        """Return the immutable thresholds handed to the aggregator."""
        return Thresholds(overall=self.overall, new=self.new, modified=self.modified)


@dataclass
class PublishConfig:
    """Where and how results are published."""

    publish_type: str = PublishType.COMMENT.value
    """``comment`` (PR comment) or ``check`` (check run)."""

    title: str = DEFAULT_TITLE
    """Comment heading and check run name."""

    gate_mode: str = GateMode.AGGREGATE.value
    """``aggregate`` (section ratio gates) or ``file`` (every file also gates)."""

    diff_source: str = "github"
    """Changed files from the GitHub compare API (``github``) or local ``git``."""

    api_url: str = "https://api.github.com"
    """GitHub REST API root."""

    @property
    def publish_type_enum(self) -> PublishType:
        return PublishType(self.publish_type)

    @property
    def gate_mode_enum(self) -> GateMode:
        return GateMode(self.gate_mode)


@dataclass
class SentryConfig:
    """Sentry error monitoring configuration."""

    enabled: bool = False
    """Opt-in flag. No Sentry data sent unless True."""

    dsn: str = ""
    """Sentry DSN (Data Source Name)."""

    environment: str = ""
    """Override environment tag (auto-detected if empty)."""


@dataclass
class PrcovConfig:
    """Complete prcov configuration."""

    report: ReportConfig = field(default_factory=ReportConfig)
    """Report configuration."""

    thresholds: ThresholdConfig = field(default_factory=ThresholdConfig)
    """Threshold configuration."""

    publish: PublishConfig = field(default_factory=PublishConfig)
    """Publishing configuration."""

    sentry: SentryConfig = field(default_factory=SentryConfig)
    """Sentry configuration."""

    raw: dict[str, Any] = field(default_factory=dict)
    """Raw parsed YAML for extension/debugging."""


def _parse_sentry_config(raw: dict[str, Any]) -> SentryConfig:
    """Parse Sentry configuration from raw YAML."""
    sentry_raw = _section(raw, "sentry")

    enabled_raw = sentry_raw.get("enabled", os.environ.get("PRCOV_SENTRY_ENABLED", ""))
    return SentryConfig(
        enabled=enabled_raw in _TRUTHY,
        dsn=str(sentry_raw.get("dsn", os.environ.get("PRCOV_SENTRY_DSN", ""))),
        environment=str(sentry_raw.get("environment", "")),
    )


def load_config(root: str | Path = ".") -> PrcovConfig:
    """Load and parse ``.prcov.yml`` from *root*.

    Falls back to defaults when the file is missing or incomplete.

    Raises:
        ConfigurationError: If the file is not valid YAML or a threshold is
            not numeric.
    """
    root_path = Path(root).resolve()
    config_file = root_path / CONFIG_FILE_NAME

    raw: dict[str, Any] = {}
    if config_file.is_file():
        try:
            parsed = yaml.safe_load(config_file.read_text(encoding="utf-8"))
        except yaml.YAMLError as exc:
            raise ConfigurationError(f"Invalid YAML in {config_file}: {exc}") from exc
        if isinstance(parsed, dict):
            raw = _resolve_dict(parsed)

    report_raw = _section(raw, "report")
    report = ReportConfig(
        coverage_file=str(report_raw.get("coverage_file", DEFAULT_COVERAGE_FILE)),
        strip_prefix=str(report_raw.get("strip_prefix", os.environ.get("GITHUB_WORKSPACE", ""))),
    )

    thresholds_raw = _section(raw, "thresholds")
    thresholds = ThresholdConfig(
        overall=parse_ratio(thresholds_raw.get("overall", 0.0), "thresholds.overall"),
        new=parse_ratio(thresholds_raw.get("new", 0.0), "thresholds.new"),
        modified=parse_ratio(thresholds_raw.get("modified", 0.0), "thresholds.modified"),
    )

    publish_raw = _section(raw, "publish")
    publish = PublishConfig(
        publish_type=str(publish_raw.get("type", PublishType.COMMENT.value)),
        title=str(publish_raw.get("title", DEFAULT_TITLE)),
        gate_mode=str(publish_raw.get("gate_mode", GateMode.AGGREGATE.value)),
        diff_source=str(publish_raw.get("diff_source", "github")),
        api_url=str(
            publish_raw.get("api_url", os.environ.get("GITHUB_API_URL", "https://api.github.com"))
        ),
    )

    return PrcovConfig(
        report=report,
        thresholds=thresholds,
        publish=publish,
        sentry=_parse_sentry_config(raw),
        raw=raw,
    )


def apply_overrides(config: PrcovConfig, **values: Any) -> PrcovConfig:
    """Return a copy of *config* with every non-None value applied.

    Accepted keys: ``coverage_file``, ``strip_prefix``, ``threshold_overall``,
    ``threshold_new``, ``threshold_modified``, ``publish_type``, ``title``,
    ``gate_mode``, ``diff_source``.

    Raises:
        ConfigurationError: If a threshold override is not numeric.
    """
    present = {key: value for key, value in values.items() if value is not None}

    report = replace(
        config.report,
        **{k: str(present[k]) for k in ("coverage_file", "strip_prefix") if k in present},
    )
    thresholds = replace(
        config.thresholds,
        **{
            name: parse_ratio(present[f"threshold_{name}"], f"thresholds.{name}")
            for name in ("overall", "new", "modified")
            if f"threshold_{name}" in present
        },
    )
    publish = replace(
        config.publish,
        **{
            k: str(present[k])
            for k in ("publish_type", "title", "gate_mode", "diff_source")
            if k in present
        },
    )
    return replace(config, report=report, thresholds=thresholds, publish=publish)


def read_action_inputs(environ: Mapping[str, str] | None = None) -> dict[str, str]:
    """Return the GitHub Action inputs that are set, keyed like :func:`apply_overrides`."""
    env = os.environ if environ is None else environ
    inputs: dict[str, str] = {}
    for key, env_name in _ACTION_INPUTS.items():
        value = env.get(env_name, "").strip()
        if value:
            inputs[key] = value
    return inputs


def _validate_threshold_config(thresholds: ThresholdConfig) -> list[str]:
    """Validate threshold ranges."""
    errors: list[str] = []
    for name in ("overall", "new", "modified"):
        value = getattr(thresholds, name)
        if not 0.0 <= value <= 1.0:
            errors.append(f"thresholds.{name} must be between 0 and 1 (got: {value})")
    return errors


def _validate_publish_config(publish: PublishConfig) -> list[str]:
    """Validate publishing settings."""
    errors: list[str] = []

    valid_types = [t.value for t in PublishType]
    if publish.publish_type not in valid_types:
        errors.append(
            f"Invalid publish type: '{publish.publish_type}'. "
            f"Valid options are: {', '.join(repr(t) for t in valid_types)}."
        )

    valid_modes = [m.value for m in GateMode]
    if publish.gate_mode not in valid_modes:
        errors.append(
            f"publish.gate_mode must be one of: {', '.join(valid_modes)} "
            f"(got: {publish.gate_mode})"
        )

    if publish.diff_source not in DIFF_SOURCES:
        errors.append(
            f"publish.diff_source must be one of: {', '.join(DIFF_SOURCES)} "
            f"(got: {publish.diff_source})"
        )

    if not publish.title.strip():
        errors.append("publish.title must not be empty")

    return errors


def _validate_sentry_config(sentry: SentryConfig) -> list[str]:
    errors: list[str] = []
    if sentry.enabled and not sentry.dsn:
        errors.append("sentry.dsn is required when sentry.enabled is true")
    return errors


def validate_config(config: PrcovConfig) -> list[str]:
    """Validate the configuration and return a list of error messages.

    Returns an empty list if the configuration is valid.
    """
    errors: list[str] = []

    if not config.report.coverage_file:
        errors.append("report.coverage_file is required")

    errors.extend(_validate_threshold_config(config.thresholds))
    errors.extend(_validate_publish_config(config.publish))
    errors.extend(_validate_sentry_config(config.sentry))

    return errors


def ensure_valid(config: PrcovConfig) -> None:
    """Raise if the configuration is invalid.

    Raises:
        ConfigurationError: Listing every validation error.
    """
    errors = validate_config(config)
    if errors:
        raise ConfigurationError("; ".join(errors), context={"errors": errors})
