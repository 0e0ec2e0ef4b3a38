"""Sentry SDK integration for prcov.

Error reporting is strictly OPT-IN: no data is sent unless
``sentry.enabled: true`` is set in ``.prcov.yml`` or
``PRCOV_SENTRY_ENABLED=true`` is exported, and a DSN is configured.
"""

from __future__ import annotations

import logging
import re
import threading
from typing import TYPE_CHECKING, Any

import sentry_sdk
from sentry_sdk.integrations.logging import LoggingIntegration

from prcov import __version__
from prcov.utils.ci_context import is_ci

if TYPE_CHECKING:
    from prcov.config import SentryConfig

logger = logging.getLogger(__name__)

_init_lock = threading.Lock()
_initialized: dict[str, bool] = {"value": False}

# Patterns to scrub from event data
_SENSITIVE_PATTERN = re.compile(
    r"(api[_-]?key|password|secret|token|dsn|authorization|cookie)\s*[:=]\s*\S+",
    re.IGNORECASE,
)

_PATH_HOME_RE = re.compile(r"/(?:home|Users)/[^/]+")

_SENSITIVE_KEYS = frozenset({"api_key", "password", "secret", "token", "dsn", "authorization"})


def init_sentry(config: SentryConfig) -> None:
    """Initialize Sentry SDK if enabled and configured.

    Idempotent and thread-safe.
    """
    with _init_lock:
        if _initialized["value"]:
            return
        if not config.enabled:
            logger.debug("Sentry disabled (sentry.enabled is false)")
            return
        if not config.dsn:
            logger.warning("Sentry enabled but no DSN configured")
            return

        environment = config.environment or ("ci" if is_ci() else "local")
        sentry_sdk.init(
            dsn=config.dsn,
            release=f"prcov@{__version__}",
            environment=environment,
            send_default_pii=False,
            server_name="",
            before_send=_before_send,
            in_app_include=["prcov"],
            integrations=[LoggingIntegration(level=logging.INFO, event_level=logging.ERROR)],
        )

        _initialized["value"] = True
        logger.info("Sentry initialized (env=%s)", environment)


def is_sentry_enabled() -> bool:
    """Return whether Sentry has been successfully initialized."""
    return _initialized["value"]


def capture_exception(exc: BaseException) -> None:
    """Report *exc* to Sentry. No-op if Sentry is disabled."""
    if not _initialized["value"]:
        return
    sentry_sdk.capture_exception(exc)


# ---------------------------------------------------------------------------
# Privacy scrubbing
# ---------------------------------------------------------------------------


def _scrub_path(path: str) -> str:
    """Replace user home directory in paths."""
    return _PATH_HOME_RE.sub("/~", path)


def _scrub_string(value: str) -> str:
    """Remove sensitive patterns from a string."""
    return _SENSITIVE_PATTERN.sub("[REDACTED]", value)


def _scrub_dict(data: dict[str, Any]) -> dict[str, Any]:
    """Scrub sensitive keys and values from a dict."""
    result: dict[str, Any] = {}
    for key, value in data.items():
        if key.lower() in _SENSITIVE_KEYS:
            result[key] = "[REDACTED]"
        elif isinstance(value, str):
            result[key] = _scrub_string(value)
        elif isinstance(value, dict):
            result[key] = _scrub_dict(value)
        else:
            result[key] = value
    return result


def _scrub_event(event: dict[str, Any]) -> dict[str, Any]:
    """Deep-scrub an event dict for sensitive data."""
    exception = event.get("exception")
    if isinstance(exception, dict):
        for value in exception.get("values", []):
            if isinstance(value.get("value"), str):
                value["value"] = _scrub_string(value["value"])
            stacktrace = value.get("stacktrace")
            if isinstance(stacktrace, dict):
                for frame in stacktrace.get("frames", []):
                    frame.pop("vars", None)
                    for key in ("filename", "abs_path"):
                        if isinstance(frame.get(key), str):
                            frame[key] = _scrub_path(frame[key])

    for key in ("tags", "extra"):
        if isinstance(event.get(key), dict):
            event[key] = _scrub_dict(event[key])

    # Never send hostname
    event.pop("server_name", None)

    return event


def _before_send(event: dict[str, Any], _hint: dict[str, Any]) -> dict[str, Any] | None:
    """Scrub sensitive data from error events before sending."""
    return _scrub_event(event)
