"""Telemetry integrations for prcov."""

from prcov.telemetry.sentry_integration import capture_exception, init_sentry, is_sentry_enabled

__all__ = [
    "capture_exception",
    "init_sentry",
    "is_sentry_enabled",
]
