"""Base class and report loader for coverage adapters."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import TYPE_CHECKING

from prcov.errors import NotFoundError

if TYPE_CHECKING:
    from prcov.models.coverage import FileCoverageRecord

logger = logging.getLogger(__name__)


def read_report(path: str | Path) -> str:
    """Read a raw coverage report from disk.

    Args:
        path: Location of the report file.

    Returns:
        The report text, decoded as UTF-8.

    Raises:
        NotFoundError: If the file does not exist.
    """
    report_path = Path(path)
    if not report_path.is_file():
        raise NotFoundError(
            f"Coverage report not found: {report_path}", context={"path": str(report_path)}
        )

    logger.debug("Reading coverage report %s", report_path)
    return report_path.read_text(encoding="utf-8")


class CoverageAdapter(ABC):
    """Abstract base class for coverage report adapters.

    An adapter decodes one native report schema into a list of
    :class:`FileCoverageRecord` with normalized paths.
    """

    def __init__(self, *, strip_prefix: str = "") -> None:
        """Initialize the adapter.

        Args:
            strip_prefix: Leading directory removed from report paths so they
                match repository-relative diff paths.
        """
        self._strip_prefix = strip_prefix

    @property
    @abstractmethod
    def name(self) -> str:
        """Coverage tool identifier (e.g. 'coverage.py')."""

    @abstractmethod
    def parse(self, raw_report: str | bytes) -> list[FileCoverageRecord]:
        """Decode a raw report into per-file records sorted by path.

        Raises:
            MalformedReportError: If the report cannot be decoded.
        """

    def parse_coverage_file(self, coverage_file: str | Path) -> list[FileCoverageRecord]:
        """Load and parse a report file.

        Raises:
            NotFoundError: If the file does not exist.
            MalformedReportError: If the report cannot be decoded.
        """
        return self.parse(read_report(coverage_file))
