"""Coverage report adapters."""

from prcov.adapters.coverage.base import CoverageAdapter, read_report
from prcov.adapters.coverage.coverage_py_adapter import CoveragePyAdapter

__all__ = [
    "CoverageAdapter",
    "CoveragePyAdapter",
    "read_report",
]
