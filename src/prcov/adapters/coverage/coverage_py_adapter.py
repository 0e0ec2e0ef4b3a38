"""Coverage.py JSON report adapter.

Coverage.py writes its JSON report with ``coverage json`` (or
``pytest --cov-report=json``). Only the per-file ``summary`` block is used::

    {
      "meta": {"version": "7.x.x", ...},
      "files": {
        "src/example.py": {
          "executed_lines": [1, 2, 5, 6],
          "missing_lines": [3, 4],
          "summary": {"covered_lines": 4, "num_statements": 6, ...}
        }
      },
      "totals": {...}
    }
"""

from __future__ import annotations

import json
import logging
from typing import Any

from prcov.adapters.coverage.base import CoverageAdapter
from prcov.errors import MalformedReportError
from prcov.models.coverage import FileCoverageRecord, normalize_path

logger = logging.getLogger(__name__)

_FILES_KEY = "files"
_SUMMARY_KEY = "summary"
_COVERED_KEY = "covered_lines"
_TOTAL_KEY = "num_statements"


class _DuplicateKeyError(ValueError):
    def __init__(self, key: str) -> None:
        super().__init__(key)
        self.key = key


def _reject_duplicate_keys(pairs: list[tuple[str, Any]]) -> dict[str, Any]:
    result: dict[str, Any] = {}
    for key, value in pairs:
        if key in result:
            raise _DuplicateKeyError(key)
        result[key] = value
    return result


def _require_count(path: str, summary: dict[str, Any], key: str) -> int:
    """Return a non-negative integer field of *summary* or raise."""
    if key not in summary:
        raise MalformedReportError(
            f"Coverage entry '{path}' is missing summary.{key}",
            context={"path": path, "field": key},
        )
    value = summary[key]
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise MalformedReportError(
            f"Coverage entry '{path}' has invalid summary.{key}: {value!r}",
            context={"path": path, "field": key},
        )
    return value


class CoveragePyAdapter(CoverageAdapter):
    """Parses coverage.py's JSON report into file coverage records."""

    @property
    def name(self) -> str:
        return "coverage.py"

    def parse(self, raw_report: str | bytes) -> list[FileCoverageRecord]:
        """Parse coverage.py JSON into records sorted by normalized path.

        Raises:
            MalformedReportError: On invalid JSON, a missing ``files`` object,
                an entry without summary counts, or two entries resolving to
                the same normalized path.
        """
        try:
            data = json.loads(raw_report, object_pairs_hook=_reject_duplicate_keys)
        except _DuplicateKeyError as exc:
            raise MalformedReportError(
                f"Duplicate key '{exc.key}' in coverage report", context={"key": exc.key}
            ) from exc
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            raise MalformedReportError(f"Coverage report is not valid JSON: {exc}") from exc

        if not isinstance(data, dict) or not isinstance(data.get(_FILES_KEY), dict):
            raise MalformedReportError("Coverage report has no 'files' object")

        records: dict[str, FileCoverageRecord] = {}
        for raw_path, entry in data[_FILES_KEY].items():
            record = self._parse_entry(raw_path, entry)
            if record.path in records:
                raise MalformedReportError(
                    f"Duplicate coverage entry for path '{record.path}' (from '{raw_path}')",
                    context={"path": record.path},
                )
            records[record.path] = record

        logger.debug("Parsed %d file(s) from %s report", len(records), self.name)
        return [records[path] for path in sorted(records)]

    def _parse_entry(self, raw_path: str, entry: Any) -> FileCoverageRecord:
        """Build a record from one ``files`` entry."""
        path = normalize_path(raw_path, self._strip_prefix)
        if not path:
            raise MalformedReportError(f"Coverage entry has an empty path: {raw_path!r}")

        if not isinstance(entry, dict) or not isinstance(entry.get(_SUMMARY_KEY), dict):
            raise MalformedReportError(
                f"Coverage entry '{raw_path}' is missing its summary",
                context={"path": raw_path, "field": _SUMMARY_KEY},
            )

        summary = entry[_SUMMARY_KEY]
        covered = _require_count(raw_path, summary, _COVERED_KEY)
        total = _require_count(raw_path, summary, _TOTAL_KEY)
        if covered > total:
            raise MalformedReportError(
                f"Coverage entry '{raw_path}' covers {covered} of {total} lines",
                context={"path": raw_path},
            )

        return FileCoverageRecord(path=path, lines_covered=covered, lines_total=total)
