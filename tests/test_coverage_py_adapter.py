"""Tests for coverage.py adapter (adapters/coverage/coverage_py_adapter.py).

Covers record extraction from the coverage.py JSON format, path
normalization and rejection of malformed reports.
"""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

import pytest

if TYPE_CHECKING:
    from pathlib import Path

from prcov.adapters.coverage import CoveragePyAdapter, read_report
from prcov.errors import MalformedReportError, NotFoundError
from prcov.models.coverage import FileCoverageRecord

# ── Helpers ──────────────────────────────────────────────────────


def _entry(covered: int, total: int) -> dict[str, Any]:
    return {
        "executed_lines": list(range(1, covered + 1)),
        "missing_lines": list(range(covered + 1, total + 1)),
        "excluded_lines": [],
        "summary": {
            "covered_lines": covered,
            "num_statements": total,
            "percent_covered": 100.0 * covered / total if total else 100.0,
            "missing_lines": total - covered,
            "excluded_lines": 0,
        },
    }


def _report(files: dict[str, Any]) -> str:
    return json.dumps(
        {
            "meta": {"version": "7.3.0", "timestamp": "2024-01-15T10:30:00"},
            "files": files,
            "totals": {},
        }
    )


# ── Parsing ──────────────────────────────────────────────────────


def test_parse_extracts_records_sorted_by_path() -> None:
    raw = _report({"src/utils.py": _entry(3, 3), "src/math.py": _entry(5, 7)})

    records = CoveragePyAdapter().parse(raw)

    assert records == [
        FileCoverageRecord("src/math.py", 5, 7),
        FileCoverageRecord("src/utils.py", 3, 3),
    ]


def test_parse_accepts_bytes() -> None:
    raw = _report({"a.py": _entry(1, 2)}).encode("utf-8")

    assert CoveragePyAdapter().parse(raw) == [FileCoverageRecord("a.py", 1, 2)]


def test_parse_keeps_zero_line_files() -> None:
    records = CoveragePyAdapter().parse(_report({"pkg/__init__.py": _entry(0, 0)}))

    assert records == [FileCoverageRecord("pkg/__init__.py", 0, 0)]
    assert records[0].ratio == 0.0


def test_parse_empty_files_object() -> None:
    assert CoveragePyAdapter().parse(_report({})) == []


def test_parse_normalizes_paths() -> None:
    raw = _report(
        {
            "/home/runner/work/repo/src/a.py": _entry(1, 1),
            "./src\\b.py": _entry(2, 4),
        }
    )

    records = CoveragePyAdapter(strip_prefix="/home/runner/work/repo").parse(raw)

    assert [r.path for r in records] == ["src/a.py", "src/b.py"]


def test_adapter_name() -> None:
    assert CoveragePyAdapter().name == "coverage.py"


# ── Malformed reports ────────────────────────────────────────────


def test_parse_invalid_json() -> None:
    with pytest.raises(MalformedReportError, match="not valid JSON"):
        CoveragePyAdapter().parse("{not json")


def test_parse_missing_files_object() -> None:
    with pytest.raises(MalformedReportError, match="no 'files' object"):
        CoveragePyAdapter().parse(json.dumps({"totals": {}}))


def test_parse_top_level_list() -> None:
    with pytest.raises(MalformedReportError, match="no 'files' object"):
        CoveragePyAdapter().parse("[]")


def test_parse_entry_without_summary() -> None:
    raw = _report({"a.py": {"executed_lines": [1]}})

    with pytest.raises(MalformedReportError, match="missing its summary"):
        CoveragePyAdapter().parse(raw)


def test_parse_summary_missing_count() -> None:
    raw = _report({"a.py": {"summary": {"covered_lines": 1}}})

    with pytest.raises(MalformedReportError, match="missing summary.num_statements"):
        CoveragePyAdapter().parse(raw)


@pytest.mark.parametrize("bad", [-1, "3", 1.5, True, None])
def test_parse_invalid_count(bad: object) -> None:
    raw = _report({"a.py": {"summary": {"covered_lines": bad, "num_statements": 3}}})

    with pytest.raises(MalformedReportError, match=r"invalid summary\.covered_lines"):
        CoveragePyAdapter().parse(raw)


def test_parse_covered_exceeds_total() -> None:
    raw = _report({"a.py": {"summary": {"covered_lines": 5, "num_statements": 3}}})

    with pytest.raises(MalformedReportError, match="covers 5 of 3 lines"):
        CoveragePyAdapter().parse(raw)


def test_parse_duplicate_json_key() -> None:
    entry = json.dumps(_entry(1, 1))
    raw = f'{{"files": {{"a.py": {entry}, "a.py": {entry}}}}}'

    with pytest.raises(MalformedReportError, match="Duplicate key 'a.py'"):
        CoveragePyAdapter().parse(raw)


def test_parse_paths_colliding_after_normalization() -> None:
    raw = _report({"src/a.py": _entry(1, 1), "./src/a.py": _entry(0, 1)})

    with pytest.raises(MalformedReportError, match="Duplicate coverage entry"):
        CoveragePyAdapter().parse(raw)


def test_parse_empty_path() -> None:
    with pytest.raises(MalformedReportError, match="empty path"):
        CoveragePyAdapter().parse(_report({"./": _entry(1, 1)}))


# ── Loading ──────────────────────────────────────────────────────


def test_read_report_missing_file(tmp_path: Path) -> None:
    with pytest.raises(NotFoundError, match="Coverage report not found"):
        read_report(tmp_path / "coverage.json")


def test_parse_coverage_file(tmp_path: Path) -> None:
    report = tmp_path / "coverage.json"
    report.write_text(_report({"a.py": _entry(2, 4)}), encoding="utf-8")

    records = CoveragePyAdapter().parse_coverage_file(report)

    assert records == [FileCoverageRecord("a.py", 2, 4)]
