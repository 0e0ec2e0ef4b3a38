"""Tests for coverage data models (models/coverage.py)."""

from __future__ import annotations

import pytest

from prcov.errors import CollaboratorError
from prcov.models.coverage import (
    AverageCoverage,
    Classification,
    ClassifiedCoverage,
    DiffFileSet,
    FileCoverageRecord,
    FilesCoverage,
    Thresholds,
    normalize_path,
)

# ── normalize_path ───────────────────────────────────────────────


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("src/app.py", "src/app.py"),
        ("./src/app.py", "src/app.py"),
        ("src\\pkg\\app.py", "src/pkg/app.py"),
        ("src//pkg///app.py", "src/pkg/app.py"),
        ("src/./pkg/app.py", "src/pkg/app.py"),
        ("  src/app.py  ", "src/app.py"),
        ("", ""),
        ("./", ""),
    ],
)
def test_normalize_path(raw: str, expected: str) -> None:
    assert normalize_path(raw) == expected


def test_normalize_path_strips_prefix() -> None:
    assert normalize_path("/home/runner/work/repo/src/a.py", "/home/runner/work/repo") == (
        "src/a.py"
    )
    assert normalize_path("/home/runner/work/repo/src/a.py", "/home/runner/work/repo/") == (
        "src/a.py"
    )


def test_normalize_path_leaves_unrelated_prefix() -> None:
    assert normalize_path("/opt/other/a.py", "/home/runner") == "/opt/other/a.py"


def test_normalize_path_prefix_matches_whole_segment() -> None:
    assert normalize_path("/repo-old/a.py", "/repo") == "/repo-old/a.py"


# ── Ratios ───────────────────────────────────────────────────────


def test_file_ratio_zero_lines_is_zero() -> None:
    assert FileCoverageRecord("empty.py", 0, 0).ratio == 0.0


def test_file_ratio() -> None:
    assert FileCoverageRecord("a.py", 3, 4).ratio == 0.75


def test_average_is_line_weighted() -> None:
    records = [FileCoverageRecord("a.py", 1, 1), FileCoverageRecord("b.py", 0, 9)]

    average = AverageCoverage.from_records(records, 0.5)

    assert average.covered == 1
    assert average.total == 10
    assert average.ratio == pytest.approx(0.1)
    assert average.threshold == 0.5
    assert not average.passed


def test_average_threshold_boundary_passes() -> None:
    assert AverageCoverage(covered=8, total=10, threshold=0.8).passed


def test_average_without_lines_is_gated_on_zero_ratio() -> None:
    average = AverageCoverage(covered=0, total=0, threshold=0.9)
    assert average.ratio == 0.0
    assert not average.passed
    assert AverageCoverage(covered=0, total=0).passed


def test_classified_zero_line_file_passes() -> None:
    entry = ClassifiedCoverage(
        record=FileCoverageRecord("empty.py", 0, 0),
        classifications=frozenset({Classification.OVERALL, Classification.NEW}),
        threshold=0.8,
    )
    assert entry.ratio == 0.0
    assert entry.passed
    assert entry.is_in(Classification.NEW)
    assert not entry.is_in(Classification.MODIFIED)


def test_thresholds_for_section() -> None:
    thresholds = Thresholds(overall=0.1, new=0.2, modified=0.3)
    assert thresholds.for_section(Classification.OVERALL) == 0.1
    assert thresholds.for_section(Classification.NEW) == 0.2
    assert thresholds.for_section(Classification.MODIFIED) == 0.3


# ── DiffFileSet ──────────────────────────────────────────────────


def test_diff_set_normalizes_paths() -> None:
    diff_set = DiffFileSet.from_paths(["./src/new.py"], ["src\\old.py", ""])

    assert diff_set.new_files == frozenset({"src/new.py"})
    assert diff_set.modified_files == frozenset({"src/old.py"})


def test_diff_set_rejects_overlap() -> None:
    with pytest.raises(CollaboratorError, match="both new and modified"):
        DiffFileSet.from_paths(["a.py", "b.py"], ["./a.py"])


def test_files_coverage_section_accessors() -> None:
    average = AverageCoverage(covered=1, total=2)
    files_coverage = FilesCoverage(average_cover=average)

    assert files_coverage.section_average(Classification.OVERALL) is average
    assert files_coverage.section_average(Classification.NEW) is None
    assert files_coverage.section_files(Classification.OVERALL) == ()
    assert files_coverage.section_files(Classification.MODIFIED) == ()
