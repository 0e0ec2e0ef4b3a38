"""Data models for prcov."""

from __future__ import annotations

from prcov.models.coverage import (
    AverageCoverage,
    Classification,
    ClassifiedCoverage,
    DiffFileSet,
    FileCoverageRecord,
    FilesCoverage,
    GateMode,
    PublishType,
    ScoreResult,
    Thresholds,
    normalize_path,
)

__all__ = [
    "AverageCoverage",
    "Classification",
    "ClassifiedCoverage",
    "DiffFileSet",
    "FileCoverageRecord",
    "FilesCoverage",
    "GateMode",
    "PublishType",
    "ScoreResult",
    "Thresholds",
    "normalize_path",
]
