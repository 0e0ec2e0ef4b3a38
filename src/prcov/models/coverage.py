"""Coverage data models shared by the parser, aggregator, scorer and formatter."""

from __future__ import annotations

import posixpath
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING

from prcov.errors import CollaboratorError

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

_DUPLICATE_SLASHES = re.compile(r"/{2,}")


def normalize_path(path: str, strip_prefix: str = "") -> str:
    """Return *path* in canonical repository-relative form.

    Backslashes become forward slashes, ``./`` segments and duplicate slashes
    are collapsed, and *strip_prefix* (typically the CI workspace root) is
    removed when the path starts with it.
    """
    normalized = path.strip().replace("\\", "/")
    normalized = _DUPLICATE_SLASHES.sub("/", normalized)

    if strip_prefix:
        prefix = strip_prefix.strip().replace("\\", "/").rstrip("/") + "/"
        prefix = _DUPLICATE_SLASHES.sub("/", prefix)
        if normalized.startswith(prefix):
            normalized = normalized[len(prefix) :]

    while normalized.startswith("./"):
        normalized = normalized[2:]

    if not normalized:
        return normalized

    collapsed = posixpath.normpath(normalized)
    return "" if collapsed == "." else collapsed


class Classification(Enum):
    """Coverage section a file belongs to."""

    OVERALL = "overall"
    NEW = "new"
    MODIFIED = "modified"


class GateMode(Enum):
    """How new/modified sections are gated."""

    AGGREGATE = "aggregate"  # section ratio only
    FILE = "file"  # section ratio and every file


class PublishType(Enum):
    """Where the verdict is published."""

    CHECK = "check"
    COMMENT = "comment"


@dataclass(frozen=True)
class Thresholds:
    """Minimum coverage ratios (0.0 to 1.0) per section."""

    overall: float = 0.0
    new: float = 0.0
    modified: float = 0.0

    def for_section(self, section: Classification) -> float:
        """Return the threshold configured for *section*."""
        if section is Classification.NEW:
            return self.new
        if section is Classification.MODIFIED:
            return self.modified
        return self.overall


@dataclass(frozen=True)
class FileCoverageRecord:
    """Line coverage counts for a single file of the report."""

    path: str
    """Normalized repository-relative path (the join key)."""

    lines_covered: int
    """Executed statements."""

    lines_total: int
    """Executable statements."""

    @property
    def ratio(self) -> float:
        """Covered ratio (0.0 to 1.0); 0.0 for files without executable lines."""
        if self.lines_total == 0:
            return 0.0
        return self.lines_covered / self.lines_total


@dataclass(frozen=True)
class ClassifiedCoverage:
    """A file record tagged with the sections it belongs to."""

    record: FileCoverageRecord
    classifications: frozenset[Classification] = frozenset({Classification.OVERALL})
    threshold: float = 0.0
    """Threshold of the section the entry is listed under."""

    @property
    def path(self) -> str:
        return self.record.path

    @property
    def lines_covered(self) -> int:
        return self.record.lines_covered

    @property
    def lines_total(self) -> int:
        return self.record.lines_total

    @property
    def ratio(self) -> float:
        return self.record.ratio

    @property
    def passed(self) -> bool:
        """Return True if the file meets its threshold or has nothing to score."""
        return self.lines_total == 0 or self.ratio >= self.threshold

    def is_in(self, section: Classification) -> bool:
        """Return True if the file is classified under *section*."""
        return section in self.classifications


@dataclass(frozen=True)
class AverageCoverage:
    """Line-weighted coverage of a group of files."""

    covered: int
    total: int
    threshold: float = 0.0

    @property
    def ratio(self) -> float:
        """Summed covered lines over summed total lines; 0.0 when empty."""
        if self.total == 0:
            return 0.0
        return self.covered / self.total

    @property
    def passed(self) -> bool:
        """Return True if the ratio meets the threshold (``>=``)."""
        return self.ratio >= self.threshold

    @classmethod
    def from_records(
        cls, records: Iterable[FileCoverageRecord | ClassifiedCoverage], threshold: float
    ) -> AverageCoverage:
        """Sum line counts over *records* and stamp the section threshold."""
        covered = 0
        total = 0
        for record in records:
            covered += record.lines_covered
            total += record.lines_total
        return cls(covered=covered, total=total, threshold=threshold)


@dataclass(frozen=True)
class DiffFileSet:
    """Files added or modified between two commits."""

    new_files: frozenset[str] = frozenset()
    modified_files: frozenset[str] = frozenset()

    @classmethod
    def from_paths(
        cls,
        new_files: Iterable[str],
        modified_files: Iterable[str],
        strip_prefix: str = "",
    ) -> DiffFileSet:
        """Build a diff set from raw paths, normalizing each one.

        Raises:
            CollaboratorError: If a path is reported as both new and modified.
        """
        new = frozenset(p for p in (normalize_path(f, strip_prefix) for f in new_files) if p)
        modified = frozenset(
            p for p in (normalize_path(f, strip_prefix) for f in modified_files) if p
        )
        overlap = new & modified
        if overlap:
            raise CollaboratorError(
                f"Diff reports files as both new and modified: {', '.join(sorted(overlap))}",
                context={"paths": sorted(overlap)},
            )
        return cls(new_files=new, modified_files=modified)


@dataclass(frozen=True)
class FilesCoverage:
    """Aggregated coverage for one invocation."""

    average_cover: AverageCoverage
    """Overall line-weighted coverage across every file of the report."""

    new_cover: tuple[ClassifiedCoverage, ...] = ()
    """New files present in the report, sorted by path."""

    modified_cover: tuple[ClassifiedCoverage, ...] = ()
    """Modified files present in the report, sorted by path."""

    new_average: AverageCoverage | None = None
    """Aggregate of ``new_cover``; None when there are no new files."""

    modified_average: AverageCoverage | None = None
    """Aggregate of ``modified_cover``; None when there are no modified files."""

    def section_files(self, section: Classification) -> Sequence[ClassifiedCoverage]:
        """Return the ordered files listed under *section* (empty for overall)."""
        if section is Classification.NEW:
            return self.new_cover
        if section is Classification.MODIFIED:
            return self.modified_cover
        return ()

    def section_average(self, section: Classification) -> AverageCoverage | None:
        """Return the aggregate of *section*, or None when it has no files."""
        if section is Classification.NEW:
            return self.new_average
        if section is Classification.MODIFIED:
            return self.modified_average
        return self.average_cover


@dataclass(frozen=True)
class ScoreResult:
    """Verdict of one invocation."""

    pass_overall: bool
    pass_by_section: dict[str, bool] = field(default_factory=dict)
