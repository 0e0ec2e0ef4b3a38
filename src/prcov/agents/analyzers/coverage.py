"""Coverage aggregation over the overall, new and modified sections."""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import TYPE_CHECKING

from prcov.models.coverage import (
    AverageCoverage,
    Classification,
    ClassifiedCoverage,
    FilesCoverage,
    Thresholds,
)

if TYPE_CHECKING:
    from collections.abc import Sequence

logger = logging.getLogger(__name__)


def _section(
    classified: Sequence[ClassifiedCoverage], section: Classification, thresholds: Thresholds
) -> tuple[tuple[ClassifiedCoverage, ...], AverageCoverage | None]:
    """Select, sort and stamp the files of *section* and compute its aggregate."""
    threshold = thresholds.for_section(section)
    members = sorted(
        (replace(entry, threshold=threshold) for entry in classified if entry.is_in(section)),
        key=lambda entry: entry.path,
    )
    if not members:
        return (), None
    return tuple(members), AverageCoverage.from_records(members, threshold)


def aggregate(classified: Sequence[ClassifiedCoverage], thresholds: Thresholds) -> FilesCoverage:
    """Compute line-weighted coverage for every section.

    The overall aggregate covers every report file. New and modified
    sections only include files classified as such; an empty section has no
    aggregate.

    Args:
        classified: Output of :func:`prcov.agents.analyzers.diff.classify`.
        thresholds: Minimum ratios stamped on each section.

    Returns:
        The aggregated coverage, with section files sorted by path.
    """
    average = AverageCoverage.from_records(classified, thresholds.overall)
    new_cover, new_average = _section(classified, Classification.NEW, thresholds)
    modified_cover, modified_average = _section(classified, Classification.MODIFIED, thresholds)

    logger.info(
        "Aggregated %d file(s): overall %d/%d, %d new, %d modified",
        len(classified),
        average.covered,
        average.total,
        len(new_cover),
        len(modified_cover),
    )

    return FilesCoverage(
        average_cover=average,
        new_cover=new_cover,
        modified_cover=modified_cover,
        new_average=new_average,
        modified_average=modified_average,
    )
