"""Threshold scoring of aggregated coverage."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from prcov.models.coverage import Classification, GateMode, ScoreResult

if TYPE_CHECKING:
    from collections.abc import Sequence

    from prcov.models.coverage import AverageCoverage, ClassifiedCoverage, FilesCoverage

logger = logging.getLogger(__name__)

_SECTIONS = (Classification.NEW, Classification.MODIFIED)


def section_passes(
    files: Sequence[ClassifiedCoverage],
    average: AverageCoverage | None,
    gate_mode: GateMode = GateMode.AGGREGATE,
) -> bool:
    """Return whether a new/modified section passes.

    A section with no files passes vacuously. Otherwise the section's line-weighted
    ratio must meet its threshold; in ``file`` gate mode every file with
    executable lines must meet it as well.
    """
    if not files or average is None:
        return True
    if not average.passed:
        return False
    if gate_mode is GateMode.FILE:
        return all(entry.passed for entry in files)
    return True


def score(files_coverage: FilesCoverage, gate_mode: GateMode = GateMode.AGGREGATE) -> ScoreResult:
    """Apply threshold policy to aggregated coverage.

    Args:
        files_coverage: Output of the aggregator.
        gate_mode: Whether per-file ratios also gate new/modified sections.

    Returns:
        Overall and per-section verdicts.
    """
    by_section = {Classification.OVERALL.value: files_coverage.average_cover.passed}
    for section in _SECTIONS:
        by_section[section.value] = section_passes(
            files_coverage.section_files(section),
            files_coverage.section_average(section),
            gate_mode,
        )

    for name, passed in by_section.items():
        if passed:
            logger.info("Coverage section %s passed", name)
        else:
            logger.error("Coverage section %s failed", name)

    return ScoreResult(pass_overall=all(by_section.values()), pass_by_section=by_section)
