"""Analyzers: diff classification, coverage aggregation and threshold scoring."""

from __future__ import annotations

from prcov.agents.analyzers.coverage import aggregate
from prcov.agents.analyzers.diff import (
    DiffProvider,
    GitDiffProvider,
    GitHubDiffProvider,
    classify,
)
from prcov.agents.analyzers.threshold import score

__all__ = [
    "DiffProvider",
    "GitDiffProvider",
    "GitHubDiffProvider",
    "aggregate",
    "classify",
    "score",
]
