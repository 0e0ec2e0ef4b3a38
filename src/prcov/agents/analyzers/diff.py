"""Diff classification: labels report files as new or modified for a PR.

Changed files come from a diff provider: either the GitHub compare API or a
local ``git diff --name-status``. Each report record is then tagged by set
membership against the provider's new/modified paths.
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, Any

from prcov.models.coverage import Classification, ClassifiedCoverage, DiffFileSet
from prcov.utils.git import git_diff_name_status

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    from prcov.models.coverage import FileCoverageRecord
    from prcov.utils.git import GitHubAPI

logger = logging.getLogger(__name__)

# ── Constants ────────────────────────────────────────────────────

# Git diff parsing constants
MIN_DIFF_PARTS = 2
RENAMED_PARTS = 3


class ChangeType(Enum):
    """Type of change detected in a diff."""

    ADDED = "added"
    MODIFIED = "modified"
    DELETED = "deleted"
    RENAMED = "renamed"


# GitHub compare API file statuses
_API_STATUS_MAP = {
    "added": ChangeType.ADDED,
    "modified": ChangeType.MODIFIED,
    "changed": ChangeType.MODIFIED,
    "removed": ChangeType.DELETED,
    "renamed": ChangeType.RENAMED,
    "copied": ChangeType.ADDED,
}

# git --name-status letters
_GIT_STATUS_MAP = {
    "A": ChangeType.ADDED,
    "M": ChangeType.MODIFIED,
    "T": ChangeType.MODIFIED,
    "D": ChangeType.DELETED,
}


# ── Data models ──────────────────────────────────────────────────


@dataclass(frozen=True)
class FileChange:
    """Represents a changed file in a diff."""

    path: str
    """Path to the changed file (new path when renamed)."""

    change_type: ChangeType
    """Type of change."""

    old_path: str | None = None
    """Original path if renamed or copied."""


def parse_name_status(output: str) -> list[FileChange]:
    """Parse ``git diff --name-status`` output.

    Rename and copy lines carry a similarity score (``R100``, ``C075``) and
    two paths; the new path is kept.
    """
    changes: list[FileChange] = []
    for line in output.splitlines():
        parts = line.split("\t")
        if len(parts) < MIN_DIFF_PARTS or not parts[0]:
            continue

        status = parts[0][0].upper()
        if status in _GIT_STATUS_MAP:
            changes.append(FileChange(path=parts[1], change_type=_GIT_STATUS_MAP[status]))
        elif status in {"R", "C"} and len(parts) >= RENAMED_PARTS:
            change_type = ChangeType.RENAMED if status == "R" else ChangeType.ADDED
            changes.append(FileChange(path=parts[2], change_type=change_type, old_path=parts[1]))
        else:
            logger.debug("Ignoring diff line: %s", line)

    return changes


def parse_compare_files(files: Iterable[dict[str, Any]]) -> list[FileChange]:
    """Convert GitHub compare API file entries into changes."""
    changes: list[FileChange] = []
    for entry in files:
        filename = entry.get("filename")
        change_type = _API_STATUS_MAP.get(str(entry.get("status", "")))
        if not filename or change_type is None:
            logger.debug("Ignoring compare entry: %s", entry)
            continue
        changes.append(
            FileChange(
                path=str(filename),
                change_type=change_type,
                old_path=entry.get("previous_filename"),
            )
        )
    return changes


def changes_to_diff_set(changes: Iterable[FileChange], strip_prefix: str = "") -> DiffFileSet:
    """Split changes into new and modified paths.

    Added and renamed files count as new; deleted files are dropped since a
    deleted file cannot carry coverage.
    """
    new_files: list[str] = []
    modified_files: list[str] = []
    for change in changes:
        if change.change_type in {ChangeType.ADDED, ChangeType.RENAMED}:
            new_files.append(change.path)
        elif change.change_type is ChangeType.MODIFIED:
            modified_files.append(change.path)

    return DiffFileSet.from_paths(new_files, modified_files, strip_prefix)


# ── Diff providers ───────────────────────────────────────────────


class DiffProvider(ABC):
    """Supplies the files added or modified between two commits."""

    @abstractmethod
    async def compare(self, base: str, head: str) -> DiffFileSet:
        """Return the new and modified files between *base* and *head*.

        Raises:
            NotFoundError: If a commit cannot be resolved.
            CollaboratorError: If the underlying call fails.
        """


class GitHubDiffProvider(DiffProvider):
    """Diff provider backed by the GitHub compare-commits API."""

    def __init__(self, api: GitHubAPI, owner: str, repo: str) -> None:
        self._api = api
        self._owner = owner
        self._repo = repo

    async def compare(self, base: str, head: str) -> DiffFileSet:
        files = await asyncio.to_thread(
            self._api.compare_commits, self._owner, self._repo, base, head
        )
        return changes_to_diff_set(parse_compare_files(files))


class GitDiffProvider(DiffProvider):
    """Diff provider backed by the local ``git`` executable."""

    def __init__(self, repo_path: Path | str = ".") -> None:
        self._repo_path = Path(repo_path)

    async def compare(self, base: str, head: str) -> DiffFileSet:
        output = await git_diff_name_status(self._repo_path, base, head)
        return changes_to_diff_set(parse_name_status(output))


# ── Classification ───────────────────────────────────────────────


def classify(
    records: Sequence[FileCoverageRecord], diff_set: DiffFileSet
) -> list[ClassifiedCoverage]:
    """Tag each report record with the sections it belongs to.

    Every record is classified ``overall``; records whose path is in the
    diff's new or modified set also get that classification. Diff paths with
    no report record are dropped, since there is nothing to score.
    """
    classified: list[ClassifiedCoverage] = []
    for record in records:
        tags = {Classification.OVERALL}
        if record.path in diff_set.new_files:
            tags.add(Classification.NEW)
        elif record.path in diff_set.modified_files:
            tags.add(Classification.MODIFIED)
        classified.append(ClassifiedCoverage(record=record, classifications=frozenset(tags)))

    if logger.isEnabledFor(logging.DEBUG):
        reported = {record.path for record in records}
        for path in sorted((diff_set.new_files | diff_set.modified_files) - reported):
            logger.debug("No coverage data for changed file %s; skipping", path)

    return classified
