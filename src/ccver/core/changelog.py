"""Changelog generation from the commit graph.

The changelog for a commit covers the commit itself and every ancestor
reachable without passing through a commit that already advanced the
version (a major, minor or patch conventional commit). Those commits
mark the previous release boundary and are left out.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import UTC
from enum import IntEnum
from typing import TYPE_CHECKING

from ccver.config.models import CommitsConfig
from ccver.core.commits import BumpKind, ConventionalSubject, classify_subject

if TYPE_CHECKING:
    from datetime import datetime

    from ccver.core.commits import CommitRecord
    from ccver.core.graph import CommitGraph

log = logging.getLogger(__name__)

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S UTC"


class ChangeKind(IntEnum):
    """Changelog sections, in display order."""

    BREAKING = 0
    FEATURE = 1
    FIX = 2
    NAMED = 3
    MISC = 4


SECTION_TITLES = {
    ChangeKind.BREAKING: "Breaking Changes",
    ChangeKind.FEATURE: "Features",
    ChangeKind.FIX: "Fixes",
    ChangeKind.MISC: "Misc",
}

_KIND_FOR_BUMP = {
    BumpKind.MAJOR: ChangeKind.BREAKING,
    BumpKind.MINOR: ChangeKind.FEATURE,
    BumpKind.PATCH: ChangeKind.FIX,
}


@dataclass(frozen=True)
class ChangeEntry:
    """One line of the changelog.

    Attributes:
        kind: Section the entry belongs to
        description: Commit description (or the full subject for Misc)
        timestamp: Commit time
        scope: Conventional commit scope, if any
        name: Commit type for NAMED entries
    """

    kind: ChangeKind
    description: str
    timestamp: datetime
    scope: str | None = None
    name: str | None = None

    @property
    def title(self) -> str:
        return self.name if self.kind is ChangeKind.NAMED and self.name else SECTION_TITLES[self.kind]

    def render(self) -> str:
        when = self.timestamp.astimezone(UTC).strftime(TIMESTAMP_FORMAT)
        return f"- ({when}): {self.description}"


def classify_change(record: CommitRecord, commits: CommitsConfig) -> ChangeEntry:
    """Turn a commit into a changelog entry."""
    subject = record.subject
    if not isinstance(subject, ConventionalSubject):
        return ChangeEntry(ChangeKind.MISC, str(subject), record.timestamp)

    kind = _KIND_FOR_BUMP.get(classify_subject(subject, commits), ChangeKind.NAMED)
    return ChangeEntry(
        kind,
        subject.description,
        record.timestamp,
        scope=subject.scope,
        name=subject.commit_type if kind is ChangeKind.NAMED else None,
    )


@dataclass(frozen=True)
class ChangeLog:
    """Changelog entries sorted by commit time."""

    entries: tuple[ChangeEntry, ...]

    def sections(self) -> list[tuple[str, list[ChangeEntry]]]:
        """Entries grouped by section title, sections in display order.

        Named sections follow Fixes in order of first appearance.
        """
        grouped: dict[tuple[ChangeKind, str], list[ChangeEntry]] = {}
        for entry in self.entries:
            grouped.setdefault((entry.kind, entry.title), []).append(entry)
        # Stable sort keeps first-appearance order inside each kind.
        keys = sorted(grouped, key=lambda key: key[0])
        return [(title, grouped[(kind, title)]) for kind, title in keys]

    def render(self) -> str:
        lines = ["# ChangeLog"]
        for title, entries in self.sections():
            lines.append(f"## {title}")
            lines.extend(e.render() for e in entries if e.scope is None)

            scopes: dict[str, list[ChangeEntry]] = {}
            for entry in entries:
                if entry.scope is not None:
                    scopes.setdefault(entry.scope, []).append(entry)
            for scope, scoped in scopes.items():
                lines.append(f"### {scope}")
                lines.extend(e.render() for e in scoped)
        return "\n".join(lines) + "\n"

    def __str__(self) -> str:
        return self.render()

    def __len__(self) -> int:
        return len(self.entries)


def collect_commits(
    graph: CommitGraph,
    from_index: int,
    commits: CommitsConfig,
) -> list[CommitRecord]:
    """Commits covered by the changelog of ``from_index``.

    The start commit is always included. Ancestors that advance the version
    are neither included nor walked through.
    """
    collected = [graph[from_index]]
    visited = {from_index}
    stack = list(graph.parents(from_index))
    while stack:
        idx = stack.pop()
        if idx in visited:
            continue
        visited.add(idx)
        record = graph[idx]
        if classify_subject(record.subject, commits).is_advancing:
            continue
        collected.append(record)
        stack.extend(graph.parents(idx))
    return collected


def build_changelog(
    graph: CommitGraph,
    from_index: int | None = None,
    commits: CommitsConfig | None = None,
) -> ChangeLog:
    """Build the changelog for a commit.

    Args:
        graph: Commit graph
        from_index: Node to start from (defaults to HEAD)
        commits: Commit type tables

    Returns:
        ChangeLog with entries sorted by commit time
    """
    commits = commits or CommitsConfig()
    start = graph.head if from_index is None else from_index
    records = collect_commits(graph, start, commits)
    entries = sorted((classify_change(r, commits) for r in records), key=lambda e: e.timestamp)
    log.debug("Changelog for %s covers %d commits", graph[start].short_hash, len(entries))
    return ChangeLog(tuple(entries))
