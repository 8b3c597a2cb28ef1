"""Version assignment engine.

Walks the commit graph parents-first and gives every commit a version:

- a commit carrying a version tag gets that version, which must not be
  lower than anything an ancestor already reached
- the root commit starts from the format's zero version
- every other commit derives its version from the highest version among
  its ancestors, according to its subject (major/minor/patch/other), the
  prerelease channel of its branch, and whether it is a merge

Derived versions are pushed forward when needed so that no commit is ever
versioned below one of its ancestors.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Mapping
from typing import TYPE_CHECKING

from ccver.config.models import CCVerConfig
from ccver.core.commits import BumpKind, TextSubject, classify_subject
from ccver.core.grammar import parse_commit_message
from ccver.core.version import (
    bump_major,
    bump_minor,
    bump_patch,
    enter_or_advance_channel,
    release,
    with_build_hash,
    zero_version,
)
from ccver.core.version_format import ALPHA, BETA, RC
from ccver.exceptions import MonotonicityViolation, VersionAssignmentError

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator, Sequence
    from datetime import datetime

    from ccver.config.models import BranchesConfig
    from ccver.core.commits import CommitRecord
    from ccver.core.graph import CommitGraph
    from ccver.core.version import Version
    from ccver.core.version_format import VersionFormat

log = logging.getLogger(__name__)

_BUMPS = {
    BumpKind.MAJOR: bump_major,
    BumpKind.MINOR: bump_minor,
    BumpKind.PATCH: bump_patch,
}


def channel_for_branch(branch: str | None, branches: BranchesConfig) -> str | None:
    """Prerelease channel of commits made on ``branch``.

    Returns:
        None for release branches (and unknown branches), ``rc``, ``beta``
        or ``alpha`` for the configured channel branches, otherwise a
        channel named after the branch
    """
    if not branch or branch in branches.release:
        return None
    if branch in branches.rc:
        return RC
    if branch in branches.beta:
        return BETA
    if branch in branches.alpha:
        return ALPHA
    channel = re.sub(r"[^0-9A-Za-z-]+", "-", branch).strip("-")
    return channel or None


class VersionMap(Mapping[int, "Version"]):
    """Versions assigned to the nodes of a commit graph.

    Read-only. Nodes that were not assigned (unreachable nodes when those
    are excluded) are simply absent.
    """

    def __init__(
        self,
        graph: CommitGraph,
        versions: Sequence[Version | None],
        violations: Sequence[MonotonicityViolation] = (),
    ) -> None:
        self._graph = graph
        self._versions = tuple(versions)
        self.violations = tuple(violations)

    def __getitem__(self, idx: int) -> Version:
        if not 0 <= idx < len(self._versions) or self._versions[idx] is None:
            raise KeyError(idx)
        return self._versions[idx]

    def __iter__(self) -> Iterator[int]:
        return (idx for idx, v in enumerate(self._versions) if v is not None)

    def __len__(self) -> int:
        return sum(1 for v in self._versions if v is not None)

    @property
    def graph(self) -> CommitGraph:
        return self._graph

    @property
    def head_version(self) -> Version:
        return self[self._graph.head]

    def for_commit(self, commit_hash: str) -> Version | None:
        idx = self._graph.index_of_commit(commit_hash)
        return None if idx is None else self.get(idx)

    def index_of(self, version: Version) -> int | None:
        """First node assigned exactly ``version``."""
        for idx, assigned in enumerate(self._versions):
            if assigned == version:
                return idx
        return None


def _maximal(indices: Iterable[int], versions: Sequence[Version | None]) -> list[int]:
    """Indices whose versions are not below any other one (first of equals kept)."""
    result: list[int] = []
    for idx in indices:
        if idx in result:
            continue
        candidate = versions[idx]
        if any(versions[kept] >= candidate for kept in result):
            continue
        result = [kept for kept in result if not candidate > versions[kept]]
        result.append(idx)
    return result


def _is_monotonic(candidate: Version, reached: Iterable[Version]) -> bool:
    return all(candidate >= version for version in reached)


class _Engine:
    """One assignment pass; writes each slot of ``versions`` exactly once."""

    def __init__(self, graph: CommitGraph, version_format: VersionFormat, config: CCVerConfig) -> None:
        self.graph = graph
        self.format = version_format
        self.config = config
        self.versions: list[Version | None] = [None] * len(graph)
        self.frontiers: list[list[int]] = [[] for _ in range(len(graph))]
        self.violations: list[MonotonicityViolation] = []

    def run(self) -> VersionMap:
        for idx in self.graph.topological_order(self.config.include_unreachable):
            self.visit(idx)
        return VersionMap(self.graph, self.versions, self.violations)

    def visit(self, idx: int) -> None:
        record = self.graph[idx]
        ancestor_frontier = _maximal(
            (i for parent in self.graph.parents(idx) for i in self.frontiers[parent]),
            self.versions,
        )
        reached = [self.versions[i] for i in ancestor_frontier]

        tagged = record.tagged_version
        if tagged is not None:
            version = tagged
            if not _is_monotonic(tagged, reached):
                highest = next(v for v in reached if not tagged >= v)
                violation = MonotonicityViolation(
                    f"Tag {tagged} on commit {record.short_hash} is lower than "
                    f"version {highest} already reached by an ancestor",
                    commit_hash=record.commit_hash,
                    tagged=tagged,
                    reached=highest,
                )
                log.debug("%s", violation)
                self.violations.append(violation)
        elif not reached:
            version = self.initial_version(record)
        else:
            version = self.derive(record, ancestor_frontier)
            if not _is_monotonic(version, reached):
                version = self.push_forward(record, version, reached)

        self.versions[idx] = version
        self.frontiers[idx] = _maximal([*ancestor_frontier, idx], self.versions)

    def initial_version(self, record: CommitRecord) -> Version:
        version = zero_version(self.format, record)
        bump = _BUMPS.get(classify_subject(record.subject, self.config.commits))
        return bump(version, record, self.format) if bump else version

    def max_parent(self, record: CommitRecord, frontier: list[int]) -> Version:
        """Highest ancestor version, preferring one already on the commit's channel."""
        channel = channel_for_branch(record.branch, self.config.branches)
        for idx in frontier:
            version = self.versions[idx]
            on_channel = version.channel == channel if channel else not version.is_prerelease
            if on_channel:
                return version
        return self.versions[frontier[0]]

    def derive(self, record: CommitRecord, frontier: list[int]) -> Version:
        base = self.max_parent(record, frontier)
        kind = classify_subject(record.subject, self.config.commits)
        channel = channel_for_branch(record.branch, self.config.branches)
        bump = _BUMPS.get(kind)

        if channel is None:
            if bump is not None:
                return bump(base, record, self.format)
            if record.is_merge and isinstance(record.subject, TextSubject):
                return release(base)
            return with_build_hash(base, record, self.format)

        bumped = bump(base, record, self.format) if bump is not None else base
        return enter_or_advance_channel(bumped, channel, record, self.format)

    def push_forward(self, record: CommitRecord, version: Version, reached: list[Version]) -> Version:
        """Bump a derived version until it is not below any ancestor, keeping its prerelease."""
        for bump in (bump_patch, bump_minor, bump_major):
            pushed = bump(version, record, self.format).with_prerelease(version.prerelease)
            if _is_monotonic(pushed, reached):
                log.debug("Pushed %s forward to %s on %s", version, pushed, record.short_hash)
                return pushed
        violation = MonotonicityViolation(
            f"Commit {record.short_hash} cannot be versioned above its ancestors "
            f"({', '.join(map(str, reached))})",
            commit_hash=record.commit_hash,
            tagged=version,
            reached=reached[0],
        )
        self.violations.append(violation)
        return version


def assign_versions(
    graph: CommitGraph,
    version_format: VersionFormat,
    config: CCVerConfig | None = None,
    *,
    strict: bool = True,
) -> VersionMap:
    """Assign a version to every commit of ``graph``.

    Args:
        graph: Commit graph
        version_format: Format all versions are expressed in
        config: Commit type and branch tables, ``include_unreachable``
        strict: Raise when a tag violates monotonicity instead of only
            reporting it in ``VersionMap.violations``

    Returns:
        The version map

    Raises:
        VersionAssignmentError: If ``strict`` and any violation was found;
            the partial map is attached to the error
    """
    config = config or CCVerConfig()
    version_map = _Engine(graph, version_format, config).run()
    log.debug("Assigned %d versions, HEAD is %s", len(version_map), version_map.get(graph.head))

    if version_map.violations:
        if strict:
            raise VersionAssignmentError(version_map.violations, version_map)
        for violation in version_map.violations:
            log.warning("%s", violation)
    return version_map


def peek_version(
    graph: CommitGraph,
    message: str,
    version_format: VersionFormat,
    config: CCVerConfig | None = None,
    *,
    timestamp: datetime | None = None,
    strict: bool = True,
) -> Version:
    """Version a new commit with ``message`` on top of HEAD would get.

    ``graph`` is not modified; the commit only exists in a speculative copy.
    """
    config = config or CCVerConfig()
    parsed = parse_commit_message(message, config.commits)
    speculative = graph.with_speculative_commit(
        parsed.subject,
        timestamp=timestamp,
        footers=parsed.footers,
    )
    return assign_versions(speculative, version_format, config, strict=strict).head_version
