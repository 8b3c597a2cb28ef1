"""In-memory commit graph.

The graph is an arena: a tuple of :class:`CommitRecord` values addressed by
integer index, plus parent and child adjacency tuples and lookup tables
built in a single sweep at construction time. Graphs are never mutated;
:meth:`CommitGraph.with_speculative_commit` returns a new graph.
"""

from __future__ import annotations

import logging
import re
from collections import deque
from dataclasses import replace
from datetime import UTC, datetime
from enum import StrEnum
from typing import TYPE_CHECKING

from ccver.core.commits import Branch, CommitRecord, HeadIndicator, RemoteBranch
from ccver.exceptions import GraphIntegrityError, UnknownReferenceError

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator

    from ccver.core.commits import Subject
    from ccver.core.version import Version

log = logging.getLogger(__name__)

SPECULATIVE_HASH = "0" * 40


class Direction(StrEnum):
    """Direction of a traversal along the history."""

    PARENTS = "parents"
    CHILDREN = "children"


def _slug(text: str) -> str:
    return re.sub(r"[^0-9A-Za-z]+", "-", text).strip("-")


class CommitGraph:
    """Immutable commit DAG with O(1) lookups by hash, tag, version, branch and remote.

    Use :meth:`build` to construct one from parsed records.
    """

    __slots__ = (
        "_branches",
        "_children",
        "_commits",
        "_head",
        "_parents",
        "_records",
        "_remotes",
        "_tags",
        "_tail",
        "_versions",
    )

    def __init__(
        self,
        records: tuple[CommitRecord, ...],
        parents: tuple[tuple[int, ...], ...],
        children: tuple[tuple[int, ...], ...],
        *,
        head: int,
        tail: int,
        commits: dict[str, int],
        tags: dict[str, int],
        versions: dict[Version, int],
        branches: dict[str, int],
        remotes: dict[str, int],
    ) -> None:
        self._records = records
        self._parents = parents
        self._children = children
        self._head = head
        self._tail = tail
        self._commits = commits
        self._tags = tags
        self._versions = versions
        self._branches = branches
        self._remotes = remotes

    @classmethod
    def build(cls, records: Iterable[CommitRecord]) -> CommitGraph:
        """Build a graph from commit records.

        Args:
            records: Parsed commits, in any order

        Returns:
            The commit graph

        Raises:
            GraphIntegrityError: On duplicate commits, parents missing from
                the history, zero or several root commits, zero or several
                HEAD markers, or a cycle
        """
        records = tuple(records)
        if not records:
            raise GraphIntegrityError("History is empty: no commits to build a graph from")

        commits: dict[str, int] = {}
        for idx, record in enumerate(records):
            if record.commit_hash in commits:
                raise GraphIntegrityError(f"Commit {record.commit_hash} appears more than once in the history")
            commits[record.commit_hash] = idx

        parents: list[tuple[int, ...]] = []
        children: list[list[int]] = [[] for _ in records]
        for idx, record in enumerate(records):
            resolved = []
            for parent_hash in record.parent_hashes:
                parent = commits.get(parent_hash)
                if parent is None:
                    raise GraphIntegrityError(
                        f"Commit {record.commit_hash} references parent {parent_hash} "
                        "which is not in the history"
                    )
                resolved.append(parent)
                children[parent].append(idx)
            parents.append(tuple(resolved))

        tags: dict[str, int] = {}
        versions: dict[Version, int] = {}
        branches: dict[str, int] = {}
        remotes: dict[str, int] = {}
        heads: list[int] = []
        for idx, record in enumerate(records):
            for decoration in record.decorations:
                if isinstance(decoration, HeadIndicator):
                    heads.append(idx)
                    if decoration.branch is not None:
                        branches[decoration.branch] = idx
                elif isinstance(decoration, Branch):
                    branches[decoration.name] = idx
                elif isinstance(decoration, RemoteBranch):
                    remotes[decoration.ref] = idx
                else:
                    tags[decoration.text] = idx
                    if decoration.version is not None:
                        versions[decoration.version] = idx

        tails = [idx for idx, p in enumerate(parents) if not p]
        if len(tails) != 1:
            found = ", ".join(records[i].short_hash for i in tails) or "none"
            raise GraphIntegrityError(f"Expected exactly one root commit, found {len(tails)} ({found})")
        if len(heads) != 1:
            found = ", ".join(records[i].short_hash for i in heads) or "none"
            raise GraphIntegrityError(f"Expected exactly one HEAD commit, found {len(heads)} ({found})")

        graph = cls(
            records,
            tuple(parents),
            tuple(tuple(c) for c in children),
            head=heads[0],
            tail=tails[0],
            commits=commits,
            tags=tags,
            versions=versions,
            branches=branches,
            remotes=remotes,
        )
        graph._check_acyclic()
        log.debug(
            "Built commit graph: %d commits, %d tags, %d branches, HEAD %s",
            len(records),
            len(tags),
            len(branches),
            records[heads[0]].short_hash,
        )
        return graph

    def _check_acyclic(self) -> None:
        """Kahn's algorithm over child->parent edges."""
        pending = [len(c) for c in self._children]
        ready = [idx for idx, count in enumerate(pending) if count == 0]
        seen = 0
        while ready:
            idx = ready.pop()
            seen += 1
            for parent in self._parents[idx]:
                pending[parent] -= 1
                if pending[parent] == 0:
                    ready.append(parent)
        if seen != len(self._records):
            raise GraphIntegrityError("Commit history contains a cycle")

    # Basic access

    def __len__(self) -> int:
        return len(self._records)

    def __getitem__(self, idx: int) -> CommitRecord:
        return self._records[idx]

    def __iter__(self) -> Iterator[int]:
        return iter(range(len(self._records)))

    @property
    def records(self) -> tuple[CommitRecord, ...]:
        return self._records

    @property
    def head(self) -> int:
        return self._head

    @property
    def tail(self) -> int:
        return self._tail

    @property
    def head_record(self) -> CommitRecord:
        return self._records[self._head]

    def parents(self, idx: int) -> tuple[int, ...]:
        return self._parents[idx]

    def children(self, idx: int) -> tuple[int, ...]:
        return self._children[idx]

    # Lookups

    def index_of_commit(self, commit_hash: str) -> int | None:
        return self._commits.get(commit_hash)

    def index_of_tag(self, tag: str) -> int | None:
        return self._tags.get(tag)

    def index_of_version(self, version: Version) -> int | None:
        return self._versions.get(version)

    def branch_tip(self, branch: str) -> int | None:
        return self._branches.get(branch)

    def remote_tip(self, ref: str) -> int | None:
        """Tip of a remote-tracking branch such as ``origin/main``."""
        return self._remotes.get(ref)

    @property
    def tags(self) -> dict[str, int]:
        return dict(self._tags)

    @property
    def branches(self) -> dict[str, int]:
        return dict(self._branches)

    @property
    def remotes(self) -> dict[str, int]:
        return dict(self._remotes)

    def resolve(self, ref: str) -> int:
        """Resolve ``HEAD``, a tag, branch, remote ref, full hash or unique hash prefix.

        Raises:
            UnknownReferenceError: If nothing (or more than one commit) matches
        """
        if ref == "HEAD":
            return self._head
        for table in (self._tags, self._branches, self._remotes, self._commits):
            if ref in table:
                return table[ref]
        if len(ref) >= 4:
            matches = [idx for commit, idx in self._commits.items() if commit.startswith(ref)]
            if len(matches) == 1:
                return matches[0]
            if len(matches) > 1:
                raise UnknownReferenceError(f"Commit prefix {ref!r} is ambiguous")
        raise UnknownReferenceError(f"Unknown reference {ref!r}")

    # Traversals

    def all_parents(self, idx: int) -> list[int]:
        """All transitive ancestors of ``idx`` (excluding itself), nearest first."""
        return list(self.bfs(idx, Direction.PARENTS))[1:]

    def bfs(self, start: int, direction: Direction = Direction.PARENTS) -> Iterator[int]:
        """Breadth-first traversal from ``start`` (included) along ``direction``."""
        edges = self._parents if direction is Direction.PARENTS else self._children
        seen = {start}
        queue = deque([start])
        while queue:
            idx = queue.popleft()
            yield idx
            for nxt in edges[idx]:
                if nxt not in seen:
                    seen.add(nxt)
                    queue.append(nxt)

    def postorder(self, start: int | None = None) -> list[int]:
        """Nodes reachable from ``start`` (default HEAD), parents before children."""
        return self._postorder([self._head if start is None else start], set())

    def topological_order(self, include_unreachable: bool = True) -> list[int]:
        """Postorder from HEAD, optionally followed by the nodes HEAD cannot reach.

        Every node still comes after all of its parents.
        """
        visited: set[int] = set()
        order = self._postorder([self._head], visited)
        if include_unreachable and len(order) < len(self._records):
            rest = [idx for idx in range(len(self._records)) if idx not in visited]
            order.extend(self._postorder(rest, visited))
        return order

    def _postorder(self, roots: list[int], visited: set[int]) -> list[int]:
        order: list[int] = []
        for root in roots:
            if root in visited:
                continue
            visited.add(root)
            stack = [(root, iter(self._parents[root]))]
            while stack:
                idx, pending = stack[-1]
                for parent in pending:
                    if parent not in visited:
                        visited.add(parent)
                        stack.append((parent, iter(self._parents[parent])))
                        break
                else:
                    stack.pop()
                    order.append(idx)
        return order

    # Peek

    def with_speculative_commit(
        self,
        subject: Subject,
        *,
        timestamp: datetime | None = None,
        footers: dict[str, str] | None = None,
    ) -> CommitGraph:
        """Return a new graph with one more commit on top of HEAD.

        The new commit has hash ``"0" * 40``, HEAD's branch, HEAD as its
        only parent, and becomes the new HEAD; the old HEAD loses its HEAD
        marker in the copy. This graph is left untouched.

        Args:
            subject: Subject of the hypothetical commit
            timestamp: Commit time (defaults to now, UTC)
            footers: Trailers of the hypothetical commit
        """
        head = self.head_record
        branch = head.head_branch or head.branch
        record = CommitRecord(
            commit_hash=SPECULATIVE_HASH,
            parent_hashes=(head.commit_hash,),
            branch=branch,
            timestamp=timestamp or datetime.now(UTC),
            subject=subject,
            footers=dict(footers or {}),
            decorations=(HeadIndicator(branch),),
            name=_slug(str(subject)),
        )
        idx = len(self._records)

        records = list(self._records)
        records[self._head] = replace(
            head,
            decorations=tuple(d for d in head.decorations if not isinstance(d, HeadIndicator)),
        )
        records.append(record)

        children = list(self._children)
        children[self._head] = (*children[self._head], idx)
        children.append(())

        commits = dict(self._commits)
        commits[record.commit_hash] = idx
        branches = dict(self._branches)
        if branch is not None:
            branches[branch] = idx

        return CommitGraph(
            tuple(records),
            (*self._parents, (self._head,)),
            tuple(children),
            head=idx,
            tail=self._tail,
            commits=commits,
            tags=dict(self._tags),
            versions=dict(self._versions),
            branches=branches,
            remotes=dict(self._remotes),
        )

    def __repr__(self) -> str:
        return f"CommitGraph({len(self)} commits, head={self.head_record.short_hash})"
