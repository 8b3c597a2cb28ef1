"""Shared test fixtures."""

from __future__ import annotations

from dataclasses import replace
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING

import pytest

from ccver.core.commits import Branch, CommitRecord, HeadIndicator, Tag
from ccver.core.grammar import parse_subject, parse_version, parse_version_format
from ccver.core.graph import CommitGraph
from ccver.exceptions import GrammarError

if TYPE_CHECKING:
    from pathlib import Path

    from ccver.core.version import Version
    from ccver.core.version_format import VersionFormat

BASE_TIME = datetime(2024, 3, 15, 12, 0, 0, tzinfo=UTC)


class HistoryBuilder:
    """Builds commit histories for tests.

    Commits get sequential hex hashes and timestamps one hour apart. The
    parent of a new commit defaults to the previous one.
    """

    def __init__(self, version_format: VersionFormat | None = None) -> None:
        self.version_format = version_format or parse_version_format("CC.CC.CC")
        self.records: list[CommitRecord] = []

    def commit(
        self,
        subject: str,
        *,
        parents: list[str] | None = None,
        branch: str = "main",
        tags: tuple[str, ...] = (),
        footers: dict[str, str] | None = None,
        timestamp: datetime | None = None,
    ) -> str:
        """Add a commit and return its hash."""
        commit_hash = format(len(self.records) + 1, "040x")
        if parents is None:
            parents = [self.records[-1].commit_hash] if self.records else []
        decorations = tuple(Tag(self._tag_value(t)) for t in tags)
        self.records.append(
            CommitRecord(
                commit_hash=commit_hash,
                parent_hashes=tuple(parents),
                branch=branch,
                timestamp=timestamp or BASE_TIME + timedelta(hours=len(self.records)),
                subject=parse_subject(subject),
                footers=footers or {},
                decorations=decorations,
                name=subject,
            )
        )
        return commit_hash

    def _tag_value(self, text: str) -> str | Version:
        try:
            return parse_version(text, self.version_format)
        except GrammarError:
            return text

    def finished(self, head: str | None = None) -> list[CommitRecord]:
        """Records with the HEAD marker on ``head`` (default: last commit)."""
        head = head or self.records[-1].commit_hash
        result = []
        for record in self.records:
            if record.commit_hash == head:
                record = replace(
                    record,
                    decorations=(HeadIndicator(record.branch), *record.decorations),
                )
            result.append(record)
        return result

    def build(self, head: str | None = None) -> CommitGraph:
        return CommitGraph.build(self.finished(head))

    def to_log(self, head: str | None = None) -> str:
        """Render the history as ``git log`` output in ccver's format."""
        chunks = []
        for record in reversed(self.finished(head)):
            decorations = []
            for decoration in record.decorations:
                if isinstance(decoration, HeadIndicator):
                    decorations.append(f"HEAD -> {decoration.branch}")
                elif isinstance(decoration, Tag):
                    decorations.append(f"tag: {decoration.text}")
                elif isinstance(decoration, Branch):
                    decorations.append(decoration.name)
            dec = f" ({', '.join(decorations)})" if decorations else ""
            trailers = "".join(f"{k}: {v}\n" for k, v in record.footers.items())
            chunks.append(
                "name=\n"
                f"{record.name}\n"
                "branch=\n"
                f"refs/heads/{record.branch}\n"
                "commit=\n"
                f"{record.commit_hash}\n"
                "commit-time=\n"
                f"{record.timestamp.isoformat()}\n"
                "dec=\n"
                f"{dec}\n"
                "parent=\n"
                f"{' '.join(record.parent_hashes)}\n"
                "sub=\n"
                f"{record.subject}\n"
                "trailers=\n"
                f"{trailers}\n"
            )
        return "".join(chunks)


@pytest.fixture
def history() -> HistoryBuilder:
    """An empty history using the default sequential format."""
    return HistoryBuilder()


@pytest.fixture
def make_history() -> type[HistoryBuilder]:
    """The HistoryBuilder class, for histories with a custom version format."""
    return HistoryBuilder


@pytest.fixture
def linear_history(history: HistoryBuilder) -> HistoryBuilder:
    """root -> feat -> fix on main."""
    history.commit("initial commit")
    history.commit("feat: add x")
    history.commit("fix: bug")
    return history


@pytest.fixture
def temp_git_repo_with_pyproject(tmp_path: Path) -> Path:
    """A project directory with a pyproject.toml holding a [tool.ccver] table."""
    (tmp_path / "pyproject.toml").write_text(
        """\
[project]
name = "test-project"
version = "1.0.0"

[tool.ccver]
format = "vCC.CC.CC-rc.CC"
include_unreachable = false

[tool.ccver.commits]
types_minor = ["feat", "feature"]
"""
    )
    return tmp_path
