"""Commit records, subjects and decorations.

A :class:`CommitRecord` is one commit as read from ``git log``: its hash,
parents, source branch, timestamp, parsed subject, trailers and the
decorations (tags, branch names, HEAD marker) git attached to it.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING

from ccver.core.version import Version
from ccver.core.version_format import SHORT_SHA_LENGTH

if TYPE_CHECKING:
    from datetime import datetime

    from ccver.config.models import CommitsConfig


class BumpKind(StrEnum):
    """Which version number a commit subject advances."""

    MAJOR = "major"
    MINOR = "minor"
    PATCH = "patch"
    OTHER = "other"

    @property
    def is_advancing(self) -> bool:
        return self is not BumpKind.OTHER


# Subjects


@dataclass(frozen=True)
class ConventionalSubject:
    """A ``type(scope)!: description`` subject line."""

    commit_type: str
    description: str
    scope: str | None = None
    breaking: bool = False

    def __str__(self) -> str:
        scope = f"({self.scope})" if self.scope else ""
        bang = "!" if self.breaking else ""
        return f"{self.commit_type}{scope}{bang}: {self.description}"


@dataclass(frozen=True)
class TextSubject:
    """A subject line that does not follow the conventional format."""

    text: str

    def __str__(self) -> str:
        return self.text


Subject = ConventionalSubject | TextSubject


def classify_subject(subject: Subject, commits: CommitsConfig) -> BumpKind:
    """Classify a subject by the version number it advances.

    Args:
        subject: Parsed subject line
        commits: Commit type tables

    Returns:
        BumpKind for the subject; text subjects are always OTHER
    """
    if isinstance(subject, TextSubject):
        return BumpKind.OTHER
    commit_type = subject.commit_type.lower()
    if subject.breaking or commit_type in commits.types_major:
        return BumpKind.MAJOR
    if commit_type in commits.types_minor:
        return BumpKind.MINOR
    if commit_type in commits.types_patch:
        return BumpKind.PATCH
    return BumpKind.OTHER


# Decorations


@dataclass(frozen=True)
class HeadIndicator:
    """``HEAD -> branch``; branch is None for a detached HEAD."""

    branch: str | None


@dataclass(frozen=True)
class Tag:
    """``tag: <name>``; the value is a Version when the name parses as one."""

    value: str | Version

    @property
    def version(self) -> Version | None:
        return self.value if isinstance(self.value, Version) else None

    @property
    def text(self) -> str:
        return str(self.value)


@dataclass(frozen=True)
class Branch:
    name: str


@dataclass(frozen=True)
class RemoteBranch:
    remote: str
    name: str

    @property
    def ref(self) -> str:
        return f"{self.remote}/{self.name}"


Decoration = HeadIndicator | Tag | Branch | RemoteBranch


# Records


@dataclass(frozen=True)
class CommitRecord:
    """One commit of the history.

    Attributes:
        commit_hash: Full commit hash
        parent_hashes: Hashes of the parents (empty for the root commit)
        branch: Branch the commit was reached from
        timestamp: Commit time (timezone aware)
        subject: Parsed subject line
        footers: Trailer key/value pairs
        decorations: Tags, branch names and HEAD marker
        name: Git's file-name friendly form of the subject
    """

    commit_hash: str
    parent_hashes: tuple[str, ...]
    branch: str | None
    timestamp: datetime
    subject: Subject
    footers: dict[str, str] = field(default_factory=dict)
    decorations: tuple[Decoration, ...] = ()
    name: str = ""

    @property
    def short_hash(self) -> str:
        return self.commit_hash[:SHORT_SHA_LENGTH]

    @property
    def is_merge(self) -> bool:
        return len(self.parent_hashes) > 1

    @property
    def is_root(self) -> bool:
        return not self.parent_hashes

    @property
    def is_head(self) -> bool:
        return any(isinstance(d, HeadIndicator) for d in self.decorations)

    @property
    def head_branch(self) -> str | None:
        for decoration in self.decorations:
            if isinstance(decoration, HeadIndicator):
                return decoration.branch
        return None

    @property
    def tags(self) -> list[Tag]:
        return [d for d in self.decorations if isinstance(d, Tag)]

    @property
    def tag_texts(self) -> list[str]:
        return [t.text for t in self.tags]

    @property
    def tagged_version(self) -> Version | None:
        """The highest version among the commit's tags, if any."""
        best: Version | None = None
        for tag in self.tags:
            version = tag.version
            if version is not None and (best is None or version > best):
                best = version
        return best
