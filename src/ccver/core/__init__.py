"""Core business logic for ccver.

This module contains the fundamental building blocks:
- Grammar for git logs, commit messages, version formats and versions
- The commit graph
- Version values and their ordering
- Version assignment over the graph
- Changelog generation
"""

from __future__ import annotations

from ccver.core.assign import VersionMap, assign_versions, channel_for_branch, peek_version
from ccver.core.changelog import ChangeLog, build_changelog
from ccver.core.commits import (
    BumpKind,
    CommitRecord,
    ConventionalSubject,
    TextSubject,
    classify_subject,
)
from ccver.core.grammar import (
    parse_commit_message,
    parse_log,
    parse_subject,
    parse_version,
    parse_version_format,
)
from ccver.core.graph import CommitGraph, Direction
from ccver.core.version import Version
from ccver.core.version_format import VersionFormat

__all__ = [
    # Commits
    "BumpKind",
    # Changelog
    "ChangeLog",
    # Graph
    "CommitGraph",
    "CommitRecord",
    "ConventionalSubject",
    "Direction",
    "TextSubject",
    # Versions
    "Version",
    "VersionFormat",
    "VersionMap",
    "assign_versions",
    "build_changelog",
    "channel_for_branch",
    "classify_subject",
    # Grammar
    "parse_commit_message",
    "parse_log",
    "parse_subject",
    "parse_version",
    "parse_version_format",
    "peek_version",
]
