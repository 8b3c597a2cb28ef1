"""Exception hierarchy for ccver.

All errors raised by ccver derive from :class:`CCVerError` so callers
(and the CLI) can catch a single base class.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Sequence


class CCVerError(Exception):
    """Base class for all ccver errors."""


# Grammar


@dataclass(frozen=True)
class SourceSpan:
    """Location of a parse failure inside the parsed text.

    ``line`` and ``column`` are 1-based, ``offset`` is the 0-based
    character offset from the start of the input.
    """

    line: int
    column: int
    offset: int

    def __str__(self) -> str:
        return f"line {self.line}, column {self.column}"


class GrammarError(CCVerError):
    """Malformed log record, commit subject, format string or version."""

    def __init__(self, message: str, span: SourceSpan | None = None) -> None:
        self.span = span
        if span is not None:
            message = f"{message} (at {span})"
        super().__init__(message)


# Graph


class GraphIntegrityError(CCVerError):
    """The commit history cannot form a valid graph."""


class UnknownReferenceError(CCVerError, LookupError):
    """A tag, branch or commit reference does not exist in the history."""


# Versions


class IncomparableVersionNumbers(CCVerError):
    """Two version values cannot be ordered against each other."""

    def __init__(self, left: Any, right: Any) -> None:
        self.left = left
        self.right = right
        super().__init__(f"Cannot compare {left!r} with {right!r}")


class MonotonicityViolation(CCVerError):
    """A tagged version is lower than a version an ancestor already reached."""

    def __init__(
        self,
        message: str,
        *,
        commit_hash: str | None = None,
        tagged: Any = None,
        reached: Any = None,
    ) -> None:
        super().__init__(message)
        self.commit_hash = commit_hash
        self.tagged = tagged
        self.reached = reached


class VersionAssignmentError(MonotonicityViolation):
    """Version assignment finished with one or more monotonicity violations.

    All violations and the partially assigned version map are attached.
    """

    def __init__(self, violations: Sequence[MonotonicityViolation], version_map: Any) -> None:
        self.violations = list(violations)
        self.version_map = version_map
        first = self.violations[0]
        details = "\n".join(f"  - {v}" for v in self.violations)
        super().__init__(
            f"{len(self.violations)} monotonicity violation(s):\n{details}",
            commit_hash=first.commit_hash,
            tagged=first.tagged,
            reached=first.reached,
        )


# Configuration


class ConfigError(CCVerError):
    """Base class for configuration errors."""


class ConfigNotFoundError(ConfigError):
    """A configuration file could not be found or read."""


class ConfigValidationError(ConfigError):
    """Configuration values are invalid."""


# Git


class GitError(CCVerError):
    """A git command failed."""

    def __init__(self, message: str, stderr: str | None = None) -> None:
        self.stderr = stderr
        if stderr:
            message = f"{message}\n{stderr.strip()}"
        super().__init__(message)


class GitNotFoundError(GitError):
    """The git executable is not available."""


class DirtyWorkTreeError(GitError):
    """The work tree has uncommitted changes."""
