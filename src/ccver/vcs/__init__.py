"""Version control system access."""

from __future__ import annotations

from ccver.vcs.git import GIT_FORMAT_ARGS, GitRepository, git_format_command

__all__ = ["GIT_FORMAT_ARGS", "GitRepository", "git_format_command"]
