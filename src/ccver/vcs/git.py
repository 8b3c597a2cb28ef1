"""Git operations via subprocess.

Only three things are needed from git: the formatted log, whether the work
tree is dirty, and creating tags. Everything else happens in memory.
"""

from __future__ import annotations

import logging
import subprocess
from pathlib import Path

from ccver.exceptions import DirtyWorkTreeError, GitError, GitNotFoundError

log = logging.getLogger(__name__)

GIT_LOG_FORMAT = (
    "--format=name=%n%f%nbranch=%n%S%ncommit=%n%H%ncommit-time=%n%cI%ndec=%n%d"
    "%nparent=%n%P%nsub=%n%s%ntrailers=%n%(trailers:only)%n"
)

GIT_FORMAT_ARGS: tuple[str, ...] = (
    "log",
    "--full-history",
    "--source",
    "--branches",
    GIT_LOG_FORMAT,
)


def git_format_command() -> str:
    """The git command whose output ``ccver --raw`` reads from stdin."""
    return "git " + " ".join(f"'{arg}'" if "%" in arg else arg for arg in GIT_FORMAT_ARGS)


class GitRepository:
    """A git work tree.

    Args:
        path: Any directory inside the work tree (defaults to the current
            directory)

    Raises:
        GitNotFoundError: If git is not installed
        GitError: If ``path`` is not inside a git work tree
    """

    def __init__(self, path: Path | str | None = None) -> None:
        self.path = Path(path).resolve() if path else Path.cwd()
        try:
            self._run("rev-parse", "--is-inside-work-tree")
        except GitNotFoundError:
            raise
        except GitError as e:
            raise GitError(f"Not a git repository: {self.path}", stderr=e.stderr) from e

    def _run(self, *args: str, check: bool = True) -> subprocess.CompletedProcess[str]:
        command = ["git", *args]
        log.debug("Running %s in %s", " ".join(command), self.path)
        try:
            return subprocess.run(
                command,
                capture_output=True,
                text=True,
                check=check,
                cwd=self.path,
            )
        except FileNotFoundError as e:
            raise GitNotFoundError("git not found. Install git and make sure it is on PATH") from e
        except subprocess.CalledProcessError as e:
            raise GitError(
                f"git {args[0]} failed with exit code {e.returncode}",
                stderr=e.stderr,
            ) from e

    def formatted_log(self) -> str:
        """Log of all local branches in the layout :func:`ccver.core.grammar.parse_log` reads."""
        return self._run(*GIT_FORMAT_ARGS).stdout

    def remotes(self) -> list[str]:
        return self._run("remote").stdout.split()

    def ensure_clean(self) -> None:
        """Raise if the work tree is dirty.

        Raises:
            DirtyWorkTreeError: With the changed files as details
        """
        result = self._run("diff", "--exit-code", "--stat", check=False)
        if result.returncode == 1:
            raise DirtyWorkTreeError("Repository has uncommitted changes", stderr=result.stdout)
        if result.returncode != 0:
            raise GitError(
                f"git diff failed with exit code {result.returncode}",
                stderr=result.stderr,
            )

    def tag_exists(self, name: str) -> bool:
        return bool(self._run("tag", "--list", name).stdout.strip())

    def create_tag(self, name: str, commit: str = "HEAD", message: str | None = None) -> None:
        """Create a tag on ``commit``; annotated when ``message`` is given.

        Raises:
            GitError: If the tag already exists or git fails
        """
        if self.tag_exists(name):
            raise GitError(f"Tag {name} already exists")
        if message is None:
            self._run("tag", name, commit)
        else:
            self._run("tag", "--annotate", name, "--message", message, commit)
        log.info("Created tag %s on %s", name, commit)
