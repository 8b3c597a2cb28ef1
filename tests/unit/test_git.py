"""Tests for git access."""

from __future__ import annotations

import subprocess
from typing import TYPE_CHECKING
from unittest.mock import MagicMock, patch

import pytest

from ccver.exceptions import DirtyWorkTreeError, GitError, GitNotFoundError
from ccver.vcs.git import GIT_FORMAT_ARGS, GitRepository, git_format_command

if TYPE_CHECKING:
    from collections.abc import Iterator
    from pathlib import Path


def _completed(stdout: str = "", returncode: int = 0, stderr: str = "") -> MagicMock:
    return MagicMock(stdout=stdout, stderr=stderr, returncode=returncode)


@pytest.fixture
def mock_run() -> Iterator[MagicMock]:
    """Patched subprocess.run answering the work tree check."""
    with patch("subprocess.run") as run:
        run.return_value = _completed("true\n")
        yield run


@pytest.fixture
def repo(mock_run: MagicMock, tmp_path: Path) -> GitRepository:
    repo = GitRepository(tmp_path)
    mock_run.reset_mock()
    return repo


class TestGitRepository:
    """Tests for GitRepository."""

    def test_checks_work_tree(self, mock_run: MagicMock, tmp_path: Path):
        """The constructor asks git whether the path is a work tree."""
        GitRepository(tmp_path)

        args, kwargs = mock_run.call_args
        assert args[0] == ["git", "rev-parse", "--is-inside-work-tree"]
        assert kwargs["cwd"] == tmp_path.resolve()

    def test_not_a_repository(self, mock_run: MagicMock, tmp_path: Path):
        """Paths outside a work tree raise GitError."""
        mock_run.side_effect = subprocess.CalledProcessError(
            128, "git", stderr="fatal: not a git repository"
        )

        with pytest.raises(GitError, match="Not a git repository") as excinfo:
            GitRepository(tmp_path)

        assert excinfo.value.stderr == "fatal: not a git repository"

    def test_git_not_installed(self, mock_run: MagicMock, tmp_path: Path):
        """A missing git executable raises GitNotFoundError."""
        mock_run.side_effect = FileNotFoundError("git")

        with pytest.raises(GitNotFoundError, match="git not found"):
            GitRepository(tmp_path)

    def test_formatted_log(self, repo: GitRepository, mock_run: MagicMock):
        """The log is read with the ccver format."""
        mock_run.return_value = _completed("name=\n...")

        assert repo.formatted_log() == "name=\n..."
        assert mock_run.call_args[0][0] == ["git", *GIT_FORMAT_ARGS]

    def test_remotes(self, repo: GitRepository, mock_run: MagicMock):
        """Remote names, one per line."""
        mock_run.return_value = _completed("origin\nupstream\n")

        assert repo.remotes() == ["origin", "upstream"]

    def test_ensure_clean(self, repo: GitRepository, mock_run: MagicMock):
        """A dirty tree raises with the changed files."""
        mock_run.return_value = _completed(" src/x.py | 2 +-\n", returncode=1)

        with pytest.raises(DirtyWorkTreeError, match="src/x.py"):
            repo.ensure_clean()

    def test_ensure_clean_passes(self, repo: GitRepository, mock_run: MagicMock):
        """A clean tree passes."""
        mock_run.return_value = _completed()

        repo.ensure_clean()

        assert mock_run.call_args[0][0][:3] == ["git", "diff", "--exit-code"]

    def test_ensure_clean_failure(self, repo: GitRepository, mock_run: MagicMock):
        """Exit codes other than 0 and 1 are errors."""
        mock_run.return_value = _completed(returncode=128, stderr="fatal")

        with pytest.raises(GitError, match="exit code 128"):
            repo.ensure_clean()

    def test_create_lightweight_tag(self, repo: GitRepository, mock_run: MagicMock):
        """Without a message a lightweight tag is created."""
        mock_run.side_effect = [_completed(""), _completed("")]

        repo.create_tag("v1.0.0")

        assert mock_run.call_args_list[0][0][0] == ["git", "tag", "--list", "v1.0.0"]
        assert mock_run.call_args_list[1][0][0] == ["git", "tag", "v1.0.0", "HEAD"]

    def test_create_annotated_tag(self, repo: GitRepository, mock_run: MagicMock):
        """With a message the tag is annotated."""
        mock_run.side_effect = [_completed(""), _completed("")]

        repo.create_tag("v1.0.0", message="Release 1.0.0")

        assert mock_run.call_args_list[1][0][0] == [
            "git",
            "tag",
            "--annotate",
            "v1.0.0",
            "--message",
            "Release 1.0.0",
            "HEAD",
        ]

    def test_create_existing_tag(self, repo: GitRepository, mock_run: MagicMock):
        """Existing tags are not overwritten."""
        mock_run.return_value = _completed("v1.0.0\n")

        with pytest.raises(GitError, match="already exists"):
            repo.create_tag("v1.0.0")

    def test_command_failure(self, repo: GitRepository, mock_run: MagicMock):
        """Failing commands raise GitError with git's stderr."""
        mock_run.side_effect = subprocess.CalledProcessError(1, "git", stderr="bad revision")

        with pytest.raises(GitError, match="bad revision"):
            repo.remotes()


class TestGitFormatCommand:
    """Tests for git_format_command()."""

    def test_command(self):
        """The printed command quotes the format argument."""
        command = git_format_command()

        assert command.startswith("git log --full-history --source --branches '--format=name=%n%f")
        assert command.endswith("%(trailers:only)%n'")
