"""Implementation of the 'git-format' command.

Prints the git command whose output ``ccver --raw`` expects on stdin.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from ccver.vcs.git import git_format_command

if TYPE_CHECKING:
    from ccver.cli.context import CLIContext


def run_git_format(ctx: CLIContext) -> None:
    ctx.console.print(git_format_command(), markup=False, highlight=False, soft_wrap=True)
