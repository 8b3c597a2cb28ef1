"""Implementation of the 'peek' command.

Prints the version a new commit with the given message would get, without
creating the commit.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from ccver.cli.context import load_history
from ccver.core.assign import peek_version
from ccver.core.version import release
from ccver.exceptions import CCVerError

if TYPE_CHECKING:
    from ccver.cli.context import CLIContext


def run_peek(ctx: CLIContext, message: str) -> None:
    """Run the peek command.

    Args:
        ctx: CLI context
        message: Commit message of the hypothetical commit
    """
    history = load_history(ctx)

    try:
        version = peek_version(
            history.graph,
            message,
            history.version_format,
            history.config,
        )
    except CCVerError as e:
        ctx.fail(str(e), e)

    if history.config.no_pre:
        version = release(version)
    ctx.console.print(str(version), markup=False, highlight=False)
