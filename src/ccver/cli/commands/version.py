"""Implementation of the 'version' command.

Prints the version of HEAD (or of another commit).
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from ccver.cli.context import load_history
from ccver.core.version import release
from ccver.exceptions import CCVerError

if TYPE_CHECKING:
    from ccver.cli.context import CLIContext


def run_version(ctx: CLIContext, ref: str | None = None) -> None:
    """Run the version command.

    Args:
        ctx: CLI context
        ref: Commit, tag or branch to print the version of (defaults to HEAD)
    """
    history = load_history(ctx)

    try:
        idx = history.graph.head if ref is None else history.graph.resolve(ref)
    except CCVerError as e:
        ctx.fail(str(e), e)

    version = history.versions.get(idx)
    if version is None:
        ctx.fail(f"Commit {ref} has no version (not reachable from HEAD)")
    if history.config.no_pre:
        version = release(version)
    ctx.console.print(str(version), markup=False, highlight=False)
