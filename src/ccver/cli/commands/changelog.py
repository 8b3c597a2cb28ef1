"""Implementation of the 'changelog' command."""

from __future__ import annotations

from typing import TYPE_CHECKING

from rich.markdown import Markdown

from ccver.cli.context import load_history
from ccver.core.changelog import build_changelog
from ccver.exceptions import CCVerError

if TYPE_CHECKING:
    from ccver.cli.context import CLIContext


def run_changelog(ctx: CLIContext, ref: str | None = None, pretty: bool = False) -> None:
    """Run the changelog command.

    Args:
        ctx: CLI context
        ref: Commit, tag or branch to start from (defaults to HEAD)
        pretty: Render the markdown for the terminal instead of printing it raw
    """
    history = load_history(ctx)

    try:
        start = None if ref is None else history.graph.resolve(ref)
        changelog = build_changelog(history.graph, start, history.config.commits)
    except CCVerError as e:
        ctx.fail(str(e), e)

    if pretty:
        ctx.console.print(Markdown(changelog.render()))
    else:
        ctx.console.print(changelog.render(), end="", markup=False, highlight=False, soft_wrap=True)
