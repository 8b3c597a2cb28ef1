"""Implementation of the 'tag' command.

Tags HEAD with its computed version.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from rich.panel import Panel

from ccver.cli.context import load_history
from ccver.exceptions import CCVerError

if TYPE_CHECKING:
    from ccver.cli.context import CLIContext


def run_tag(ctx: CLIContext, message: str | None, dry_run: bool) -> None:
    """Run the tag command.

    Args:
        ctx: CLI context
        message: Annotation message; a lightweight tag is created when None
        dry_run: Only show the tag that would be created
    """
    if ctx.raw:
        ctx.fail("--raw cannot be used with tag: tags are written to the repository")

    history = load_history(ctx)
    head = history.graph.head_record
    tag_name = str(history.versions.head_version)

    if tag_name in head.tag_texts:
        ctx.err_console.print(f"[yellow]HEAD is already tagged {tag_name}[/]")
        ctx.console.print(tag_name, markup=False, highlight=False)
        return

    if dry_run:
        ctx.err_console.print(
            Panel(
                f"Would tag [cyan]{head.short_hash}[/] as [green]{tag_name}[/]",
                title="[yellow]Dry Run Preview[/]",
                border_style="yellow",
            )
        )
        ctx.console.print(tag_name, markup=False, highlight=False)
        return

    try:
        history.repo.create_tag(tag_name, head.commit_hash, message)
    except CCVerError as e:
        ctx.fail(str(e), e)

    ctx.err_console.print(f"[green]✓[/] Tagged {head.short_hash} as {tag_name}")
    ctx.console.print(tag_name, markup=False, highlight=False)
