"""ccver command line entry point."""

from __future__ import annotations

import logging
import sys
from pathlib import Path

import click
from rich.console import Console

from ccver import __version__
from ccver.cli.context import CLIContext

LOG_FORMAT = "[%(levelname)s] %(message)s"


@click.group(invoke_without_command=True)
@click.version_option(__version__, prog_name="ccver")
@click.option(
    "--path",
    "-p",
    type=click.Path(exists=True, file_okay=False, dir_okay=True, path_type=Path),
    default=".",
    envvar="CCVER_PATH",
    help="Path to the git repository.",
)
@click.option(
    "--format",
    "-f",
    "version_format",
    default=None,
    envvar="CCVER_FORMAT",
    help="Version format, e.g. 'vCC.CC.CC-rc.CC' or 'YYYY.MM.CC'.",
)
@click.option(
    "--ci",
    is_flag=True,
    default=False,
    envvar="CCVER_CI",
    help="Fail if the work tree has uncommitted changes.",
)
@click.option(
    "--no-pre",
    is_flag=True,
    default=False,
    help="Print versions without their prerelease part.",
)
@click.option(
    "--raw",
    is_flag=True,
    default=False,
    help="Read the git log from stdin instead of running git (see 'git-format').",
)
@click.option("--verbose", "-v", is_flag=True, default=False, help="Log debug output to stderr.")
@click.pass_context
def cli(
    ctx: click.Context,
    path: Path,
    version_format: str | None,
    ci: bool,
    no_pre: bool,
    raw: bool,
    verbose: bool,
) -> None:
    """Versions and changelogs derived from conventional commits.

    Without a command, prints the version of HEAD.
    """
    if verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    ctx.obj = CLIContext(
        path=path,
        format=version_format,
        ci=ci,
        no_pre=no_pre,
        raw=raw,
        console=Console(),
        err_console=Console(stderr=True),
    )
    if ctx.invoked_subcommand is None:
        from ccver.cli.commands.version import run_version

        run_version(ctx.obj)


@cli.command()
@click.argument("ref", required=False)
@click.pass_obj
def version(app: CLIContext, ref: str | None) -> None:
    """Print the version of HEAD, or of REF (a commit, tag or branch)."""
    from ccver.cli.commands.version import run_version

    run_version(app, ref)


@cli.command()
@click.argument("message")
@click.pass_obj
def peek(app: CLIContext, message: str) -> None:
    """Print the version a new commit with MESSAGE would get."""
    from ccver.cli.commands.peek import run_peek

    run_peek(app, message)


@cli.command()
@click.option("--from", "ref", default=None, help="Commit, tag or branch to start from.")
@click.option("--pretty", is_flag=True, default=False, help="Render for the terminal.")
@click.pass_obj
def changelog(app: CLIContext, ref: str | None, pretty: bool) -> None:
    """Print the changelog of HEAD since the last version bump."""
    from ccver.cli.commands.changelog import run_changelog

    run_changelog(app, ref, pretty)


@cli.command("git-format")
@click.pass_obj
def git_format(app: CLIContext) -> None:
    """Print the git command that produces the log ccver reads."""
    from ccver.cli.commands.git_format import run_git_format

    run_git_format(app)


@cli.command()
@click.option("--message", "-m", default=None, help="Create an annotated tag with this message.")
@click.option("--dry-run", is_flag=True, default=False, help="Only show the tag.")
@click.pass_obj
def tag(app: CLIContext, message: str | None, dry_run: bool) -> None:
    """Tag HEAD with its version."""
    from ccver.cli.commands.tag import run_tag

    run_tag(app, message, dry_run)


def main() -> None:
    logging.basicConfig(level=logging.WARNING, format=LOG_FORMAT, stream=sys.stderr)
    cli()


if __name__ == "__main__":
    main()
