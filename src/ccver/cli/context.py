"""Shared state and history loading for CLI commands."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, NoReturn

import click
from rich.markup import escape

from ccver.config import load_config
from ccver.core.assign import assign_versions
from ccver.core.grammar import parse_log
from ccver.core.graph import CommitGraph
from ccver.exceptions import CCVerError
from ccver.vcs import GitRepository

if TYPE_CHECKING:
    from rich.console import Console

    from ccver.config.models import CCVerConfig
    from ccver.core.assign import VersionMap
    from ccver.core.version_format import VersionFormat

log = logging.getLogger(__name__)


@dataclass
class CLIContext:
    """Options of the ``ccver`` group, passed to every command."""

    path: Path
    format: str | None
    ci: bool
    no_pre: bool
    raw: bool
    console: Console
    err_console: Console

    def fail(self, message: str, error: BaseException | None = None) -> NoReturn:
        """Print an error to stderr and exit with status 1."""
        self.err_console.print(f"[red]Error:[/] {escape(message)}")
        if error is not None:
            raise SystemExit(1) from error
        raise SystemExit(1)


@dataclass
class History:
    """Everything a command needs about the repository."""

    config: CCVerConfig
    version_format: VersionFormat
    graph: CommitGraph
    versions: VersionMap
    repo: GitRepository | None


def load_settings(ctx: CLIContext) -> CCVerConfig:
    """Configuration file merged with command line flags."""
    try:
        return load_config(
            ctx.path,
            overrides={"format": ctx.format, "ci": ctx.ci or None, "no_pre": ctx.no_pre or None},
        )
    except CCVerError as e:
        ctx.fail(f"loading config: {e}", e)


def load_history(ctx: CLIContext, *, strict: bool = True) -> History:
    """Read the log, build the graph and assign versions.

    With ``--raw`` the log is read from stdin and git is never invoked.
    """
    config = load_settings(ctx)
    version_format = config.version_format

    repo: GitRepository | None = None
    try:
        if ctx.raw:
            log.debug("Reading git log from stdin")
            with click.open_file("-") as stream:
                raw_log = stream.read()
            remotes = None
        else:
            repo = GitRepository(ctx.path)
            if config.ci:
                repo.ensure_clean()
            raw_log = repo.formatted_log()
            remotes = repo.remotes()
    except CCVerError as e:
        ctx.fail(str(e), e)

    try:
        records = parse_log(
            raw_log,
            version_format=version_format,
            commits=config.commits,
            remotes=remotes,
        )
        graph = CommitGraph.build(records)
        versions = assign_versions(graph, version_format, config, strict=strict)
    except CCVerError as e:
        ctx.fail(str(e), e)

    return History(config, version_format, graph, versions, repo)
