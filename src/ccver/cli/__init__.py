"""Command line interface for ccver."""

from __future__ import annotations

from ccver.cli.main import cli, main

__all__ = ["cli", "main"]
