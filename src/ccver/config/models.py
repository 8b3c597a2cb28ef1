"""Pydantic models for ccver configuration.

The models mirror the ``[tool.ccver]`` table in ``pyproject.toml`` (or the
top level of a ``.ccver.toml`` file). Every field has a default so an empty
table yields a working configuration.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from pydantic import BaseModel, ConfigDict, Field, field_validator

if TYPE_CHECKING:
    from ccver.core.version_format import VersionFormat

DEFAULT_FORMAT = "CC.CC.CC"


class CommitsConfig(BaseModel):
    """Commit type to bump kind tables.

    A conventional commit whose type is listed in ``types_major`` is also
    treated as breaking, with or without the ``!`` marker.
    """

    model_config = ConfigDict(extra="forbid")

    types_major: list[str] = Field(
        default_factory=lambda: ["breaking", "major"],
        description="Commit types that bump the major number",
    )
    types_minor: list[str] = Field(
        default_factory=lambda: ["feat", "feature", "minor"],
        description="Commit types that bump the minor number",
    )
    types_patch: list[str] = Field(
        default_factory=lambda: ["fix", "bug", "patch"],
        description="Commit types that bump the patch number",
    )


class BranchesConfig(BaseModel):
    """Branch name to prerelease channel tables.

    Branches not listed anywhere get a channel named after the branch.
    """

    model_config = ConfigDict(extra="forbid")

    release: list[str] = Field(default_factory=lambda: ["main", "master", "release"])
    rc: list[str] = Field(default_factory=lambda: ["staging", "rc"])
    beta: list[str] = Field(default_factory=lambda: ["development", "beta"])
    alpha: list[str] = Field(default_factory=lambda: ["next", "alpha"])


class CCVerConfig(BaseModel):
    """Root configuration model."""

    model_config = ConfigDict(extra="forbid")

    format: str = Field(default=DEFAULT_FORMAT, description="Version format string")
    include_unreachable: bool = Field(
        default=True,
        description="Assign versions to commits not reachable from HEAD",
    )
    no_pre: bool = Field(default=False, description="Print versions without prerelease")
    ci: bool = Field(default=False, description="Fail when the work tree is dirty")

    commits: CommitsConfig = Field(default_factory=CommitsConfig)
    branches: BranchesConfig = Field(default_factory=BranchesConfig)

    @field_validator("format")
    @classmethod
    def _validate_format(cls, value: str) -> str:
        from ccver.core.grammar import parse_version_format
        from ccver.exceptions import GrammarError

        try:
            parse_version_format(value)
        except GrammarError as e:
            raise ValueError(str(e)) from e
        return value

    @property
    def version_format(self) -> VersionFormat:
        """The parsed ``format`` string."""
        from ccver.core.grammar import parse_version_format

        return parse_version_format(self.format)
