"""Configuration management for ccver."""

from __future__ import annotations

from ccver.config.loader import load_config
from ccver.config.models import BranchesConfig, CCVerConfig, CommitsConfig

__all__ = [
    "BranchesConfig",
    "CCVerConfig",
    "CommitsConfig",
    "load_config",
]
