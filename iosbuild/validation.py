"""Consistency checks run before any external tool is invoked."""
from __future__ import annotations

from .config_loader import BuildConfiguration
from .errors import ConfigurationError
from .resolver import ResolvedPaths


def validate(config: BuildConfiguration, paths: ResolvedPaths) -> None:
    """Raise :class:`ConfigurationError` when ``config`` cannot be built as given."""

    if config.workspace_name is not None and config.scheme is None:
        raise ConfigurationError("The 'scheme' parameter is required when building a workspace")

    if not paths.work_dir.exists():
        raise ConfigurationError(f"Invalid sourceDir specified: {paths.work_dir.absolute()}")
