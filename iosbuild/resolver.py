"""Parameter resolution: defaulting and derived directories."""
from __future__ import annotations

from dataclasses import dataclass, replace
from pathlib import Path

from .config_loader import BuildConfiguration, BuildDefaults, HostProject


@dataclass(frozen=True, slots=True)
class ResolvedPaths:
    base_dir: Path
    target_dir: Path
    work_dir: Path
    app_dir: Path


@dataclass(frozen=True, slots=True)
class ResolvedBuild:
    """Configuration with defaults applied, plus everything derived from it."""

    config: BuildConfiguration
    paths: ResolvedPaths
    host: HostProject
    defaults: BuildDefaults

    @property
    def sdk(self) -> str:
        return self.config.sdk or self.defaults.sdk

    @property
    def build_configuration(self) -> str:
        return self.config.build_configuration or self.defaults.build_configuration


def resolve(
    config: BuildConfiguration,
    host: HostProject,
    defaults: BuildDefaults | None = None,
) -> ResolvedBuild:
    """Apply defaults to ``config`` and derive the directories used by the build.

    Never fails; consistency checks belong to :func:`iosbuild.validation.validate`.

    The application directory is named after the *default* SDK even when a
    different SDK is configured. Existing pipelines expect the bundle there,
    so the derivation is kept as is.
    """

    defaults = defaults or BuildDefaults()
    resolved = replace(
        config,
        sdk=config.sdk or defaults.sdk,
        build_configuration=config.build_configuration or defaults.build_configuration,
    )

    base_dir = Path(host.base_dir)
    target_dir = Path(host.build_dir)
    paths = ResolvedPaths(
        base_dir=base_dir,
        target_dir=target_dir,
        work_dir=base_dir / resolved.source_dir,
        app_dir=target_dir / f"{resolved.build_configuration}-{defaults.sdk}",
    )
    return ResolvedBuild(config=resolved, paths=paths, host=host, defaults=defaults)
