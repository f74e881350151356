"""Orchestrates keychain unlock, CocoaPods, xcodebuild and xcrun packaging for iOS apps."""
from __future__ import annotations

from .build import BuildEngine, BuildPlan, BuildRun, BuildState, BuildStep
from .config_loader import BuildConfiguration, BuildDefaults, HostProject, KeychainParams
from .errors import BuildError, ConfigurationError, ToolError


def main(argv=None) -> int:
    from .cli import main as cli_main

    return cli_main(argv)


__all__ = [
    "BuildConfiguration",
    "BuildDefaults",
    "BuildEngine",
    "BuildError",
    "BuildPlan",
    "BuildRun",
    "BuildState",
    "BuildStep",
    "ConfigurationError",
    "HostProject",
    "KeychainParams",
    "ToolError",
    "main",
]
