"""Argument vectors for the external tools driven by the build."""
from __future__ import annotations

from typing import Any, List

from .config_loader import KeychainParams
from .resolver import ResolvedBuild


WORKSPACE_SUFFIX = ".xcworkspace"
PROJECT_SUFFIX = ".xcodeproj"


def canonical_name(name: str, suffix: str) -> str:
    if name.endswith(suffix):
        return name
    return name + suffix


def pod_command(has_lock: bool) -> List[str]:
    return ["pod", "update" if has_lock else "install"]


def keychain_unlock_command(keychain: KeychainParams) -> List[str]:
    return ["security", "unlock-keychain", "-p", str(keychain.password), str(keychain.path)]


def _format_setting_value(value: Any) -> str:
    if isinstance(value, bool):
        return "YES" if value else "NO"
    return str(value)


def xcodebuild_command(build: ResolvedBuild) -> List[str]:
    config = build.config
    args: List[str] = ["xcodebuild"]

    if config.workspace_name is not None:
        args.extend(["-workspace", canonical_name(config.workspace_name, WORKSPACE_SUFFIX)])
    elif config.project_name is not None:
        args.extend(["-project", canonical_name(config.project_name, PROJECT_SUFFIX)])

    if config.scheme is not None:
        args.extend(["-scheme", config.scheme])
    elif config.target is not None:
        args.extend(["-target", config.target])

    args.extend(["-sdk", build.sdk])
    args.extend(["-configuration", build.build_configuration])

    for key, value in config.build_settings.items():
        args.append(f"{key}={_format_setting_value(value)}")
    if config.code_sign_identity:
        args.append(f"CODE_SIGN_IDENTITY={config.code_sign_identity}")

    args.append(f"SYMROOT={build.paths.target_dir.absolute()}")
    args.append(f"SHARED_PRECOMPS_DIR={build.paths.target_dir / build.defaults.shared_precomps_dir}")
    return args


def xcrun_command(build: ResolvedBuild) -> List[str]:
    app_dir = build.paths.app_dir
    args = [
        "xcrun",
        "-sdk",
        build.sdk,
        "PackageApplication",
        "-v",
        str(app_dir / f"{build.config.app_name}.app"),
        "-o",
        str(app_dir / f"{build.host.final_name}.ipa"),
    ]
    if build.config.code_sign_identity:
        args.extend(["--sign", build.config.code_sign_identity])
    return args
