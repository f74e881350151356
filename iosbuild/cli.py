"""Command line interface for the iOS build orchestrator."""
from __future__ import annotations

from argparse import ArgumentParser, Namespace
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping
import sys

from .build import BuildEngine
from .command_runner import RecordingCommandRunner, SubprocessCommandRunner
from .config_loader import ConfigurationFile, find_config_file
from .console import Console
from .errors import ConfigurationError, ToolError
from .resolver import resolve
from .validation import validate


EXIT_TOOL_ERROR = 1
EXIT_CONFIGURATION_ERROR = 2


def _add_common_arguments(parser: ArgumentParser) -> None:
    parser.add_argument("--config", type=Path, help="Configuration file (TOML, JSON or YAML); defaults to ./iosbuild.*")
    parser.add_argument("--verbose", action="store_true", help="Enable debug output")
    parser.add_argument("--quiet", action="store_true", help="Only report errors")

    host = parser.add_argument_group("host project")
    host.add_argument("--base-dir", help="Project base directory")
    host.add_argument("--build-dir", help="Build output directory")
    host.add_argument("--final-name", help="Base name of the produced .ipa")

    ios = parser.add_argument_group("ios")
    ios.add_argument("--app-name", help="Application name (the .app bundle name)")
    ios.add_argument("--source-dir", help="Source directory relative to the base directory")
    ios.add_argument("--skip-pods-update", action="store_true", default=None, help="Skip pod install/update")
    ios.add_argument("--project-name", help="Xcode project name")
    ios.add_argument("--workspace-name", help="Xcode workspace name (requires --scheme)")
    ios.add_argument("--scheme", help="Scheme to build")
    ios.add_argument("--target", help="Target to build when no scheme is given")
    ios.add_argument("--sdk", help="SDK identifier")
    ios.add_argument("--build-configuration", help="Build configuration, e.g. Release")
    ios.add_argument("--code-sign-identity", help="Code signing identity")
    ios.add_argument(
        "-D",
        dest="build_settings",
        action="append",
        default=[],
        metavar="KEY=VALUE",
        help="Extra xcodebuild build setting (repeatable)",
    )
    ios.add_argument("--keychain-path", help="Keychain to unlock before building")
    ios.add_argument("--keychain-password", help="Password of the keychain")


def _parse_arguments(argv: Iterable[str]) -> Namespace:
    parser = ArgumentParser(prog="iosbuild", description="Build and package an iOS application")
    subparsers = parser.add_subparsers(dest="command", required=True)

    build_parser = subparsers.add_parser("build", help="Unlock, install pods, build and package")
    _add_common_arguments(build_parser)
    build_parser.add_argument("--dry-run", action="store_true", help="Print commands without executing them")

    plan_parser = subparsers.add_parser("plan", help="Print the resolved build plan as JSON")
    _add_common_arguments(plan_parser)

    validate_parser = subparsers.add_parser("validate", help="Validate the configuration")
    _add_common_arguments(validate_parser)

    return parser.parse_args(list(argv))


def _parse_build_settings(values: Iterable[str]) -> Dict[str, str]:
    settings: Dict[str, str] = {}
    for raw in values:
        key, sep, value = raw.partition("=")
        key = key.strip()
        if not sep or not key:
            raise ConfigurationError(f"Build settings must be given as KEY=VALUE, got '{raw}'")
        settings[key] = value
    return settings


def _collect_overrides(args: Namespace) -> Dict[str, Mapping[str, Any]]:
    keychain: Dict[str, Any] = {}
    if args.keychain_path:
        keychain["path"] = args.keychain_path
    if args.keychain_password:
        keychain["password"] = args.keychain_password

    ios: Dict[str, Any] = {
        "app_name": args.app_name,
        "source_dir": args.source_dir,
        "skip_pods_update": args.skip_pods_update,
        "project_name": args.project_name,
        "workspace_name": args.workspace_name,
        "scheme": args.scheme,
        "target": args.target,
        "sdk": args.sdk,
        "build_configuration": args.build_configuration,
        "code_sign_identity": args.code_sign_identity,
    }
    build_settings = _parse_build_settings(args.build_settings)
    if build_settings:
        ios["build_settings"] = build_settings
    if keychain:
        ios["keychain"] = keychain

    return {
        "host": {
            "base_dir": args.base_dir,
            "build_dir": args.build_dir,
            "final_name": args.final_name,
        },
        "ios": ios,
    }


def _make_console(args: Namespace, configuration: ConfigurationFile) -> Console:
    if args.quiet:
        return Console("error")
    if args.verbose:
        return Console("debug")
    return Console(configuration.global_config.log_level)


def _load_configuration(args: Namespace, workspace: Path) -> ConfigurationFile:
    config_path = args.config or find_config_file(workspace)
    return ConfigurationFile.load(config_path, workspace=workspace, overrides=_collect_overrides(args))


def main(argv: Iterable[str] | None = None) -> int:
    args = _parse_arguments(sys.argv[1:] if argv is None else argv)
    workspace = Path.cwd()

    try:
        configuration = _load_configuration(args, workspace)
        console = _make_console(args, configuration)
    except (ConfigurationError, ValueError) as exc:
        print(f"[ERROR] {exc}", file=sys.stderr)
        return EXIT_CONFIGURATION_ERROR

    try:
        if args.command == "build":
            return _handle_build(args, configuration, console, workspace)
        if args.command == "plan":
            return _handle_plan(configuration, console)
        if args.command == "validate":
            return _handle_validate(configuration, console)
    except ConfigurationError as exc:
        console.error(str(exc))
        return EXIT_CONFIGURATION_ERROR
    except ToolError:
        return EXIT_TOOL_ERROR
    raise ValueError(f"Unknown command: {args.command}")


def _handle_build(args: Namespace, configuration: ConfigurationFile, console: Console, workspace: Path) -> int:
    runner: SubprocessCommandRunner | RecordingCommandRunner
    if args.dry_run:
        runner = RecordingCommandRunner()
    else:
        runner = SubprocessCommandRunner()

    engine = BuildEngine(command_runner=runner, console=console, defaults=configuration.defaults)
    engine.run(configuration.build, configuration.host)

    if args.dry_run and isinstance(runner, RecordingCommandRunner):
        for line in runner.iter_formatted(workspace=workspace):
            print(line)
    return 0


def _handle_plan(configuration: ConfigurationFile, console: Console) -> int:
    engine = BuildEngine(command_runner=RecordingCommandRunner(), console=console, defaults=configuration.defaults)
    plan = engine.plan(configuration.build, configuration.host)
    print(engine.serialize_plan(plan))
    return 0


def _handle_validate(configuration: ConfigurationFile, console: Console) -> int:
    build = resolve(configuration.build, configuration.host, configuration.defaults)
    validate(build.config, build.paths)
    lines: List[str] = [
        f"app: {build.config.app_name}",
        f"working directory: {build.paths.work_dir}",
        f"app directory: {build.paths.app_dir}",
    ]
    for line in lines:
        console.debug(line)
    print("Validation successful")
    return 0


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
