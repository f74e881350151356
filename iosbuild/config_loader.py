"""Configuration loading and normalization logic."""
from __future__ import annotations

from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Callable, Dict, Mapping
import json
import tomllib

import yaml

from .errors import ConfigurationError


ConfigLoader = Callable[[Any], Mapping[str, Any]]

_FILE_LOADERS: Dict[str, ConfigLoader] = {
    ".toml": lambda stream: tomllib.load(stream),
    ".json": lambda stream: json.load(stream),
    ".yaml": lambda stream: yaml.safe_load(stream),
    ".yml": lambda stream: yaml.safe_load(stream),
}

_DECODE_ERRORS = (tomllib.TOMLDecodeError, json.JSONDecodeError, yaml.YAMLError, UnicodeDecodeError)

DEFAULT_CONFIG_NAMES = ("iosbuild.toml", "iosbuild.json", "iosbuild.yaml", "iosbuild.yml")


def load_config_file(path: Path) -> Mapping[str, Any]:
    suffix = path.suffix.lower()
    loader = _FILE_LOADERS.get(suffix)
    if loader is None:
        supported = ", ".join(sorted(_FILE_LOADERS))
        raise ConfigurationError(f"Unsupported configuration file extension '{suffix}'. Supported: {supported}")
    mode = "rb" if suffix == ".toml" else "r"
    kwargs: Dict[str, Any] = {}
    if mode == "r":
        kwargs["encoding"] = "utf-8"
    try:
        with path.open(mode, **kwargs) as handle:
            data = loader(handle)
    except FileNotFoundError as exc:
        raise ConfigurationError(f"Configuration file not found: {path}") from exc
    except OSError as exc:
        raise ConfigurationError(f"Unable to read configuration file '{path}': {exc.strerror or exc}") from exc
    except _DECODE_ERRORS as exc:
        raise ConfigurationError(f"Unable to parse configuration file '{path}': {exc}") from exc
    if data is None:
        return {}
    if not isinstance(data, Mapping):
        raise ConfigurationError(f"Configuration file '{path}' must contain a mapping at the root")
    return data


def find_config_file(directory: Path) -> Path | None:
    """Return the first ``iosbuild.*`` configuration file found in ``directory``."""

    for name in DEFAULT_CONFIG_NAMES:
        candidate = directory / name
        if candidate.is_file():
            return candidate
    return None


def _section(data: Mapping[str, Any], name: str) -> Mapping[str, Any]:
    value = data.get(name, {})
    if value is None:
        return {}
    if not isinstance(value, Mapping):
        raise ConfigurationError(f"[{name}] must be a table")
    return value


def _reject_unknown(section: Mapping[str, Any], allowed: set[str], *, label: str) -> None:
    unknown = sorted(str(key) for key in section if key not in allowed)
    if unknown:
        raise ConfigurationError(f"Unknown {label} option(s): {', '.join(unknown)}")


def _optional_str(value: Any, *, field_name: str) -> str | None:
    if value is None:
        return None
    if isinstance(value, (Mapping, list, tuple)):
        raise ConfigurationError(f"{field_name} must be a string")
    text = str(value)
    return text if text else None


def _bool(value: Any, *, field_name: str) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.lower() in {"true", "false"}:
        return value.lower() == "true"
    raise ConfigurationError(f"{field_name} must be a boolean")


@dataclass(frozen=True, slots=True)
class BuildDefaults:
    """Built-in fallbacks applied by the parameter resolver."""

    sdk: str = "iphoneos"
    build_configuration: str = "Release"
    shared_precomps_dir: str = "SharedPrecompiledHeaders"

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "BuildDefaults":
        section = _section(data, "defaults")
        _reject_unknown(section, {f.name for f in fields(cls)}, label="defaults")
        base = cls()
        return cls(
            sdk=_optional_str(section.get("sdk"), field_name="defaults.sdk") or base.sdk,
            build_configuration=_optional_str(
                section.get("build_configuration"), field_name="defaults.build_configuration"
            )
            or base.build_configuration,
            shared_precomps_dir=_optional_str(
                section.get("shared_precomps_dir"), field_name="defaults.shared_precomps_dir"
            )
            or base.shared_precomps_dir,
        )


@dataclass(frozen=True, slots=True)
class KeychainParams:
    path: str | None = None
    password: str | None = None

    @property
    def complete(self) -> bool:
        return self.path is not None and self.password is not None

    @classmethod
    def from_mapping(cls, data: Any) -> "KeychainParams | None":
        if data is None:
            return None
        if not isinstance(data, Mapping):
            raise ConfigurationError("ios.keychain must be a table with 'path' and 'password'")
        _reject_unknown(data, {"path", "password"}, label="ios.keychain")
        return cls(
            path=_optional_str(data.get("path"), field_name="ios.keychain.path"),
            password=_optional_str(data.get("password"), field_name="ios.keychain.password"),
        )


@dataclass(frozen=True, slots=True)
class BuildConfiguration:
    """User-supplied parameters for a single build invocation."""

    app_name: str
    source_dir: str = "."
    skip_pods_update: bool = False
    project_name: str | None = None
    workspace_name: str | None = None
    scheme: str | None = None
    target: str | None = None
    sdk: str | None = None
    build_configuration: str | None = None
    code_sign_identity: str | None = None
    build_settings: Mapping[str, Any] = field(default_factory=dict)
    keychain: KeychainParams | None = None

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "BuildConfiguration":
        section = _section(data, "ios")
        _reject_unknown(section, {f.name for f in fields(cls)}, label="ios")

        app_name = _optional_str(section.get("app_name"), field_name="ios.app_name")
        if not app_name:
            raise ConfigurationError("ios.app_name is required")

        build_settings_section = section.get("build_settings") or {}
        if not isinstance(build_settings_section, Mapping):
            raise ConfigurationError("ios.build_settings must be a table of KEY = value entries")
        build_settings: Dict[str, Any] = {}
        for key, value in build_settings_section.items():
            if isinstance(value, (Mapping, list, tuple)) or value is None:
                raise ConfigurationError(f"ios.build_settings.{key} must be a scalar value")
            build_settings[str(key)] = value

        return cls(
            app_name=app_name,
            source_dir=_optional_str(section.get("source_dir"), field_name="ios.source_dir") or ".",
            skip_pods_update=_bool(section.get("skip_pods_update", False), field_name="ios.skip_pods_update"),
            project_name=_optional_str(section.get("project_name"), field_name="ios.project_name"),
            workspace_name=_optional_str(section.get("workspace_name"), field_name="ios.workspace_name"),
            scheme=_optional_str(section.get("scheme"), field_name="ios.scheme"),
            target=_optional_str(section.get("target"), field_name="ios.target"),
            sdk=_optional_str(section.get("sdk"), field_name="ios.sdk"),
            build_configuration=_optional_str(
                section.get("build_configuration"), field_name="ios.build_configuration"
            ),
            code_sign_identity=_optional_str(section.get("code_sign_identity"), field_name="ios.code_sign_identity"),
            build_settings=build_settings,
            keychain=KeychainParams.from_mapping(section.get("keychain")),
        )


@dataclass(frozen=True, slots=True)
class HostProject:
    """Project information normally injected by the host build system."""

    base_dir: Path
    build_dir: Path
    final_name: str

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any], *, root: Path, app_name: str) -> "HostProject":
        section = _section(data, "host")
        _reject_unknown(section, {"base_dir", "build_dir", "final_name"}, label="host")

        base_dir_str = _optional_str(section.get("base_dir"), field_name="host.base_dir")
        base_dir = (root / base_dir_str) if base_dir_str else root
        build_dir_str = _optional_str(section.get("build_dir"), field_name="host.build_dir")
        build_dir = (base_dir / build_dir_str) if build_dir_str else base_dir / "target"
        final_name = _optional_str(section.get("final_name"), field_name="host.final_name") or app_name
        return cls(
            base_dir=base_dir.resolve(),
            build_dir=build_dir.resolve(),
            final_name=final_name,
        )


@dataclass(slots=True)
class GlobalConfig:
    log_level: str = "info"

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "GlobalConfig":
        section = _section(data, "global")
        _reject_unknown(section, {"log_level"}, label="global")
        return cls(log_level=str(section.get("log_level", "info")).lower())


@dataclass(slots=True)
class ConfigurationFile:
    """A fully decoded configuration: build parameters, host info and defaults."""

    root: Path
    global_config: GlobalConfig
    build: BuildConfiguration
    host: HostProject
    defaults: BuildDefaults
    path: Path | None = None

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any], *, root: Path, path: Path | None = None) -> "ConfigurationFile":
        _reject_unknown(data, {"global", "host", "ios", "defaults"}, label="top-level")
        build = BuildConfiguration.from_mapping(data)
        return cls(
            root=root,
            global_config=GlobalConfig.from_mapping(data),
            build=build,
            host=HostProject.from_mapping(data, root=root, app_name=build.app_name),
            defaults=BuildDefaults.from_mapping(data),
            path=path,
        )

    @classmethod
    def load(
        cls,
        path: Path | None,
        *,
        workspace: Path,
        overrides: Mapping[str, Mapping[str, Any]] | None = None,
    ) -> "ConfigurationFile":
        """Load ``path`` (or an empty configuration) and apply per-section ``overrides``."""

        data: Mapping[str, Any] = {}
        root = workspace
        if path is not None:
            data = load_config_file(path)
            root = path.resolve().parent
        merged = merge_overrides(data, overrides or {})
        return cls.from_mapping(merged, root=root, path=path)


def merge_overrides(
    data: Mapping[str, Any],
    overrides: Mapping[str, Mapping[str, Any]],
) -> Dict[str, Any]:
    """Overlay ``overrides`` onto ``data`` one section deep; nested tables merge key by key."""

    merged: Dict[str, Any] = {key: value for key, value in data.items()}
    for section_name, values in overrides.items():
        section = dict(_section(merged, section_name))
        for key, value in values.items():
            if value is None:
                continue
            current = section.get(key)
            if isinstance(value, Mapping) and isinstance(current, Mapping):
                section[key] = {**current, **value}
            else:
                section[key] = value
        merged[section_name] = section
    return merged
