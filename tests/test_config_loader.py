from __future__ import annotations

from pathlib import Path
import json
import tempfile
import textwrap
import unittest

from iosbuild.config_loader import (
    BuildConfiguration,
    ConfigurationFile,
    find_config_file,
    load_config_file,
    merge_overrides,
)
from iosbuild.errors import ConfigurationError


class ConfigurationFileTests(unittest.TestCase):
    def setUp(self) -> None:
        self.temp_dir = tempfile.TemporaryDirectory()
        self.root = Path(self.temp_dir.name).resolve()

    def tearDown(self) -> None:
        self.temp_dir.cleanup()

    def _write(self, name: str, content: str) -> Path:
        path = self.root / name
        path.write_text(textwrap.dedent(content))
        return path

    def test_load_toml(self) -> None:
        path = self._write(
            "iosbuild.toml",
            """
            [global]
            log_level = "debug"

            [host]
            build_dir = "out"
            final_name = "MyApp-2.1"

            [ios]
            app_name = "MyApp"
            source_dir = "ios"
            workspace_name = "App"
            scheme = "App-Release"
            code_sign_identity = "iPhone Distribution: Acme"

            [ios.build_settings]
            FOO = "1"
            ENABLE_BITCODE = false

            [ios.keychain]
            path = "/k/ci.keychain"
            password = "pw"

            [defaults]
            sdk = "iphoneos17.0"
            """,
        )
        configuration = ConfigurationFile.load(path, workspace=Path("/elsewhere"))
        build = configuration.build

        self.assertEqual(configuration.global_config.log_level, "debug")
        self.assertEqual(build.app_name, "MyApp")
        self.assertEqual(build.source_dir, "ios")
        self.assertEqual(build.workspace_name, "App")
        self.assertEqual(dict(build.build_settings), {"FOO": "1", "ENABLE_BITCODE": False})
        self.assertEqual(list(build.build_settings), ["FOO", "ENABLE_BITCODE"])
        self.assertTrue(build.keychain.complete)
        self.assertEqual(configuration.host.base_dir, self.root)
        self.assertEqual(configuration.host.build_dir, self.root / "out")
        self.assertEqual(configuration.host.final_name, "MyApp-2.1")
        self.assertEqual(configuration.defaults.sdk, "iphoneos17.0")
        self.assertEqual(configuration.defaults.build_configuration, "Release")

    def test_host_defaults(self) -> None:
        path = self._write("iosbuild.json", json.dumps({"ios": {"app_name": "MyApp"}}))
        configuration = ConfigurationFile.load(path, workspace=Path("/elsewhere"))
        self.assertEqual(configuration.host.build_dir, self.root / "target")
        self.assertEqual(configuration.host.final_name, "MyApp")
        self.assertIsNone(configuration.build.keychain)

    def test_load_yaml(self) -> None:
        path = self._write(
            "iosbuild.yaml",
            """
            ios:
              app_name: MyApp
              project_name: App
              target: App
            """,
        )
        build = ConfigurationFile.load(path, workspace=self.root).build
        self.assertEqual(build.project_name, "App")
        self.assertEqual(build.target, "App")

    def test_app_name_required(self) -> None:
        path = self._write("iosbuild.toml", "[ios]\nscheme = 'x'\n")
        with self.assertRaises(ConfigurationError):
            ConfigurationFile.load(path, workspace=self.root)

    def test_unknown_keys_rejected(self) -> None:
        path = self._write("iosbuild.toml", "[ios]\napp_name = 'MyApp'\nschema = 'typo'\n")
        with self.assertRaises(ConfigurationError) as ctx:
            ConfigurationFile.load(path, workspace=self.root)
        self.assertIn("schema", str(ctx.exception))

    def test_malformed_file(self) -> None:
        path = self._write("iosbuild.toml", "[ios\n")
        with self.assertRaises(ConfigurationError):
            load_config_file(path)

    def test_non_utf8_file_is_configuration_error(self) -> None:
        for name, content in (
            ("iosbuild.json", b'{"ios": {"app_name": "\xff"}}'),
            ("iosbuild.toml", b'[ios]\napp_name = "\xff"\n'),
            ("iosbuild.yaml", b"ios:\n  app_name: \xff\n"),
        ):
            with self.subTest(name=name):
                path = self.root / name
                path.write_bytes(content)
                with self.assertRaises(ConfigurationError):
                    load_config_file(path)

    def test_directory_is_configuration_error(self) -> None:
        path = self.root / "iosbuild.toml"
        path.mkdir()
        with self.assertRaises(ConfigurationError) as ctx:
            load_config_file(path)
        self.assertIn("Unable to read", str(ctx.exception))

    def test_unsupported_extension(self) -> None:
        with self.assertRaises(ConfigurationError):
            load_config_file(self._write("iosbuild.ini", "[ios]\n"))

    def test_find_config_file(self) -> None:
        self.assertIsNone(find_config_file(self.root))
        path = self._write("iosbuild.yml", "ios: {app_name: MyApp}\n")
        self.assertEqual(find_config_file(self.root), path)

    def test_overrides_without_file(self) -> None:
        configuration = ConfigurationFile.load(
            None,
            workspace=self.root,
            overrides={"ios": {"app_name": "MyApp", "scheme": None}, "host": {"build_dir": "build"}},
        )
        self.assertEqual(configuration.build, BuildConfiguration(app_name="MyApp"))
        self.assertEqual(configuration.host.build_dir, self.root / "build")


class MergeOverridesTests(unittest.TestCase):
    def test_nested_tables_merge(self) -> None:
        data = {"ios": {"app_name": "A", "keychain": {"path": "/k", "password": "old"}}}
        merged = merge_overrides(data, {"ios": {"keychain": {"password": "new"}, "sdk": None}})
        self.assertEqual(merged["ios"]["keychain"], {"path": "/k", "password": "new"})
        self.assertNotIn("sdk", merged["ios"])
        self.assertEqual(data["ios"]["keychain"]["password"], "old")


if __name__ == "__main__":  # pragma: no cover
    unittest.main()
