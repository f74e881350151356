from __future__ import annotations

from pathlib import Path
from types import SimpleNamespace
import unittest
from unittest.mock import patch

from iosbuild.command_runner import RecordingCommandRunner, SubprocessCommandRunner
from iosbuild.errors import ToolError


class SubprocessCommandRunnerTests(unittest.TestCase):
    def setUp(self) -> None:
        self.runner = SubprocessCommandRunner()

    def test_success_returns_result(self) -> None:
        completed = SimpleNamespace(returncode=0, stdout="ok", stderr="")
        with patch("iosbuild.command_runner.subprocess.run", return_value=completed) as run:
            result = self.runner.run(["xcodebuild", "-version"], cwd=Path("/tmp"))
        self.assertEqual(result.returncode, 0)
        self.assertEqual(result.stdout, "ok")
        self.assertEqual(run.call_args.kwargs["cwd"], "/tmp")
        self.assertNotIn("env", run.call_args.kwargs)

    def test_non_zero_exit_raises_tool_error(self) -> None:
        completed = SimpleNamespace(returncode=65, stdout="", stderr="boom")
        with patch("iosbuild.command_runner.subprocess.run", return_value=completed):
            with self.assertRaises(ToolError) as ctx:
                self.runner.run(["xcodebuild", "build"])
        self.assertEqual(ctx.exception.returncode, 65)
        self.assertEqual(ctx.exception.command, ["xcodebuild", "build"])
        self.assertIn("exit code 65", str(ctx.exception))
        self.assertIn("boom", str(ctx.exception))

    def test_streamed_output_is_not_captured(self) -> None:
        completed = SimpleNamespace(returncode=1)
        with patch("iosbuild.command_runner.subprocess.run", return_value=completed) as run:
            with self.assertRaises(ToolError) as ctx:
                self.runner.run(["pod", "install"], stream=True)
        self.assertNotIn("capture_output", run.call_args.kwargs)
        self.assertIn("already streamed", str(ctx.exception))

    def test_missing_tool_raises_tool_error(self) -> None:
        error = FileNotFoundError(2, "No such file or directory")
        with patch("iosbuild.command_runner.subprocess.run", side_effect=error):
            with self.assertRaises(ToolError) as ctx:
                self.runner.run(["pod", "install"])
        self.assertEqual(ctx.exception.returncode, 127)
        self.assertIn("Unable to launch 'pod'", str(ctx.exception))

    def test_permission_denied_raises_tool_error(self) -> None:
        with patch("iosbuild.command_runner.subprocess.run", side_effect=PermissionError(13, "Permission denied")):
            with self.assertRaises(ToolError) as ctx:
                self.runner.run(["./tool"])
        self.assertEqual(ctx.exception.returncode, 126)

    def test_redacted_values_hidden_in_message_only(self) -> None:
        completed = SimpleNamespace(returncode=51, stdout="", stderr="")
        command = ["security", "unlock-keychain", "-p", "s3cret", "/k"]
        with patch("iosbuild.command_runner.subprocess.run", return_value=completed):
            with self.assertRaises(ToolError) as ctx:
                self.runner.run(command, redact=("s3cret",))
        self.assertNotIn("s3cret", str(ctx.exception))
        self.assertEqual(ctx.exception.command, command)

    def test_check_false_returns_failure(self) -> None:
        completed = SimpleNamespace(returncode=3, stdout="", stderr="")
        with patch("iosbuild.command_runner.subprocess.run", return_value=completed):
            result = self.runner.run(["false"], check=False)
        self.assertEqual(result.returncode, 3)


class RecordingCommandRunnerTests(unittest.TestCase):
    def test_records_and_formats(self) -> None:
        runner = RecordingCommandRunner()
        runner.run(["pod", "install"], cwd=Path("/src"), note="Install pods")
        runner.run(["security", "unlock-keychain", "-p", "pw", "/k"], redact=("pw",))
        lines = list(runner.iter_formatted(workspace=Path("/ws")))
        self.assertEqual(lines[0], "[dry-run] Install pods (cwd=/src) pod install")
        self.assertEqual(lines[1], "[dry-run] (cwd=/ws) security unlock-keychain -p ****** /k")
        self.assertEqual([record.command[0] for record in runner.iter_commands()], ["pod", "security"])


if __name__ == "__main__":  # pragma: no cover
    unittest.main()
