"""Core build planning and execution logic."""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import List, Sequence
import json

from .command_runner import CommandResult, CommandRunner, REDACTED
from .commands import keychain_unlock_command, pod_command, xcodebuild_command, xcrun_command
from .config_loader import BuildConfiguration, BuildDefaults, HostProject
from .console import Console
from .errors import BuildError, ConfigurationError, ToolError
from .pods import PodfileProbe
from .resolver import ResolvedBuild, resolve
from .validation import validate


class BuildState(str, Enum):
    INIT = "init"
    VALIDATED = "validated"
    CREDENTIALS_UNLOCKED = "credentials-unlocked"
    DEPENDENCIES_RESOLVED = "dependencies-resolved"
    BUILT = "built"
    PACKAGED = "packaged"
    DONE = "done"
    FAILED = "failed"


@dataclass(slots=True)
class BuildStep:
    """One pipeline stage. ``command`` is ``None`` when the stage is a pass-through."""

    description: str
    command: Sequence[str] | None
    cwd: Path | None
    state: BuildState
    redact: tuple[str, ...] = ()
    skip_reason: str | None = None

    @property
    def skipped(self) -> bool:
        return self.command is None


@dataclass(slots=True)
class BuildPlan:
    build: ResolvedBuild
    steps: List[BuildStep]

    @property
    def commands(self) -> List[Sequence[str]]:
        return [step.command for step in self.steps if step.command is not None]


@dataclass(slots=True)
class BuildRun:
    """Progress of a single invocation through the pipeline states."""

    state: BuildState = BuildState.INIT
    history: List[BuildState] = field(default_factory=lambda: [BuildState.INIT])
    results: List[CommandResult] = field(default_factory=list)
    error: BuildError | None = None

    def advance(self, state: BuildState) -> None:
        self.state = state
        self.history.append(state)

    def fail(self, error: BuildError) -> None:
        self.error = error
        self.advance(BuildState.FAILED)


class BuildEngine:
    def __init__(
        self,
        *,
        command_runner: CommandRunner,
        console: Console | None = None,
        defaults: BuildDefaults | None = None,
        stream: bool = True,
    ) -> None:
        self._command_runner = command_runner
        self._console = console or Console("none")
        self._defaults = defaults or BuildDefaults()
        self._stream = stream
        self.last_run: BuildRun | None = None

    def plan(self, config: BuildConfiguration, host: HostProject) -> BuildPlan:
        build = resolve(config, host, self._defaults)
        validate(build.config, build.paths)

        work_dir = build.paths.work_dir
        steps: List[BuildStep] = []

        keychain = build.config.keychain
        if keychain is not None and keychain.complete:
            steps.append(
                BuildStep(
                    description="Unlock keychain",
                    command=keychain_unlock_command(keychain),
                    cwd=None,
                    state=BuildState.CREDENTIALS_UNLOCKED,
                    redact=(str(keychain.password),),
                )
            )
        else:
            steps.append(
                BuildStep(
                    description="Unlock keychain",
                    command=None,
                    cwd=None,
                    state=BuildState.CREDENTIALS_UNLOCKED,
                    skip_reason="keychain path and password not both configured",
                )
            )

        probe = PodfileProbe(work_dir, console=self._console)
        if build.config.skip_pods_update:
            steps.append(self._skipped_pods_step("skipped by configuration"))
        elif not probe.has_manifest():
            steps.append(self._skipped_pods_step(f"no Podfile in {work_dir}"))
        else:
            command = pod_command(probe.has_lock())
            steps.append(
                BuildStep(
                    description=f"{command[1].capitalize()} pods",
                    command=command,
                    cwd=work_dir,
                    state=BuildState.DEPENDENCIES_RESOLVED,
                )
            )

        steps.append(
            BuildStep(
                description="Build application",
                command=xcodebuild_command(build),
                cwd=work_dir,
                state=BuildState.BUILT,
            )
        )
        steps.append(
            BuildStep(
                description="Package application",
                command=xcrun_command(build),
                cwd=work_dir,
                state=BuildState.PACKAGED,
            )
        )
        return BuildPlan(build=build, steps=steps)

    def execute(self, plan: BuildPlan, *, run: BuildRun | None = None) -> BuildRun:
        if run is None:
            run = BuildRun()
            run.advance(BuildState.VALIDATED)
        self.last_run = run

        for step in plan.steps:
            if step.skipped:
                self._console.debug(f"{step.description}: skipped ({step.skip_reason})")
                run.advance(step.state)
                continue

            self._console.info(f"{step.description}: {self._command_runner.format_command(step.command, redact=step.redact)}")
            try:
                result = self._command_runner.run(
                    step.command,
                    cwd=step.cwd,
                    note=step.description,
                    stream=self._stream,
                    redact=step.redact,
                )
            except ToolError as exc:
                self._console.error(f"{step.description} failed: {exc}")
                run.fail(exc)
                raise
            run.results.append(result)
            run.advance(step.state)

        run.advance(BuildState.DONE)
        self._console.info(f"Packaged {plan.build.paths.app_dir / (plan.build.host.final_name + '.ipa')}")
        return run

    def run(self, config: BuildConfiguration, host: HostProject) -> BuildRun:
        """Resolve, validate, unlock, install pods, build and package in one go."""

        run = BuildRun()
        self.last_run = run
        try:
            plan = self.plan(config, host)
        except ConfigurationError as exc:
            run.fail(exc)
            raise
        run.advance(BuildState.VALIDATED)
        return self.execute(plan, run=run)

    def serialize_plan(self, plan: BuildPlan) -> str:
        build = plan.build
        data = {
            "app_name": build.config.app_name,
            "sdk": build.sdk,
            "build_configuration": build.build_configuration,
            "work_dir": str(build.paths.work_dir),
            "target_dir": str(build.paths.target_dir),
            "app_dir": str(build.paths.app_dir),
            "steps": [
                {
                    "description": step.description,
                    "state": step.state.value,
                    "command": _redacted(step.command, step.redact),
                    "cwd": str(step.cwd) if step.cwd else None,
                    "skipped": step.skipped,
                    "skip_reason": step.skip_reason,
                }
                for step in plan.steps
            ],
        }
        return json.dumps(data, indent=2)

    def _skipped_pods_step(self, reason: str) -> BuildStep:
        return BuildStep(
            description="Install pods",
            command=None,
            cwd=None,
            state=BuildState.DEPENDENCIES_RESOLVED,
            skip_reason=reason,
        )


def _redacted(command: Sequence[str] | None, redact: Sequence[str]) -> List[str] | None:
    if command is None:
        return None
    hidden = {value for value in redact if value}
    return [REDACTED if part in hidden else part for part in command]
