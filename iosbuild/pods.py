"""CocoaPods manifest and lockfile detection."""
from __future__ import annotations

from pathlib import Path

from .console import Console


PODFILE = "Podfile"
PODFILE_LOCK = "Podfile.lock"


class PodfileProbe:
    """Answers whether a working directory declares and has locked pods."""

    def __init__(self, work_dir: Path, *, console: Console | None = None) -> None:
        self._work_dir = work_dir
        self._console = console or Console("none")

    @property
    def podfile(self) -> Path:
        return self._work_dir / PODFILE

    @property
    def podfile_lock(self) -> Path:
        return self._work_dir / PODFILE_LOCK

    def has_manifest(self) -> bool:
        self._console.debug(f"Looking for {self.podfile}")
        return self.podfile.exists()

    def has_lock(self) -> bool:
        return self.podfile_lock.exists()
