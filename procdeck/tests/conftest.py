"""Shared fixtures and in-memory collaborators for the test suite."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from pathlib import Path
from typing import Any

import pytest

from procdeck.services.commands import CommandResult


class FakeFileSystem:
    """In-memory :class:`FileSystem` tracking which paths exist."""

    def __init__(self, existing: Iterable[Path | str] = (), *, timeline: list[str] | None = None) -> None:
        self.paths: set[Path] = {Path(p) for p in existing}
        self.timeline = timeline if timeline is not None else []
        self.remove_error: Exception | None = None
        self.mkdir_errors: dict[Path, Exception] = {}
        self.exists_error: Exception | None = None

    def add(self, *paths: Path | str) -> None:
        for path in paths:
            path = Path(path)
            self.paths.add(path)
            self.paths.update(parent for parent in path.parents if parent != Path(parent.anchor))

    def under(self, root: Path) -> set[Path]:
        return {path for path in self.paths if path == root or root in path.parents}

    async def remove_tree(self, path: Path) -> None:
        self.timeline.append(f"remove:{path}")
        if self.remove_error is not None:
            raise self.remove_error
        doomed = self.under(Path(path))
        if not doomed:
            raise FileNotFoundError(2, "No such file or directory", str(path))
        self.paths -= doomed

    async def make_directory(self, path: Path) -> None:
        self.timeline.append(f"mkdir:{path}")
        error = self.mkdir_errors.get(Path(path))
        if error is not None:
            raise error
        self.add(path)

    async def exists(self, path: Path) -> bool:
        if self.exists_error is not None:
            raise self.exists_error
        return Path(path) in self.paths


class FakeVersionControl:
    """Clones by materialising ``files`` inside the destination."""

    def __init__(self, filesystem: FakeFileSystem, files: Sequence[str] = ("index.js",)) -> None:
        self.filesystem = filesystem
        self.files = list(files)
        self.error: Exception | None = None
        self.calls: list[tuple[str, Path]] = []

    async def clone(self, repository_url: str, destination: Path) -> None:
        self.calls.append((repository_url, destination))
        self.filesystem.timeline.append(f"clone:{destination}")
        if self.error is not None:
            raise self.error
        self.filesystem.add(*(destination / name for name in self.files))


class RecordingExecutor:
    """:class:`ProcessExecutor` that records commands instead of running them."""

    def __init__(self, *, timeline: list[str] | None = None) -> None:
        self.timeline = timeline if timeline is not None else []
        self.calls: list[tuple[tuple[str, ...], Path | None]] = []
        self.result: CommandResult | None = None
        self.error: Exception | None = None

    async def run(self, command: Sequence[str], *, cwd: Path | str | None = None) -> CommandResult:
        args = tuple(command)
        self.calls.append((args, Path(cwd) if cwd is not None else None))
        self.timeline.append(f"run:{' '.join(args)}")
        if self.error is not None:
            raise self.error
        return self.result or CommandResult(command=args, returncode=0)


class RecordingObserver:
    def __init__(self) -> None:
        self.events: list[tuple[str, str]] = []

    def emit(self, kind: str, message: str) -> Any:
        self.events.append((kind, message))

    def of_kind(self, kind: str) -> list[str]:
        return [message for event_kind, message in self.events if event_kind == kind]


@pytest.fixture()
def timeline() -> list[str]:
    return []


@pytest.fixture()
def filesystem(timeline: list[str]) -> FakeFileSystem:
    return FakeFileSystem(timeline=timeline)


@pytest.fixture()
def version_control(filesystem: FakeFileSystem) -> FakeVersionControl:
    return FakeVersionControl(filesystem, files=("index.js", "package.json"))


@pytest.fixture()
def executor(timeline: list[str]) -> RecordingExecutor:
    return RecordingExecutor(timeline=timeline)


@pytest.fixture()
def observer() -> RecordingObserver:
    return RecordingObserver()
