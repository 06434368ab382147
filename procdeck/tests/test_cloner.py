from __future__ import annotations

from pathlib import Path
import shutil
import subprocess

import pytest

from procdeck.services.cloner import GitCli, RepositoryCloner
from procdeck.services.commands import AsyncSubprocessExecutor, CommandResult
from procdeck.services.errors import CloneFailed, DirectoryCreateFailed, VersionControlError
from procdeck.services.fs_safe import LocalFileSystem

URL = "https://example.com/team/site.git"
DEST = Path("/srv/site")


@pytest.mark.asyncio
async def test_destination_is_created_before_cloning(filesystem, version_control, timeline) -> None:
    cloner = RepositoryCloner(filesystem=filesystem, version_control=version_control)

    await cloner.clone(URL, DEST)

    assert timeline == [f"mkdir:{DEST}", f"clone:{DEST}"]
    assert version_control.calls == [(URL, DEST)]
    assert DEST / "package.json" in filesystem.paths


@pytest.mark.asyncio
async def test_destination_failure_prevents_clone(filesystem, version_control) -> None:
    filesystem.mkdir_errors[DEST] = PermissionError("denied")
    cloner = RepositoryCloner(filesystem=filesystem, version_control=version_control)

    with pytest.raises(DirectoryCreateFailed):
        await cloner.clone(URL, DEST)

    assert version_control.calls == []


@pytest.mark.asyncio
async def test_version_control_errors_become_clone_failed(filesystem, version_control) -> None:
    version_control.error = VersionControlError("git clone failed: repository not found")
    cloner = RepositoryCloner(filesystem=filesystem, version_control=version_control)

    with pytest.raises(CloneFailed) as excinfo:
        await cloner.clone(URL, DEST)

    assert excinfo.value.cause == "git clone failed: repository not found"
    assert str(excinfo.value) == f"Could not clone into '{DEST}': git clone failed: repository not found"


@pytest.mark.asyncio
async def test_git_cli_runs_clone(executor) -> None:
    await GitCli(executor=executor, git_executable="/usr/bin/git").clone(URL, DEST)

    assert executor.calls == [(("/usr/bin/git", "clone", URL, str(DEST)), None)]


@pytest.mark.asyncio
async def test_git_cli_reports_stderr(executor) -> None:
    executor.result = CommandResult(
        command=("git", "clone"),
        returncode=128,
        stderr="fatal: repository 'https://example.com/team/site.git/' not found\n",
    )

    with pytest.raises(VersionControlError, match="not found"):
        await GitCli(executor=executor).clone(URL, DEST)


def _git(*args: str, cwd: Path) -> None:
    subprocess.run(
        ["git", "-c", "user.name=procdeck", "-c", "user.email=procdeck@example.com", *args],
        cwd=cwd,
        check=True,
        capture_output=True,
    )


@pytest.mark.asyncio
@pytest.mark.skipif(shutil.which("git") is None, reason="git is not installed")
async def test_clone_local_repository(tmp_path: Path) -> None:
    source = tmp_path / "source"
    source.mkdir()
    _git("init", "--quiet", cwd=source)
    (source / "server.js").write_text("console.log('up')\n", encoding="utf-8")
    _git("add", "server.js", cwd=source)
    _git("commit", "--quiet", "-m", "initial", cwd=source)

    destination = tmp_path / "published" / "site"
    cloner = RepositoryCloner(
        filesystem=LocalFileSystem(),
        version_control=GitCli(executor=AsyncSubprocessExecutor(timeout=60)),
    )

    await cloner.clone(str(source), destination)

    assert (destination / "server.js").read_text(encoding="utf-8") == "console.log('up')\n"


@pytest.mark.asyncio
@pytest.mark.skipif(shutil.which("git") is None, reason="git is not installed")
async def test_clone_of_missing_repository_fails(tmp_path: Path) -> None:
    cloner = RepositoryCloner(
        filesystem=LocalFileSystem(),
        version_control=GitCli(executor=AsyncSubprocessExecutor(timeout=60)),
    )

    with pytest.raises(CloneFailed, match="git clone failed"):
        await cloner.clone(str(tmp_path / "does-not-exist"), tmp_path / "out")
