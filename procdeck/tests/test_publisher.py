"""Behaviour of the clean -> clone -> install publish pipeline."""

from __future__ import annotations

from pathlib import Path
from types import SimpleNamespace

import pytest

from procdeck.models.publish import ProgressKind, PublishRequest, PublishState
from procdeck.services.commands import CommandResult
from procdeck.services.errors import VersionControlError
from procdeck.services.progress import ProgressLog
from procdeck.services.publisher import ProjectPublisher

URL = "https://example.com/r.git"
DEST = Path("/tmp/out")

CLEANED = f"Directory '{DEST}' cleaned\nCloning repository..."
CLONED = f"{URL} cloned to {DEST}\nInstalling dependencies..."
INSTALLED = "Dependencies installed"


@pytest.fixture()
def publisher(filesystem, version_control, executor) -> ProjectPublisher:
    return ProjectPublisher.from_capabilities(filesystem, version_control, executor)


@pytest.mark.asyncio
async def test_successful_publish_reports_every_stage(publisher, executor, observer) -> None:
    result = await publisher.publish(URL, DEST, observer)

    assert result.succeeded
    assert result.state is PublishState.DONE
    assert result.failure is None
    assert result.project is not None and result.project.is_manageable_project
    assert observer.events == [
        ("progress", CLEANED),
        ("progress", CLONED),
        ("progress", INSTALLED),
    ]
    assert executor.calls == [(("npm", "install"), DEST)]


@pytest.mark.asyncio
async def test_stages_run_in_order(publisher, timeline) -> None:
    await publisher.publish(URL, DEST)

    assert timeline == [
        f"remove:{DEST}",
        f"mkdir:{DEST}",
        f"clone:{DEST}",
        f"mkdir:{DEST / 'node_modules'}",
        "run:npm install",
    ]


@pytest.mark.asyncio
async def test_previous_contents_are_replaced(publisher, filesystem) -> None:
    filesystem.add(DEST / "stale.txt", DEST / "node_modules" / "old" / "index.js")

    result = await publisher.publish(URL, DEST)

    assert result.succeeded
    assert DEST / "stale.txt" not in filesystem.paths
    assert DEST / "node_modules" / "old" / "index.js" not in filesystem.paths
    assert DEST / "index.js" in filesystem.paths


@pytest.mark.asyncio
async def test_project_without_manifest_still_completes(filesystem, version_control, executor, observer) -> None:
    version_control.files = ["index.html"]
    publisher = ProjectPublisher.from_capabilities(filesystem, version_control, executor)

    result = await publisher.publish(URL, DEST, observer)

    assert result.succeeded
    assert result.project is not None and not result.project.is_manageable_project
    assert observer.of_kind("progress") == [CLEANED, CLONED, INSTALLED]
    assert executor.calls == []


@pytest.mark.asyncio
async def test_clone_failure_stops_the_pipeline(publisher, version_control, executor, observer) -> None:
    version_control.error = VersionControlError("git clone failed: repository not found")

    result = await publisher.publish(URL, DEST, observer)

    assert not result.succeeded
    assert result.state is PublishState.FAILED
    assert result.failure is not None
    assert result.failure.stage is PublishState.CLONING
    assert result.failure.kind == "CloneFailed"
    assert result.failure.cause == "git clone failed: repository not found"
    assert observer.of_kind("progress") == [CLEANED]
    assert len(observer.of_kind("error")) == 1
    assert observer.of_kind("error")[0].startswith("CloneFailed while cloning:")
    assert executor.calls == []


@pytest.mark.asyncio
async def test_cleanup_failure_happens_before_clone(publisher, filesystem, version_control, observer) -> None:
    filesystem.add(DEST / "locked")
    filesystem.remove_error = PermissionError("Operation not permitted")

    result = await publisher.publish(URL, DEST, observer)

    assert result.failure is not None
    assert result.failure.stage is PublishState.CLEANING
    assert result.failure.kind == "CleanupFailed"
    assert observer.of_kind("progress") == []
    assert version_control.calls == []


@pytest.mark.asyncio
async def test_destination_create_failure_is_reported_while_cloning(
    publisher, filesystem, version_control, observer
) -> None:
    filesystem.mkdir_errors[DEST] = OSError("No space left on device")

    result = await publisher.publish(URL, DEST, observer)

    assert result.failure is not None
    assert result.failure.stage is PublishState.CLONING
    assert result.failure.kind == "DirectoryCreateFailed"
    assert version_control.calls == []


@pytest.mark.asyncio
async def test_modules_directory_failure_skips_install(publisher, filesystem, executor, observer) -> None:
    filesystem.mkdir_errors[DEST / "node_modules"] = PermissionError("denied")

    result = await publisher.publish(URL, DEST, observer)

    assert result.failure is not None
    assert result.failure.stage is PublishState.INSTALLING
    assert result.failure.kind == "DirectoryCreateFailed"
    assert observer.of_kind("progress") == [CLEANED, CLONED]
    assert executor.calls == []


@pytest.mark.asyncio
async def test_install_failure_is_reported(publisher, executor, observer) -> None:
    executor.result = CommandResult(command=("npm", "install"), returncode=1, stderr="npm ERR! code E404")

    result = await publisher.publish(URL, DEST, observer)

    assert result.failure is not None
    assert result.failure.stage is PublishState.INSTALLING
    assert result.failure.kind == "DependencyInstallFailed"
    assert result.failure.cause == "npm ERR! code E404"
    assert observer.of_kind("progress") == [CLEANED, CLONED]
    assert observer.of_kind("error") == [str(result.failure)]


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "target",
    [None, object(), SimpleNamespace(emit=None), SimpleNamespace(emit=lambda kind, message: 1 / 0)],
    ids=["none", "no-emit", "emit-none", "emit-raises"],
)
async def test_observers_never_break_a_publish(publisher, version_control, target) -> None:
    assert (await publisher.publish(URL, DEST, target)).succeeded

    version_control.error = VersionControlError("boom")
    failed = await publisher.publish(URL, DEST, target)
    assert failed.failure is not None and failed.failure.kind == "CloneFailed"


@pytest.mark.asyncio
async def test_progress_log_collects_events(publisher) -> None:
    log = ProgressLog(name="out")

    await publisher.publish(URL, DEST, log)

    assert log.messages(ProgressKind.PROGRESS) == [CLEANED, CLONED, INSTALLED]


@pytest.mark.asyncio
async def test_run_accepts_a_prepared_request(publisher, observer) -> None:
    request = PublishRequest(repository_url=f"  {URL}  ", publish_path=DEST, observer=observer)

    result = await publisher.run(request)

    assert result.request.repository_url == URL
    assert result.succeeded
    assert observer.events[1] == ("progress", CLONED)


@pytest.mark.parametrize(
    ("url", "path"),
    [("", DEST), ("   ", DEST), (URL, Path("relative/out"))],
    ids=["empty-url", "blank-url", "relative-path"],
)
def test_invalid_requests_are_rejected(url: str, path: Path) -> None:
    with pytest.raises(ValueError):
        PublishRequest(repository_url=url, publish_path=path)
