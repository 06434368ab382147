"""Publish pipeline: clean the destination, clone the repository, install dependencies."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
import logging
from pathlib import Path
from typing import TYPE_CHECKING

from procdeck.models.publish import (
    ProgressKind,
    PublishFailure,
    PublishRequest,
    PublishResult,
    PublishState,
    SupportsEmit,
)
from procdeck.services.cloner import GitCli, RepositoryCloner, VersionControl
from procdeck.services.commands import AsyncSubprocessExecutor, ProcessExecutor
from procdeck.services.errors import PublishError
from procdeck.services.fs_safe import FileSystem, LocalFileSystem, safe_remove_folder
from procdeck.services.installer import (
    INSTALL_COMMAND,
    MANIFEST_NAME,
    MODULES_DIRECTORY,
    DependencyInstaller,
)
from procdeck.services.progress import report

if TYPE_CHECKING:  # pragma: no cover - for static type checking only
    from procdeck.config import Settings

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class ProjectPublisher:
    """Coordinate a publish from cleanup through dependency installation.

    Stages run strictly one after another. The first :class:`PublishError` ends the run
    and is returned as the failure of the :class:`PublishResult`; nothing already written
    to the destination is rolled back.
    """

    filesystem: FileSystem
    cloner: RepositoryCloner
    installer: DependencyInstaller

    @classmethod
    def from_capabilities(
        cls,
        filesystem: FileSystem,
        version_control: VersionControl,
        executor: ProcessExecutor,
        *,
        manifest_name: str = MANIFEST_NAME,
        modules_directory: str = MODULES_DIRECTORY,
        install_command: Sequence[str] = INSTALL_COMMAND,
    ) -> "ProjectPublisher":
        return cls(
            filesystem=filesystem,
            cloner=RepositoryCloner(filesystem=filesystem, version_control=version_control),
            installer=DependencyInstaller(
                filesystem=filesystem,
                executor=executor,
                manifest_name=manifest_name,
                modules_directory=modules_directory,
                install_command=tuple(install_command),
            ),
        )

    async def publish(
        self,
        repository_url: str,
        publish_path: Path | str,
        observer: SupportsEmit | None = None,
    ) -> PublishResult:
        """Publish ``repository_url`` into ``publish_path``, notifying ``observer``."""

        request = PublishRequest(
            repository_url=repository_url,
            publish_path=Path(publish_path),
            observer=observer,
        )
        return await self.run(request)

    async def run(self, request: PublishRequest) -> PublishResult:
        url, destination, observer = request.repository_url, request.publish_path, request.observer
        state = PublishState.IDLE

        try:
            state = PublishState.CLEANING
            removed = await safe_remove_folder(self.filesystem, destination)
            logger.info(
                "Cleaned %s (existing content removed: %s)",
                destination,
                removed,
                extra={"event": "publish.cleaned"},
            )
            await report(
                observer,
                ProgressKind.PROGRESS,
                f"Directory '{destination}' cleaned\nCloning repository...",
            )

            state = PublishState.CLONING
            await self.cloner.clone(url, destination)
            await report(
                observer,
                ProgressKind.PROGRESS,
                f"{url} cloned to {destination}\nInstalling dependencies...",
            )

            state = PublishState.INSTALLING
            project = await self.installer.install(destination)
            await report(observer, ProgressKind.PROGRESS, "Dependencies installed")
        except PublishError as exc:
            failure = PublishFailure(stage=state, error=exc)
            logger.error(
                "Publish of %s failed: %s",
                url,
                failure,
                extra={"event": "publish.failed", "stage": state.value, "kind": exc.kind},
            )
            await report(observer, ProgressKind.ERROR, str(failure))
            return PublishResult(request=request, state=PublishState.FAILED, failure=failure)

        logger.info(
            "Published %s to %s",
            url,
            destination,
            extra={"event": "publish.done", "manageable_project": project.is_manageable_project},
        )
        return PublishResult(request=request, state=PublishState.DONE, project=project)


def create_publisher(settings: Settings) -> ProjectPublisher:
    """Factory wiring the local filesystem, git and the configured installer."""

    executor = AsyncSubprocessExecutor(timeout=settings.command_timeout)
    return ProjectPublisher.from_capabilities(
        LocalFileSystem(),
        GitCli(executor=executor, git_executable=settings.git_executable),
        executor,
        manifest_name=settings.manifest_name,
        modules_directory=settings.modules_directory,
        install_command=settings.install_command,
    )
