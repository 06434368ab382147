"""Install the declared dependencies of a freshly cloned project."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
import logging
from pathlib import Path

from procdeck.models.publish import ProjectKind
from procdeck.services.commands import ProcessExecutor
from procdeck.services.errors import DependencyInstallFailed
from procdeck.services.fs_safe import FileSystem, path_exists, safe_create_directory

logger = logging.getLogger(__name__)

MANIFEST_NAME = "package.json"
MODULES_DIRECTORY = "node_modules"
INSTALL_COMMAND: tuple[str, ...] = ("npm", "install")


@dataclass(slots=True)
class DependencyInstaller:
    """Run the package manager for projects that ship a manifest."""

    filesystem: FileSystem
    executor: ProcessExecutor
    manifest_name: str = MANIFEST_NAME
    modules_directory: str = MODULES_DIRECTORY
    install_command: Sequence[str] = field(default=INSTALL_COMMAND)

    async def detect(self, project_path: Path) -> ProjectKind:
        manifest = Path(project_path) / self.manifest_name
        return ProjectKind(
            is_manageable_project=await path_exists(self.filesystem, manifest),
            manifest_path=manifest,
        )

    async def install(self, project_path: Path) -> ProjectKind:
        """Install dependencies of ``project_path`` when it carries a manifest.

        Directories without a manifest are returned untouched. The modules directory is
        created before the package manager runs; npm otherwise walks up the tree looking
        for one and can install into an ancestor project.
        """

        project_path = Path(project_path)
        project = await self.detect(project_path)
        if not project.is_manageable_project:
            logger.info(
                "No %s in %s; skipping dependency install",
                self.manifest_name,
                project_path,
                extra={"event": "publish.install_skipped"},
            )
            return project

        await safe_create_directory(self.filesystem, project_path / self.modules_directory)

        command = list(self.install_command)
        logger.info(
            "Running '%s' in %s",
            " ".join(command),
            project_path,
            extra={"event": "publish.install_started"},
        )
        try:
            result = await self.executor.run(command, cwd=project_path)
        except Exception as exc:
            raise DependencyInstallFailed(project_path, exc) from exc

        if not result.succeeded:
            raise DependencyInstallFailed(project_path, result.error_message)
        return project
