"""Clone remote repositories into a local publish directory."""

from __future__ import annotations

from dataclasses import dataclass
import logging
from pathlib import Path
from typing import Protocol

from procdeck.services.commands import ProcessExecutor
from procdeck.services.errors import CloneFailed, VersionControlError
from procdeck.services.fs_safe import FileSystem, safe_create_directory

logger = logging.getLogger(__name__)


class VersionControl(Protocol):
    """Version-control capability able to clone a remote repository."""

    async def clone(self, repository_url: str, destination: Path) -> None:
        """Clone ``repository_url`` into ``destination``; raise on failure."""


@dataclass(slots=True)
class GitCli:
    """:class:`VersionControl` backed by the ``git`` executable."""

    executor: ProcessExecutor
    git_executable: str = "git"

    async def clone(self, repository_url: str, destination: Path) -> None:
        result = await self.executor.run(
            [self.git_executable, "clone", repository_url, str(destination)]
        )
        if not result.succeeded:
            raise VersionControlError(f"git clone failed: {result.error_message}")


@dataclass(slots=True)
class RepositoryCloner:
    """Make sure the destination exists, then clone into it."""

    filesystem: FileSystem
    version_control: VersionControl

    async def clone(self, repository_url: str, destination: Path) -> None:
        await safe_create_directory(self.filesystem, destination)

        logger.info(
            "Cloning %s into %s",
            repository_url,
            destination,
            extra={"event": "publish.clone_started"},
        )
        try:
            await self.version_control.clone(repository_url, destination)
        except Exception as exc:
            raise CloneFailed(destination, exc) from exc
