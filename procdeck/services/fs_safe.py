"""Filesystem helpers that report failures as typed publish errors."""

from __future__ import annotations

import asyncio
import logging
import os
from pathlib import Path
import shutil
from typing import Protocol

from procdeck.services.errors import CleanupFailed, DirectoryCreateFailed

logger = logging.getLogger(__name__)


class FileSystem(Protocol):
    """Filesystem capability used by the publish pipeline."""

    async def remove_tree(self, path: Path) -> None:
        """Remove ``path`` and its contents. Raises ``FileNotFoundError`` when it is absent."""

    async def make_directory(self, path: Path) -> None:
        """Create ``path`` (and missing parents) if it does not exist."""

    async def exists(self, path: Path) -> bool:
        """Return whether ``path`` is accessible."""


class LocalFileSystem:
    """:class:`FileSystem` backed by the local disk."""

    async def remove_tree(self, path: Path) -> None:
        await asyncio.to_thread(_remove_tree, Path(path))

    async def make_directory(self, path: Path) -> None:
        await asyncio.to_thread(Path(path).mkdir, parents=True, exist_ok=True)

    async def exists(self, path: Path) -> bool:
        return await asyncio.to_thread(os.access, path, os.F_OK)


def _remove_tree(path: Path) -> None:
    # Links are removed, never followed.
    if path.is_symlink() or path.is_file():
        path.unlink()
    else:
        shutil.rmtree(path)


async def safe_remove_folder(filesystem: FileSystem, path: Path) -> bool:
    """Remove ``path`` recursively.

    Returns ``True`` when something was removed and ``False`` when there was nothing to
    remove. Any other failure is raised as :class:`CleanupFailed`.
    """

    try:
        await filesystem.remove_tree(path)
    except FileNotFoundError:
        logger.debug("Nothing to remove at %s", path)
        return False
    except Exception as exc:
        raise CleanupFailed(path, exc) from exc
    return True


async def safe_create_directory(filesystem: FileSystem, path: Path) -> None:
    """Create ``path``, raising :class:`DirectoryCreateFailed` on any failure."""

    try:
        await filesystem.make_directory(path)
    except Exception as exc:
        raise DirectoryCreateFailed(path, exc) from exc


async def path_exists(filesystem: FileSystem, path: Path) -> bool:
    """Return whether ``path`` exists, treating lookup errors as absence."""

    try:
        return bool(await filesystem.exists(path))
    except Exception as exc:
        logger.debug("Existence check for %s failed: %s", path, exc)
        return False
