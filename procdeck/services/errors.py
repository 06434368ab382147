"""Exceptions raised by the publish pipeline and its collaborators."""

from __future__ import annotations

from pathlib import Path


class PublishError(RuntimeError):
    """Base class for failures that abort a publish."""

    action = "publish"

    def __init__(self, path: Path | str, cause: BaseException | str) -> None:
        self.path = Path(path)
        self.cause = str(cause).strip() or type(cause).__name__
        super().__init__(f"Could not {self.action} '{self.path}': {self.cause}")

    @property
    def kind(self) -> str:
        return type(self).__name__


class CleanupFailed(PublishError):
    action = "remove"


class DirectoryCreateFailed(PublishError):
    action = "create directory"


class CloneFailed(PublishError):
    action = "clone into"


class DependencyInstallFailed(PublishError):
    action = "install dependencies in"


class VersionControlError(RuntimeError):
    """Raised when a version-control command exits unsuccessfully."""


class ProcessManagerError(RuntimeError):
    """Raised when the process manager rejects or fails a request."""
