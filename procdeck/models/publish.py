"""Data structures describing a single project publish and its outcome."""

from __future__ import annotations

import enum
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Any, Protocol

if TYPE_CHECKING:  # pragma: no cover - for static type checking only
    from procdeck.services.errors import PublishError


class ProgressKind(str, enum.Enum):
    PROGRESS = "progress"
    ERROR = "error"


class PublishState(str, enum.Enum):
    IDLE = "idle"
    CLEANING = "cleaning"
    CLONING = "cloning"
    INSTALLING = "installing"
    DONE = "done"
    FAILED = "failed"


class SupportsEmit(Protocol):
    """Anything able to receive progress notifications."""

    def emit(self, kind: str, message: str) -> Any:
        """Receive a notification of ``kind`` carrying ``message``."""


@dataclass(slots=True, frozen=True)
class ProgressEvent:
    """A single notification emitted while a publish is running."""

    kind: ProgressKind
    message: str

    def as_dict(self) -> dict[str, str]:
        return {"kind": self.kind.value, "message": self.message}


@dataclass(slots=True, frozen=True)
class PublishRequest:
    """Per-invocation arguments of a publish."""

    repository_url: str
    publish_path: Path
    observer: SupportsEmit | None = None

    def __post_init__(self) -> None:
        if not isinstance(self.repository_url, str) or not self.repository_url.strip():
            raise ValueError("A repository URL is required to publish a project.")
        path = Path(self.publish_path).expanduser()
        if not path.is_absolute():
            raise ValueError(f"Publish path must be absolute: {self.publish_path}")
        object.__setattr__(self, "repository_url", self.repository_url.strip())
        object.__setattr__(self, "publish_path", path)


@dataclass(slots=True, frozen=True)
class ProjectKind:
    """Whether a published directory carries a dependency manifest."""

    is_manageable_project: bool
    manifest_path: Path


@dataclass(slots=True, frozen=True)
class PublishFailure:
    """The first error raised by the pipeline, tagged with the stage that produced it."""

    stage: PublishState
    error: PublishError

    @property
    def kind(self) -> str:
        return self.error.kind

    @property
    def cause(self) -> str:
        return self.error.cause

    def __str__(self) -> str:
        return f"{self.kind} while {self.stage.value}: {self.error}"


@dataclass(slots=True)
class PublishResult:
    """Terminal outcome of a publish."""

    request: PublishRequest
    state: PublishState
    failure: PublishFailure | None = None
    project: ProjectKind | None = None

    @property
    def succeeded(self) -> bool:
        """Return ``True`` when every stage completed."""

        return self.state is PublishState.DONE and self.failure is None
