"""FastAPI control plane for pm2-managed processes and project publishing."""

from __future__ import annotations

from functools import lru_cache
import logging
from pathlib import Path
import re
import sqlite3
from typing import Protocol

from fastapi import Depends, FastAPI, Header, HTTPException
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field, field_validator

from procdeck.config import Settings
from procdeck.models.process import ProcessInfo
from procdeck.models.user import User
from procdeck.services.errors import ProcessManagerError
from procdeck.services.process_manager import ProcessManager, create_process_manager
from procdeck.services.progress import ProgressLog
from procdeck.services.publisher import ProjectPublisher, create_publisher
from procdeck.services.sqlite_repo import LocalSQLiteUserRepository

app = FastAPI(title="procdeck")

logger = logging.getLogger(__name__)

_REPOSITORY_NAME_RE = re.compile(r"/([^/:]+?)(?:\.git)?/?$")
_SAFE_NAME_RE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._-]*$")


def _build_debug_detail(exc: Exception) -> dict[str, str]:
    """Return a serialisable mapping describing ``exc`` for debugging."""

    message = str(exc).strip()
    return {
        "type": type(exc).__name__,
        "message": message or "No exception message provided.",
    }


def _process_manager_failure(exc: ProcessManagerError) -> HTTPException:
    logger.error("Process manager request failed: %s", exc, extra={"event": "process.error"})
    return HTTPException(
        status_code=500,
        detail={
            "message": "Process manager request failed",
            "debug": _build_debug_detail(exc),
        },
    )


def _processes_response(processes: list[ProcessInfo], *, status_code: int = 200) -> JSONResponse:
    return JSONResponse([info.as_dict() for info in processes], status_code=status_code)


# ---------------------------------------------------------------------------
# Dependencies
# ---------------------------------------------------------------------------

@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Load settings once per process."""

    return Settings.load()


def get_process_manager(settings: Settings = Depends(get_settings)) -> ProcessManager:
    return create_process_manager(settings)


def get_publisher(settings: Settings = Depends(get_settings)) -> ProjectPublisher:
    return create_publisher(settings)


class UserRepository(Protocol):
    """Contract for looking up administrative users."""

    def get_user(self, user_id: str) -> User | None:
        """Return a user or ``None`` when not found."""


@lru_cache(maxsize=1)
def _cached_user_repository(db_path: str) -> LocalSQLiteUserRepository:
    return LocalSQLiteUserRepository(db_path=db_path)


def get_user_repository(settings: Settings = Depends(get_settings)) -> UserRepository:
    """FastAPI dependency returning the shared user repository."""

    try:
        return _cached_user_repository(str(settings.db_path))
    except (sqlite3.Error, OSError) as exc:
        logger.exception("User database initialisation failed", extra={"event": "db.init"})
        raise HTTPException(
            status_code=503,
            detail={
                "message": "User database unavailable",
                "debug": _build_debug_detail(exc),
            },
        ) from exc


# ---------------------------------------------------------------------------
# Request payloads
# ---------------------------------------------------------------------------

def _not_blank(value: str, label: str) -> str:
    cleaned = value.strip()
    if not cleaned:
        raise ValueError(f"{label} must not be empty.")
    return cleaned


class CreateProcessRequest(BaseModel):
    """Payload describing a script to launch under pm2."""

    script: str = Field(..., description="Script path relative to the scripts root.")
    alias: str = Field(..., description="Name pm2 registers the process under.")
    watch: bool = Field(False, description="Restart the process when its files change.")

    @field_validator("script")
    @classmethod
    def _ensure_script(cls, value: str) -> str:
        return _not_blank(value, "Script")

    @field_validator("alias")
    @classmethod
    def _ensure_alias(cls, value: str) -> str:
        return _not_blank(value, "Alias")


class ProcessRequest(BaseModel):
    """Payload identifying a process by pm2 id or name."""

    pid: str | int = Field(..., description="pm2 id or process name.")

    @field_validator("pid")
    @classmethod
    def _ensure_pid(cls, value: str | int) -> str:
        return _not_blank(str(value), "Process id")


class PublishProjectRequest(BaseModel):
    """Payload naming the repository to publish."""

    repository: str = Field(..., description="Remote repository URL.")
    alias: str | None = Field(None, description="Directory name under the publish root.")

    @field_validator("repository")
    @classmethod
    def _ensure_repository(cls, value: str) -> str:
        return _not_blank(value, "Repository")


def _publish_target(settings: Settings, repository: str, alias: str | None) -> Path:
    """Return the directory a repository is published into."""

    name = (alias or "").strip()
    if not name:
        match = _REPOSITORY_NAME_RE.search(repository.strip())
        name = match.group(1) if match else ""
    if not _SAFE_NAME_RE.match(name) or name in {".", ".."}:
        raise HTTPException(status_code=400, detail=f"Cannot derive a publish directory from '{alias or repository}'")
    return settings.publish_root.expanduser().resolve() / name


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------

@app.get("/api/admin/hc")
def health_check():
    return {"status": "Online"}


@app.get("/api/admin/me", response_class=JSONResponse)
def current_user(
    x_user_id: str | None = Header(default=None),
    repository: UserRepository = Depends(get_user_repository),
) -> JSONResponse:
    """Return the calling user with the password masked."""

    user = repository.get_user(x_user_id.strip()) if x_user_id and x_user_id.strip() else None
    if user is None:
        return JSONResponse({"message": "user not found"}, status_code=404)
    return JSONResponse({"data": user.redacted().to_document()})


@app.get("/api/admin/process/list", response_class=JSONResponse)
async def list_processes(manager: ProcessManager = Depends(get_process_manager)) -> JSONResponse:
    try:
        processes = await manager.list()
    except ProcessManagerError as exc:
        raise _process_manager_failure(exc) from exc
    return _processes_response(processes)


@app.get("/api/admin/process/describe/{pid}", response_class=JSONResponse)
async def describe_process(
    pid: str,
    manager: ProcessManager = Depends(get_process_manager),
) -> JSONResponse:
    try:
        processes = await manager.describe(pid)
    except ProcessManagerError as exc:
        raise _process_manager_failure(exc) from exc
    if not processes:
        raise HTTPException(status_code=404, detail="Process not found")
    return _processes_response(processes)


@app.post("/api/admin/process/create", response_class=JSONResponse)
async def create_process(
    payload: CreateProcessRequest,
    settings: Settings = Depends(get_settings),
    manager: ProcessManager = Depends(get_process_manager),
) -> JSONResponse:
    try:
        script = settings.resolve_script(payload.script)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    try:
        processes = await manager.start(script, payload.alias, watch=payload.watch)
    except ProcessManagerError as exc:
        raise _process_manager_failure(exc) from exc
    return _processes_response(processes, status_code=201)


@app.post("/api/admin/process/pause")
async def pause_process(
    payload: ProcessRequest,
    manager: ProcessManager = Depends(get_process_manager),
):
    try:
        await manager.stop(payload.pid)
    except ProcessManagerError as exc:
        raise _process_manager_failure(exc) from exc
    return {"ok": True}


@app.post("/api/admin/process/restart")
async def restart_process(
    payload: ProcessRequest,
    manager: ProcessManager = Depends(get_process_manager),
):
    try:
        await manager.restart(payload.pid)
    except ProcessManagerError as exc:
        raise _process_manager_failure(exc) from exc
    return {"ok": True}


@app.post("/api/admin/process/kill")
async def kill_process(
    payload: ProcessRequest,
    manager: ProcessManager = Depends(get_process_manager),
):
    try:
        await manager.delete(payload.pid)
    except ProcessManagerError as exc:
        raise _process_manager_failure(exc) from exc
    return {"ok": True}


@app.post("/api/admin/process/publish")
async def publish_project(
    payload: PublishProjectRequest,
    settings: Settings = Depends(get_settings),
    publisher: ProjectPublisher = Depends(get_publisher),
):
    """Clone a repository into the publish root and install its dependencies."""

    destination = _publish_target(settings, payload.repository, payload.alias)
    progress = ProgressLog(name=destination.name)

    logger.info(
        "Publish requested",
        extra={"event": "publish.request", "repository": payload.repository, "destination": str(destination)},
    )
    result = await publisher.publish(payload.repository, destination, progress)

    if not result.succeeded:
        failure = result.failure
        raise HTTPException(
            status_code=500,
            detail={
                "message": "Publish failed",
                "stage": failure.stage.value if failure else result.state.value,
                "error": failure.kind if failure else None,
                "cause": failure.cause if failure else None,
                "events": progress.as_dicts(),
            },
        )

    return {
        "status": "published",
        "path": str(destination),
        "manageable_project": bool(result.project and result.project.is_manageable_project),
        "events": progress.as_dicts(),
    }
