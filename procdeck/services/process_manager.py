"""Process-manager adapter driving the pm2 command line client."""

from __future__ import annotations

from dataclasses import dataclass
import json
import logging
from pathlib import Path
from typing import TYPE_CHECKING, Any, Protocol

from procdeck.models.process import ProcessInfo, simplify_descriptions
from procdeck.services.commands import AsyncSubprocessExecutor, CommandResult, ProcessExecutor
from procdeck.services.errors import ProcessManagerError

if TYPE_CHECKING:  # pragma: no cover - for static type checking only
    from procdeck.config import Settings

logger = logging.getLogger(__name__)


class ProcessManager(Protocol):
    """Operations the HTTP layer relies on to supervise processes."""

    async def start(self, script: str | Path, name: str, *, watch: bool = False) -> list[ProcessInfo]:
        """Launch ``script`` under ``name`` and return its description."""

    async def stop(self, identifier: str | int) -> bool:
        """Stop a process but keep it registered."""

    async def restart(self, identifier: str | int) -> bool:
        """Restart a registered process."""

    async def delete(self, identifier: str | int) -> bool:
        """Stop a process and remove it from the registry."""

    async def describe(self, identifier: str | int) -> list[ProcessInfo]:
        """Return processes matching a name or pm2 id."""

    async def list(self) -> list[ProcessInfo]:
        """Return every registered process."""


@dataclass(slots=True)
class Pm2ProcessManager:
    """:class:`ProcessManager` that shells out to ``pm2``.

    Every operation is a single pm2 invocation: the client connects to the daemon,
    performs exactly one command and disconnects whether or not it succeeded.
    """

    executor: ProcessExecutor
    pm2_executable: str = "pm2"

    async def start(self, script: str | Path, name: str, *, watch: bool = False) -> list[ProcessInfo]:
        args = ["start", str(script), "--name", _require(name, "name")]
        if watch:
            args.append("--watch")
        logger.info(
            "Starting %s as '%s' (watch=%s)", script, name, watch, extra={"event": "process.start"}
        )
        await self._call(*args)
        return await self.describe(name)

    async def stop(self, identifier: str | int) -> bool:
        await self._call("stop", _require(identifier, "identifier"))
        logger.info("Stopped %s", identifier, extra={"event": "process.stop"})
        return True

    async def restart(self, identifier: str | int) -> bool:
        await self._call("restart", _require(identifier, "identifier"))
        logger.info("Restarted %s", identifier, extra={"event": "process.restart"})
        return True

    async def delete(self, identifier: str | int) -> bool:
        await self._call("delete", _require(identifier, "identifier"))
        logger.info("Deleted %s", identifier, extra={"event": "process.delete"})
        return True

    async def describe(self, identifier: str | int) -> list[ProcessInfo]:
        wanted = _require(identifier, "identifier")
        return [info for info in await self.list() if info.matches(wanted)]

    async def list(self) -> list[ProcessInfo]:
        result = await self._call("jlist")
        return simplify_descriptions(_parse_jlist(result.stdout))

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    async def _call(self, *args: str) -> CommandResult:
        command = [self.pm2_executable, *args]
        try:
            result = await self.executor.run(command)
        except Exception as exc:
            raise ProcessManagerError(f"pm2 {args[0]} could not be run: {exc}") from exc
        if not result.succeeded:
            raise ProcessManagerError(f"pm2 {' '.join(args)} failed: {result.error_message}")
        return result


def create_process_manager(settings: Settings) -> Pm2ProcessManager:
    """Factory helper building the pm2 adapter from settings."""

    return Pm2ProcessManager(
        executor=AsyncSubprocessExecutor(timeout=settings.command_timeout),
        pm2_executable=settings.pm2_executable,
    )


def _require(value: str | int, label: str) -> str:
    text = str(value).strip() if value is not None else ""
    if not text:
        raise ValueError(f"A process {label} is required")
    return text


def _parse_jlist(output: str) -> list[dict[str, Any]]:
    """Decode ``pm2 jlist`` output, skipping banner lines printed before the JSON."""

    text = output.strip()
    if not text:
        return []

    decoder = json.JSONDecoder()
    idx = 0
    while True:
        bracket = text.find("[", idx)
        if bracket == -1:
            break
        try:
            payload, _ = decoder.raw_decode(text, bracket)
        except json.JSONDecodeError:
            idx = bracket + 1
            continue
        if isinstance(payload, list) and all(isinstance(item, dict) for item in payload):
            return payload
        idx = bracket + 1

    raise ProcessManagerError("pm2 jlist returned no process list")
