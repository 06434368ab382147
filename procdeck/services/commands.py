"""Asynchronous subprocess execution shared by the git, npm and pm2 adapters."""

from __future__ import annotations

import asyncio
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
import logging
import os
from pathlib import Path
from typing import Protocol

logger = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class CommandResult:
    """Exit status and captured output of a finished command."""

    command: tuple[str, ...]
    returncode: int
    stdout: str = ""
    stderr: str = ""

    @property
    def succeeded(self) -> bool:
        return self.returncode == 0

    @property
    def error_message(self) -> str:
        """Return the most useful description of a failed run."""

        return self.stderr.strip() or self.stdout.strip() or f"exited with status {self.returncode}"


class ProcessExecutor(Protocol):
    """Runs a command to completion."""

    async def run(self, command: Sequence[str], *, cwd: Path | str | None = None) -> CommandResult:
        """Run ``command`` and return its result. Raises only if it cannot be spawned."""


class AsyncSubprocessExecutor:
    """Execute commands with :func:`asyncio.create_subprocess_exec`."""

    def __init__(
        self,
        *,
        timeout: float | None = None,
        env: Mapping[str, str] | None = None,
    ) -> None:
        self._timeout = timeout
        self._env = dict(env) if env else None

    async def run(self, command: Sequence[str], *, cwd: Path | str | None = None) -> CommandResult:
        args = tuple(str(part) for part in command)
        if not args:
            raise ValueError("Cannot run an empty command")

        spawn_env = None
        if self._env:
            spawn_env = os.environ.copy()
            spawn_env.update(self._env)

        logger.debug("Running %s (cwd=%s)", " ".join(args), cwd or os.getcwd())
        process = await asyncio.create_subprocess_exec(
            *args,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            cwd=str(cwd) if cwd is not None else None,
            env=spawn_env,
        )
        try:
            stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=self._timeout)
        except asyncio.TimeoutError:
            await _terminate(process)
            raise TimeoutError(f"{args[0]} timed out after {self._timeout} seconds") from None
        except BaseException:
            # The child must not outlive a cancelled caller.
            await _terminate(process)
            raise

        return CommandResult(
            command=args,
            returncode=process.returncode if process.returncode is not None else -1,
            stdout=stdout.decode("utf-8", errors="replace"),
            stderr=stderr.decode("utf-8", errors="replace"),
        )


async def _terminate(process: asyncio.subprocess.Process) -> None:
    if process.returncode is None:
        try:
            process.kill()
        except ProcessLookupError:
            pass
    await asyncio.shield(process.wait())
