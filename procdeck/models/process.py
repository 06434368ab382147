"""Normalised view of processes supervised by pm2."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

_BYTES_PER_MEGABYTE = 1_000_000.0


def _lookup(data: Any, dotted: str) -> Any:
    """Return the value at ``dotted`` inside nested mappings, or ``None``."""

    current = data
    for key in dotted.split("."):
        if not isinstance(current, Mapping):
            return None
        current = current.get(key)
    return current


def _optional_int(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return int(value)
    if isinstance(value, str) and value.strip().lstrip("-").isdigit():
        return int(value.strip())
    return None


def _number(value: Any) -> float:
    if isinstance(value, bool):
        return 0.0
    if isinstance(value, (int, float)):
        return float(value)
    return 0.0


def _now_millis() -> int:
    return int(datetime.now(timezone.utc).timestamp() * 1000)


@dataclass(slots=True)
class ProcessInfo:
    """Subset of a pm2 process description exposed by the API."""

    status: str | None
    pid: int | None
    name: str | None
    version: str | None
    pm_id: int | None
    created_at: datetime | None
    pm_uptime: int
    namespace: str | None
    autorestart: bool | None
    watch: bool | None
    memory: float
    cpu: float | None

    @classmethod
    def from_pm2(cls, description: Mapping[str, Any], *, now: int | None = None) -> "ProcessInfo":
        """Build a :class:`ProcessInfo` from one entry of ``pm2 jlist``.

        ``now`` is the reference time in epoch milliseconds used for ``pm_uptime``.
        Memory arrives in bytes and is reported in megabytes.
        """

        created_ms = _optional_int(_lookup(description, "pm2_env.created_at"))
        reference = _now_millis() if now is None else now
        created_at = (
            datetime.fromtimestamp(created_ms / 1000, tz=timezone.utc) if created_ms is not None else None
        )
        cpu = _lookup(description, "monit.cpu")
        watch = _lookup(description, "pm2_env.watch")

        return cls(
            status=_lookup(description, "pm2_env.status"),
            pid=_optional_int(description.get("pid")),
            name=description.get("name"),
            version=_lookup(description, "pm2_env.version"),
            pm_id=_optional_int(description.get("pm_id")),
            created_at=created_at,
            pm_uptime=reference - created_ms if created_ms is not None else 0,
            namespace=_lookup(description, "pm2_env.namespace"),
            autorestart=_lookup(description, "pm2_env.autorestart"),
            watch=bool(watch) if watch is not None else None,
            memory=_number(_lookup(description, "monit.memory")) / _BYTES_PER_MEGABYTE,
            cpu=float(cpu) if isinstance(cpu, (int, float)) and not isinstance(cpu, bool) else None,
        )

    def matches(self, identifier: str | int) -> bool:
        """Return ``True`` when ``identifier`` is this process's name or pm2 id."""

        text = str(identifier).strip()
        if self.name is not None and text == self.name:
            return True
        return self.pm_id is not None and text == str(self.pm_id)

    def as_dict(self) -> dict[str, Any]:
        return {
            "status": self.status,
            "pid": self.pid,
            "name": self.name,
            "version": self.version,
            "pm_id": self.pm_id,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "pm_uptime": self.pm_uptime,
            "namespace": self.namespace,
            "autorestart": self.autorestart,
            "watch": self.watch,
            "memory": self.memory,
            "cpu": self.cpu,
        }


def simplify_descriptions(
    descriptions: Iterable[Mapping[str, Any]], *, now: int | None = None
) -> list[ProcessInfo]:
    """Normalise every pm2 description in ``descriptions``."""

    reference = _now_millis() if now is None else now
    return [ProcessInfo.from_pm2(item, now=reference) for item in descriptions if isinstance(item, Mapping)]
