from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field, fields, replace
import logging
import os
from pathlib import Path
import shlex
from typing import Any

from dotenv import load_dotenv
import yaml

from procdeck.services.installer import INSTALL_COMMAND, MANIFEST_NAME, MODULES_DIRECTORY
from procdeck.services.sqlite_repo import DEFAULT_DB_PATH

CONFIG_PATH_ENV = "PROCDECK_CONFIG"
LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

# setting name -> environment variable
_ENV_VARS: dict[str, str] = {
    "service_name": "PROCDECK_SERVICE_NAME",
    "host": "PROCDECK_HOST",
    "port": "PROCDECK_PORT",
    "db_path": "PROCDECK_DB_PATH",
    "scripts_root": "PROCDECK_SCRIPTS_ROOT",
    "publish_root": "PROCDECK_PUBLISH_ROOT",
    "pm2_executable": "PROCDECK_PM2",
    "git_executable": "PROCDECK_GIT",
    "install_command": "PROCDECK_INSTALL_COMMAND",
    "manifest_name": "PROCDECK_MANIFEST",
    "modules_directory": "PROCDECK_MODULES_DIR",
    "command_timeout": "PROCDECK_COMMAND_TIMEOUT",
    "log_level": "PROCDECK_LOG_LEVEL",
}


@dataclass(frozen=True)
class Settings:
    service_name: str = "procdeck"
    host: str = "127.0.0.1"
    port: int = 8080
    db_path: Path = DEFAULT_DB_PATH
    scripts_root: Path = field(default_factory=Path.cwd)
    publish_root: Path = Path.home() / "procdeck" / "published"
    pm2_executable: str = "pm2"
    git_executable: str = "git"
    install_command: tuple[str, ...] = INSTALL_COMMAND
    manifest_name: str = MANIFEST_NAME
    modules_directory: str = MODULES_DIRECTORY
    command_timeout: float | None = None
    log_level: str = "INFO"

    def resolve_script(self, script: str) -> Path:
        """Resolve a user-provided script path inside ``scripts_root``.

        app.js            ->  <scripts_root>/app.js
        ../../etc/passwd  ->  ValueError

        Raises ValueError if the resolved path escapes the scripts root.
        """
        root = self.scripts_root.expanduser().resolve()
        candidate = (root / script).resolve()
        if candidate != root and root not in candidate.parents:
            raise ValueError(f"Script must live under {root}: {script}")
        return candidate

    @classmethod
    def load(
        cls,
        config_path: str | Path | None = None,
        *,
        env: Mapping[str, str] | None = None,
    ) -> Settings:
        """Build settings from defaults, an optional YAML file, then the environment."""
        if env is None:
            load_dotenv()
            env = os.environ

        values: dict[str, Any] = {}
        path = config_path or env.get(CONFIG_PATH_ENV)
        if path:
            values.update(
                {key: value for key, value in _read_yaml(Path(path)).items() if value is not None}
            )

        for name, var in _ENV_VARS.items():
            raw = env.get(var)
            if raw is not None and raw.strip():
                values[name] = raw.strip()

        known = {f.name for f in fields(cls)}
        unknown = sorted(set(values) - known)
        if unknown:
            raise ValueError(f"Unknown settings: {', '.join(unknown)}")

        return replace(cls(), **{name: _coerce(name, value) for name, value in values.items()})


def _read_yaml(path: Path) -> dict[str, Any]:
    with open(path, encoding="utf-8") as f:
        payload = yaml.safe_load(f)
    if payload is None:
        return {}
    if not isinstance(payload, dict):
        raise ValueError(f"Configuration file {path} must contain a mapping")
    return {str(key): value for key, value in payload.items()}


def _coerce(name: str, value: Any) -> Any:
    label = _ENV_VARS.get(name, name)
    if name == "port":
        try:
            return int(value)
        except (TypeError, ValueError) as exc:
            raise ValueError(f"{label} must be an integer, got {value!r}") from exc
    if name == "command_timeout":
        try:
            timeout = float(value)
        except (TypeError, ValueError) as exc:
            raise ValueError(f"{label} must be a number of seconds, got {value!r}") from exc
        return timeout if timeout > 0 else None
    if name in {"db_path", "scripts_root", "publish_root"}:
        return Path(str(value)).expanduser()
    if name == "install_command":
        parts = shlex.split(value) if isinstance(value, str) else [str(part) for part in value]
        if not parts:
            raise ValueError(f"{label} must not be empty")
        return tuple(parts)
    if name == "log_level":
        return str(value).upper()
    return str(value)


def configure_logging(settings: Settings | None = None) -> None:
    level_name = (settings or Settings.load()).log_level
    level = getattr(logging, level_name, logging.INFO)
    logging.basicConfig(level=level, format=LOG_FORMAT)
