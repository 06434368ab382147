"""SQLite-backed user repository for the control plane.

Users are stored verbatim as the model's ``to_document()`` JSON in a ``data`` column,
with ``username`` denormalised into its own unique column for lookups.

Default location (if not provided):  ~/procdeck/data/procdeck.db
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime, timezone
import json
import logging
from pathlib import Path
import secrets
import sqlite3
from typing import Any, Final

from procdeck.models.user import User

logger = logging.getLogger(__name__)

DEFAULT_DB_PATH: Final[Path] = Path.home() / "procdeck" / "data" / "procdeck.db"
DEFAULT_USERS_TABLE: Final[str] = "users"


class _RowSnapshot:
    """Duck-type of a document snapshot for ``User.from_document``."""

    __slots__ = ("id", "_data")

    def __init__(self, doc_id: str, data: dict[str, Any]) -> None:
        self.id = doc_id
        self._data = data

    def to_dict(self) -> dict[str, Any]:
        return dict(self._data)


def _iso_now() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="seconds")


def _json(obj: Any) -> str:
    return json.dumps(obj, ensure_ascii=False, separators=(",", ":"))


class LocalSQLiteUserRepository:
    """Store and look up administrative users."""

    def __init__(
        self,
        db_path: str | Path | None = None,
        *,
        table: str = DEFAULT_USERS_TABLE,
    ) -> None:
        self._db_path = Path(db_path) if db_path else DEFAULT_DB_PATH
        self._table = table

        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._conn = sqlite3.connect(self._db_path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        with self._conn:
            self._conn.execute("PRAGMA journal_mode = WAL;")
        self._bootstrap()
        logger.info("Connected to user database at %s", self._db_path, extra={"event": "db.connected"})

    @property
    def db_path(self) -> Path:
        return self._db_path

    def _bootstrap(self) -> None:
        with self._conn:
            self._conn.execute(
                f"""
                CREATE TABLE IF NOT EXISTS {self._table} (
                    id TEXT PRIMARY KEY,
                    username TEXT NOT NULL UNIQUE,
                    data TEXT NOT NULL,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                );
                """
            )

    # --- queries ----------------------------------------------------------------

    def get_user(self, user_id: str) -> User | None:
        row = self._conn.execute(
            f"SELECT id, data FROM {self._table} WHERE id = ?;",
            (user_id,),
        ).fetchone()
        return self._row_to_user(row) if row else None

    def find_user_by_username(self, username: str) -> User | None:
        row = self._conn.execute(
            f"SELECT id, data FROM {self._table} WHERE username = ? COLLATE NOCASE LIMIT 1;",
            (username.strip(),),
        ).fetchone()
        return self._row_to_user(row) if row else None

    def save_user(self, user: User) -> User:
        """Insert or update ``user`` and return the stored representation."""

        username = user.username.strip()
        if not username:
            raise ValueError("Users require a username")

        existing = self.find_user_by_username(username)
        user_id = user.id or (existing.id if existing else None) or self._generate_id()
        doc = user.to_document()
        doc["id"] = user_id
        doc["username"] = username
        now = _iso_now()

        with self._conn:
            self._conn.execute(
                f"""
                INSERT INTO {self._table}(id, username, data, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    username = excluded.username,
                    data = excluded.data,
                    updated_at = excluded.updated_at;
                """,
                (user_id, username, _json(doc), now, now),
            )

        stored = self.get_user(user_id)
        if stored is None:  # pragma: no cover - the row was just written
            raise KeyError(f"User {user_id} was not stored")
        return stored

    def seed_if_empty(self, users: Iterable[User] = ()) -> list[str]:
        """Seed the table if it is empty, returning created IDs."""

        if self._conn.execute(f"SELECT 1 FROM {self._table} LIMIT 1;").fetchone() is not None:
            return []
        return [self.save_user(user).id or "" for user in users]

    def close(self) -> None:
        self._conn.close()

    # --- conversions ------------------------------------------------------------

    @staticmethod
    def _row_to_user(row: sqlite3.Row) -> User:
        data = json.loads(row["data"]) if row["data"] else {}
        return User.from_document(_RowSnapshot(str(row["id"]), data))

    @staticmethod
    def _generate_id() -> str:
        return secrets.token_hex(12)
