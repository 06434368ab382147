"""Administrative users allowed to drive the control plane."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Sequence

REDACTED_PASSWORD = "******"


def _names(value: Any) -> list[str]:
    """Normalise a list of role/claim entries.

    Entries may be plain strings or ``{"name": ...}`` mappings.
    """

    if isinstance(value, str):
        trimmed = value.strip()
        return [trimmed] if trimmed else []

    result: list[str] = []
    if isinstance(value, Sequence):
        for item in value:
            name = item.get("name") if isinstance(item, dict) else item
            if isinstance(name, str) and name.strip():
                result.append(name.strip())
    return result


def _snapshot_data(snapshot: Any) -> dict[str, Any]:
    if snapshot is None:
        return {}

    to_dict = getattr(snapshot, "to_dict", None)
    if callable(to_dict):
        return to_dict() or {}

    if isinstance(snapshot, dict):
        return dict(snapshot)

    return {}


@dataclass(slots=True)
class User:
    """Representation of a row in the ``users`` table."""

    username: str
    roles: list[str] = field(default_factory=list)
    claims: list[str] = field(default_factory=list)
    password: str | None = None
    id: str | None = None

    def to_document(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "username": self.username,
            "roles": [{"name": role} for role in self.roles],
            "claims": [{"name": claim} for claim in self.claims],
        }
        if self.password is not None:
            payload["password"] = self.password
        if self.id:
            payload["id"] = self.id
        return payload

    @classmethod
    def from_document(cls, snapshot: Any) -> "User":
        data = _snapshot_data(snapshot)
        identifier = getattr(snapshot, "id", None) or data.get("id")
        password = data.get("password")

        return cls(
            username=str(data.get("username") or ""),
            roles=_names(data.get("roles")),
            claims=_names(data.get("claims")),
            password=password if isinstance(password, str) else None,
            id=str(identifier) if identifier is not None else None,
        )

    def redacted(self) -> "User":
        """Return a copy safe to send to clients."""

        return replace(self, password=REDACTED_PASSWORD)
