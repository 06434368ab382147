"""Best-effort progress notifications for long-running operations."""

from __future__ import annotations

import inspect
import logging
from dataclasses import dataclass, field
from typing import Any

from procdeck.models.publish import ProgressEvent, ProgressKind

logger = logging.getLogger(__name__)


def coerce_kind(kind: Any) -> ProgressKind | None:
    """Return the :class:`ProgressKind` matching ``kind`` or ``None`` when unrecognised."""

    if isinstance(kind, ProgressKind):
        return kind
    try:
        return ProgressKind(kind)
    except ValueError:
        return None


def supports_emit(observer: Any) -> bool:
    return callable(getattr(observer, "emit", None))


async def report(observer: Any, kind: ProgressKind | str, message: str) -> bool:
    """Send ``message`` to ``observer`` if it can receive it.

    Returns ``True`` when the observer accepted the notification. A missing observer, an
    unknown kind or a failing observer all yield ``False``; reporting never raises.
    """

    resolved = coerce_kind(kind)
    if resolved is None or not supports_emit(observer):
        return False

    try:
        outcome = observer.emit(resolved.value, message)
        if inspect.isawaitable(outcome):
            await outcome
    except Exception:
        logger.warning(
            "Progress observer rejected a %s notification",
            resolved.value,
            exc_info=True,
            extra={"event": "progress.observer_failed"},
        )
        return False
    return True


@dataclass(slots=True)
class ProgressLog:
    """Observer that keeps every notification in order and mirrors it to the log."""

    name: str = "publish"
    events: list[ProgressEvent] = field(default_factory=list)

    def emit(self, kind: str, message: str) -> bool:
        event = ProgressEvent(kind=ProgressKind(kind), message=message)
        self.events.append(event)
        level = logging.WARNING if event.kind is ProgressKind.ERROR else logging.INFO
        logger.log(level, "[%s] %s", self.name, message.replace("\n", " | "))
        return True

    def messages(self, kind: ProgressKind | str | None = None) -> list[str]:
        wanted = coerce_kind(kind) if kind is not None else None
        return [event.message for event in self.events if wanted is None or event.kind is wanted]

    def as_dicts(self) -> list[dict[str, str]]:
        return [event.as_dict() for event in self.events]
