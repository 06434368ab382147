"""Publish a repository from the command line.

Clones the repository into the destination directory (after removing whatever was there)
and installs its npm dependencies when it ships a ``package.json``. Progress lines are
written to the log as they happen.

Exit status is 0 on success and 1 when any stage fails.
"""
from __future__ import annotations

import argparse
import asyncio
import logging
from pathlib import Path

from procdeck.config import Settings, configure_logging
from procdeck.services.progress import ProgressLog
from procdeck.services.publisher import ProjectPublisher, create_publisher

LOGGER = logging.getLogger("procdeck.publish")


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Clone a repository and install its dependencies.")
    parser.add_argument("repository", help="Remote repository URL to clone.")
    parser.add_argument("destination", help="Directory to publish into (replaced if it exists).")
    parser.add_argument(
        "--config",
        default=None,
        help="Optional YAML settings file (default from PROCDECK_CONFIG).",
    )
    return parser.parse_args(argv)


def _build_publisher(settings: Settings) -> ProjectPublisher:
    return create_publisher(settings)


def run(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)
    settings = Settings.load(args.config)
    configure_logging(settings)

    destination = Path(args.destination).expanduser().resolve()
    publisher = _build_publisher(settings)
    progress = ProgressLog(name=destination.name)

    result = asyncio.run(publisher.publish(args.repository, destination, progress))

    failure = result.failure
    if failure is not None:
        LOGGER.error("Publish failed during %s (%s): %s", failure.stage.value, failure.kind, failure.cause)
        return 1
    if not result.succeeded:
        LOGGER.error("Publish ended in state %s", result.state.value)
        return 1

    LOGGER.info("Published %s to %s", args.repository, destination)
    return 0


if __name__ == "__main__":  # pragma: no cover - script entry point
    raise SystemExit(run())
