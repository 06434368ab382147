"""Run the control plane HTTP API under uvicorn."""

from __future__ import annotations

import logging

import uvicorn

from procdeck.config import Settings, configure_logging

log = logging.getLogger(__name__)


def main() -> None:
    settings = Settings.load()
    configure_logging(settings)

    log.info(
        "::::%s:::: listening on http://%s:%d", settings.service_name, settings.host, settings.port
    )
    uvicorn.run(
        "procdeck.main:app",
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":  # pragma: no cover - script entry point
    main()
