"""Module executed when running ``python -m steambrowser``."""

from __future__ import annotations

import logging

import uvicorn

from app.config import settings

logger = logging.getLogger("steambrowser")


def main() -> None:
    """Serve the browser API with uvicorn using the configured settings."""

    development = settings.environment == "development"
    logging.basicConfig(level=logging.DEBUG if development else logging.INFO)
    logger.info(
        "Starting %s on %s:%s (%s)",
        settings.app_name,
        settings.server_host,
        settings.server_port,
        settings.environment,
    )
    uvicorn.run(
        "app.main:app",
        host=settings.server_host,
        port=settings.server_port,
        reload=development,
        log_level="debug" if development else "info",
    )


if __name__ == "__main__":  # pragma: no cover - runtime entrypoint
    main()
