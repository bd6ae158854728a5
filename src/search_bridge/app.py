"""Search bridge HTTP server entry point."""

from __future__ import annotations

import logging
import os
from typing import TYPE_CHECKING

from pydantic import ValidationError

from search_bridge.app_builder import AppBuilder
from search_bridge.config import Settings
from search_bridge.observability.logging import configure_logging
from search_bridge.observability.tracing import init_tracing


if TYPE_CHECKING:
    from starlette.applications import Starlette

    from search_bridge.registry import IndexRegistry

logger = logging.getLogger(__name__)

SD_LISTEN_FDS_START = 3


def create_app(settings: Settings | None = None, registry: IndexRegistry | None = None) -> Starlette:
    """Create the ASGI application.

    Args:
        settings: Server settings (defaults to the environment)
        registry: Pre-populated registry; when omitted one is restored from the catalog

    Returns:
        Starlette application serving the index registry
    """
    return AppBuilder(settings or Settings(), registry).build()


def socket_activation_fd() -> int | None:
    """Return the first passed file descriptor when started by systemd socket activation."""
    if os.environ.get("LISTEN_PID") != str(os.getpid()):
        return None
    try:
        fd_count = int(os.environ.get("LISTEN_FDS", "0"))
    except ValueError:
        return None
    return SD_LISTEN_FDS_START if fd_count >= 1 else None


def main() -> None:
    """Main entry point for the search bridge server."""
    import uvicorn

    try:
        settings = Settings()
    except ValidationError as exc:
        logging.basicConfig(level=logging.ERROR)
        logger.error("Configuration is invalid: %s", exc)
        raise SystemExit(1) from exc

    configure_logging(
        level=settings.log_level,
        json_output=settings.log_json,
        logger_levels=settings.logger_levels,
        access_log=settings.access_log,
    )
    init_tracing(service_name=settings.service_name)

    app = create_app(settings)

    fd = socket_activation_fd()
    if fd is not None:
        logger.info("Serving on socket-activated file descriptor %d", fd)
        uvicorn.run(app, fd=fd, log_config=None, log_level=settings.log_level.lower())
        return

    logger.info("Starting server on %s:%d", settings.host, settings.port)
    uvicorn.run(
        app,
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
        log_config=None,
    )


if __name__ == "__main__":
    main()
