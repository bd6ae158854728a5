"""Health endpoint factory."""

from __future__ import annotations

from typing import TYPE_CHECKING

from starlette.responses import JSONResponse


if TYPE_CHECKING:
    from starlette.requests import Request

    from search_bridge.registry import IndexRegistry


def build_health_endpoint(registry: IndexRegistry):
    """Return a coroutine function reporting registered indexes and languages."""

    async def health_check(_: Request) -> JSONResponse:
        return JSONResponse(
            {
                "status": "ok",
                "indexes": len(registry),
                "languages": registry.languages(),
            }
        )

    return health_check
