"""Translation of registry errors into HTTP responses."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from starlette.responses import JSONResponse

from search_bridge.errors import (
    IndexNotFoundError,
    InvalidPathError,
    InvalidQueryError,
    ReservedIndexNameError,
    SearchBridgeError,
    UnsupportedLanguageError,
)


if TYPE_CHECKING:
    from starlette.requests import Request

logger = logging.getLogger(__name__)

ERROR_STATUS: dict[type[SearchBridgeError], int] = {
    IndexNotFoundError: 404,
    InvalidPathError: 403,
    UnsupportedLanguageError: 403,
    InvalidQueryError: 400,
    ReservedIndexNameError: 405,
}


def status_for(exc: SearchBridgeError) -> int:
    for error_type, status in ERROR_STATUS.items():
        if isinstance(exc, error_type):
            return status
    return 500


async def handle_search_bridge_error(request: Request, exc: SearchBridgeError) -> JSONResponse:
    """Starlette exception handler for `SearchBridgeError` and its subclasses."""
    status = status_for(exc)
    headers = {"Allow": "GET"} if isinstance(exc, ReservedIndexNameError) else None
    log = logger.error if status >= 500 else logger.info
    log("%s %s -> %d: %s", request.method, request.url.path, status, exc.message)
    return JSONResponse({"error": exc.message}, status_code=status, headers=headers)
