"""Application builder wiring the index registry into a Starlette app.

Routes:
    GET    /{index}         200 if the index or aggregate name exists
    PUT    /{index}?path=&lang=
    DELETE /{index}
    GET    /{index}/query   ranked results
    GET    /{index}/fix     spelling and stopword suggestions
    GET    /_/health, /_/metrics

``_all`` names the aggregate of every index and ``_<lang>`` the aggregate
of one language's indexes. Aggregate names are read-only.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
import logging
import time
from typing import TYPE_CHECKING, Any

from starlette.applications import Starlette
from starlette.middleware import Middleware
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import JSONResponse, Response
from starlette.routing import Route

from search_bridge.catalog import JsonCatalog
from search_bridge.errors import IndexNotFoundError, InvalidQueryError, ReservedIndexNameError, SearchBridgeError
from search_bridge.executor import QueryOptions
from search_bridge.observability.metrics import REQUEST_COUNT, REQUEST_LATENCY, get_metrics, get_metrics_content_type
from search_bridge.observability.tracing import trace_request
from search_bridge.registry import IndexRegistry, is_reserved_name
from search_bridge.runtime.errors import handle_search_bridge_error
from search_bridge.runtime.health import build_health_endpoint
from search_bridge.search import NO_STEMMER


if TYPE_CHECKING:
    from starlette.requests import Request

    from search_bridge.config import Settings
    from search_bridge.executor import QueryResult

logger = logging.getLogger(__name__)

ALL_INDEXES = "_all"


def _route_label(path: str) -> str:
    segments = [segment for segment in path.split("/") if segment]
    if segments and segments[0] == "_":
        return "/".join(segments)
    if len(segments) == 1:
        return "index"
    if len(segments) == 2 and segments[1] in ("query", "fix"):
        return segments[1]
    return "other"


async def record_request_metrics(request: Request, call_next: Any) -> Response:
    route = _route_label(request.url.path)
    start = time.perf_counter()
    response: Response = await call_next(request)
    REQUEST_LATENCY.labels(route=route, method=request.method).observe(time.perf_counter() - start)
    REQUEST_COUNT.labels(route=route, method=request.method, status=str(response.status_code)).inc()
    return response


class AppBuilder:
    """Builds the Starlette application around an `IndexRegistry`.

    Without an explicit registry, one backed by the JSON catalog in
    ``settings.cache_dir`` is created and restored from it.
    """

    def __init__(self, settings: Settings, registry: IndexRegistry | None = None) -> None:
        self.settings = settings
        self._restore = registry is None
        self.registry = registry if registry is not None else IndexRegistry(catalog=JsonCatalog(settings.cache_dir))

    def build(self) -> Starlette:
        if self._restore:
            self.registry.restore()

        app = Starlette(
            debug=self.settings.log_level == "DEBUG",
            routes=self._build_routes(),
            middleware=[
                Middleware(BaseHTTPMiddleware, dispatch=record_request_metrics),
                Middleware(BaseHTTPMiddleware, dispatch=trace_request),
            ],
            exception_handlers={SearchBridgeError: handle_search_bridge_error},
            lifespan=self._build_lifespan_manager(),
        )
        app.state.registry = self.registry
        logger.info("Search bridge initialized with %d indexes", len(self.registry))
        return app

    def _build_routes(self) -> list[Route]:
        return [
            Route("/_/health", endpoint=build_health_endpoint(self.registry), methods=["GET"]),
            Route("/_/metrics", endpoint=self._build_metrics_endpoint(), methods=["GET"]),
            Route("/{index_name}", endpoint=self._build_index_endpoint(), methods=["GET", "PUT", "DELETE"]),
            Route("/{index_name}/query", endpoint=self._build_query_endpoint(), methods=["GET"]),
            Route("/{index_name}/fix", endpoint=self._build_fix_endpoint(), methods=["GET"]),
        ]

    def _aggregate_language(self, name: str) -> str | None:
        """Return "" for ``_all``, the language for ``_<lang>``, None for other names."""
        if name == ALL_INDEXES:
            return ""
        if is_reserved_name(name) and name[1:] in self.registry.prefix_store:
            return name[1:]
        return None

    def _build_index_endpoint(self):
        registry = self.registry

        async def index_endpoint(request: Request) -> JSONResponse:
            name = request.path_params["index_name"]
            if request.method == "GET":
                if registry.has_index(name) or self._aggregate_language(name) is not None:
                    return JSONResponse({})
                raise IndexNotFoundError(name)

            if is_reserved_name(name):
                raise ReservedIndexNameError(name)

            if request.method == "PUT":
                path = request.query_params.get("path")
                if not path:
                    raise InvalidQueryError("Missing required parameter 'path'")
                language = request.query_params.get("lang") or NO_STEMMER
                registry.create_index(name, path, language)
            else:
                registry.remove_index(name)
            return JSONResponse({})

        return index_endpoint

    def _build_query_endpoint(self):
        registry = self.registry

        async def query_endpoint(request: Request) -> JSONResponse:
            name = request.path_params["index_name"]
            options = QueryOptions.from_params(request.query_params)
            language = self._aggregate_language(name)
            result: QueryResult
            if language is None:
                result = registry.query_index(name, options)
            elif language == "":
                result = registry.query_all(options)
            else:
                result = registry.query_language(language, options)
            return JSONResponse(result.to_dict())

        return query_endpoint

    def _build_fix_endpoint(self):
        registry = self.registry

        async def fix_endpoint(request: Request) -> JSONResponse:
            name = request.path_params["index_name"]
            query_string = request.query_params.get("q")
            if query_string is None or "matchAll" in request.query_params:
                raise InvalidQueryError("Parameter 'q' must be set, and 'matchAll' must not be")
            return JSONResponse(registry.fix_index(name, query_string).to_dict())

        return fix_endpoint

    def _build_metrics_endpoint(self):
        async def metrics_endpoint(_: Request) -> Response:
            return Response(content=get_metrics(), media_type=get_metrics_content_type())

        return metrics_endpoint

    def _build_lifespan_manager(self):
        registry = self.registry

        @asynccontextmanager
        async def lifespan(_: Starlette):
            yield
            logger.info("Closing %d indexes", len(registry))
            registry.close()

        return lifespan
