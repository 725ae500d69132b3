"""FastAPI application factory and route setup for the GCP mock."""

import logging
import secrets
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from gcpmock.config import GcpMockConfig
from gcpmock.envelope import CORS_HEADERS, error_response, json_response
from gcpmock.errors import (
    ApiError,
    InternalError,
    InvalidArgument,
    MethodNotAllowed,
    RouteNotFound,
)
from gcpmock.handlers.bucket import BucketHandler
from gcpmock.handlers.database import DatabaseHandler
from gcpmock.handlers.instance import InstanceHandler
from gcpmock.handlers.object import ObjectHandler
from gcpmock.handlers.operation import OperationHandler
from gcpmock.handlers.user import UserHandler
from gcpmock.routing import Router, flavor_for_path
from gcpmock.store.memory import MemoryStore

logger = logging.getLogger(__name__)

# Path prefixes owned by the two API families. The path-style media route
# never matches beneath these.
RESERVED_PREFIXES = ("/storage/", "/upload/", "/download/", "/sql/")

_STORAGE_V1 = "/storage/v1"
_SQL_V1BETA4 = "/sql/v1beta4/projects/{project}"

# Paths to suppress from per-request logging
_QUIET_PATHS = {"/metrics", "/health", "/ready"}

_API_METHODS = ["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]

# Module-level singleton so multiple create_app() calls (e.g. in tests)
# don't re-register the same Prometheus collectors in the global registry.
_instrumentator = None


def _get_instrumentator():
    global _instrumentator
    if _instrumentator is None:
        from prometheus_fastapi_instrumentator import Instrumentator

        _instrumentator = Instrumentator(
            should_instrument_requests_inprogress=True,
            excluded_handlers=["/metrics"],
        )
    return _instrumentator


# ---------------------------------------------------------------------------
# Application factory
# ---------------------------------------------------------------------------


def create_app(config: GcpMockConfig) -> FastAPI:
    """Create and configure the GCP mock FastAPI application.

    Middleware and exception handlers ensure the request id and CORS headers
    are applied to ALL responses (including error responses), and ApiError
    exceptions are rendered in the Google error envelope of the API family
    the request was addressed to.

    The lifespan context manager creates the in-memory store on startup and
    drops its contents on shutdown.

    Args:
        config: The loaded configuration.

    Returns:
        A configured FastAPI application ready to run.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Lifespan hook: create the store, then clear it on shutdown."""
        store = MemoryStore(
            base_url=config.base_url,
            project_id=config.project.id,
            project_number=config.project.number,
        )
        app.state.store = store
        logger.info(
            "Store ready for project %s (links under %s)", config.project.id, config.base_url
        )

        yield

        store.reset()
        logger.info("Store cleared, shutting down")

    app = FastAPI(
        title="GCP API Mock",
        version="0.1.0",
        lifespan=lifespan,
        openapi_url=None,
        docs_url=None,
        redoc_url=None,
    )
    app.state.config = config

    _register_exception_handlers(app)
    _register_middleware(app, config)

    # Wire Prometheus instrumentation BEFORE the API routes so /metrics is
    # registered ahead of the catch-all.
    if config.observability.metrics:
        import gcpmock.metrics as _metrics

        _metrics.init_metrics()
        _get_instrumentator().instrument(app, metric_namespace="gcpmock").expose(
            app, endpoint="/metrics"
        )

    _setup_routes(app, config)

    return app


# ---------------------------------------------------------------------------
# Exception handlers
# ---------------------------------------------------------------------------


def _flavor(request: Request) -> str:
    flavor = getattr(request.state, "api_flavor", None)
    return flavor or flavor_for_path(request.url.path)


def _register_exception_handlers(app: FastAPI) -> None:
    """Register exception handlers on the FastAPI app."""

    @app.exception_handler(ApiError)
    async def api_error_handler(request: Request, exc: ApiError) -> Response:
        """Render ApiError in the envelope of the addressed API family."""
        return error_response(exc, _flavor(request))

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException) -> Response:
        """Map framework-level 404/405 onto the Google envelope."""
        if exc.status_code == 405:
            err: ApiError = MethodNotAllowed(request.method, request.url.path)
        elif exc.status_code == 404:
            err = RouteNotFound(request.url.path)
        else:
            err = ApiError(str(exc.detail), http_status=exc.status_code)
        return error_response(err, _flavor(request))

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError) -> Response:
        """Map FastAPI validation errors to an ``invalid`` envelope."""
        messages = []
        for err in exc.errors():
            loc = " -> ".join(str(p) for p in err.get("loc", []))
            msg = err.get("msg", "Invalid value")
            messages.append(f"{loc}: {msg}" if loc else msg)
        combined = "; ".join(messages) or "Invalid request parameters"
        return error_response(InvalidArgument(combined), _flavor(request))

    @app.exception_handler(Exception)
    async def generic_error_handler(request: Request, exc: Exception) -> Response:
        """Catch unexpected exceptions and return InternalError."""
        logger.exception("Unhandled exception in request handler")
        response = error_response(InternalError(), _flavor(request))
        response.headers.update(CORS_HEADERS)
        request_id = getattr(request.state, "request_id", "")
        if request_id:
            response.headers["X-Request-Id"] = request_id
        return response


# ---------------------------------------------------------------------------
# Middleware
# ---------------------------------------------------------------------------


def _content_length(headers) -> int:
    value = headers.get("content-length")
    if not value:
        return 0
    try:
        return int(value)
    except ValueError:
        return 0


def _register_middleware(app: FastAPI, config: GcpMockConfig) -> None:
    """Register the request-id, CORS, byte-count and access-log middleware."""

    metrics_enabled = config.observability.metrics

    @app.middleware("http")
    async def common_headers_middleware(request: Request, call_next) -> Response:
        """Add the request id and CORS headers to every response.

        The request id is taken from an inbound ``X-Request-Id`` header when
        present, else generated (16 hex chars). ``OPTIONS`` preflights are
        answered here with an empty 200.
        """
        request_id = request.headers.get("x-request-id") or secrets.token_hex(8)
        request.state.request_id = request_id
        start = time.monotonic()

        if request.method == "OPTIONS":
            response: Response = Response(status_code=200)
        else:
            response = await call_next(request)

        duration_ms = round((time.monotonic() - start) * 1000, 2)

        response.headers["X-Request-Id"] = request_id
        response.headers.update(CORS_HEADERS)

        if metrics_enabled:
            import gcpmock.metrics as _m

            req_size = _content_length(request.headers)
            if req_size > 0 and _m.bytes_received_total is not None:
                _m.bytes_received_total.inc(req_size)
            resp_size = _content_length(response.headers)
            if resp_size > 0 and _m.bytes_sent_total is not None:
                _m.bytes_sent_total.inc(resp_size)

        # Per-request structured log (skip noisy endpoints)
        if request.url.path not in _QUIET_PATHS:
            logger.info(
                "%s %s %d %.2fms",
                request.method,
                request.url.path,
                response.status_code,
                duration_ms,
                extra={
                    "method": request.method,
                    "path": request.url.path,
                    "status": response.status_code,
                    "duration_ms": duration_ms,
                    "request_id": request_id,
                    "operation": getattr(request.state, "route_name", None),
                },
            )

        return response


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------


def build_router(app: FastAPI) -> Router:
    """Build the route table for both API families.

    Args:
        app: The application whose state the handlers read.

    Returns:
        A router holding every Cloud Storage and Cloud SQL Admin route.
    """
    buckets = BucketHandler(app)
    objects = ObjectHandler(app)
    instances = InstanceHandler(app)
    databases = DatabaseHandler(app)
    users = UserHandler(app)
    operations = OperationHandler(app)

    router = Router(reserved_prefixes=RESERVED_PREFIXES)
    add = router.add

    # Cloud Storage: buckets
    add(f"GET {_STORAGE_V1}/b", buckets.list_buckets, "buckets.list")
    add(f"POST {_STORAGE_V1}/b", buckets.insert_bucket, "buckets.insert")
    add(f"GET {_STORAGE_V1}/b/{{bucket}}", buckets.get_bucket, "buckets.get")
    add(f"PATCH {_STORAGE_V1}/b/{{bucket}}", buckets.update_bucket, "buckets.patch")
    add(f"PUT {_STORAGE_V1}/b/{{bucket}}", buckets.update_bucket, "buckets.update")
    add(f"DELETE {_STORAGE_V1}/b/{{bucket}}", buckets.delete_bucket, "buckets.delete")

    # Cloud Storage: objects
    add(f"GET {_STORAGE_V1}/b/{{bucket}}/o", objects.list_objects, "objects.list")
    add(f"POST /upload{_STORAGE_V1}/b/{{bucket}}/o", objects.insert_object, "objects.insert")
    add(f"GET {_STORAGE_V1}/b/{{bucket}}/o/{{object...}}", objects.get_object, "objects.get")
    add(f"PATCH {_STORAGE_V1}/b/{{bucket}}/o/{{object...}}", objects.update_object, "objects.patch")
    add(f"PUT {_STORAGE_V1}/b/{{bucket}}/o/{{object...}}", objects.update_object, "objects.update")
    add(
        f"DELETE {_STORAGE_V1}/b/{{bucket}}/o/{{object...}}",
        objects.delete_object,
        "objects.delete",
    )
    add(
        f"GET /download{_STORAGE_V1}/b/{{bucket}}/o/{{object...}}",
        objects.download_object,
        "objects.download",
    )
    add("GET /{bucket}/{object...}", objects.path_style_get, "objects.pathGet", fallback=True)

    # Cloud SQL Admin: instances
    inst = f"{_SQL_V1BETA4}/instances"
    add(f"GET {inst}", instances.list_instances, "instances.list")
    add(f"POST {inst}", instances.insert_instance, "instances.insert")
    add(f"GET {inst}/{{instance}}", instances.get_instance, "instances.get")
    add(f"PATCH {inst}/{{instance}}", instances.update_instance, "instances.patch")
    add(f"PUT {inst}/{{instance}}", instances.update_instance, "instances.update")
    add(f"DELETE {inst}/{{instance}}", instances.delete_instance, "instances.delete")

    # Cloud SQL Admin: databases
    dbs = f"{inst}/{{instance}}/databases"
    add(f"GET {dbs}", databases.list_databases, "databases.list")
    add(f"POST {dbs}", databases.insert_database, "databases.insert")
    add(f"GET {dbs}/{{database}}", databases.get_database, "databases.get")
    add(f"PATCH {dbs}/{{database}}", databases.update_database, "databases.patch")
    add(f"PUT {dbs}/{{database}}", databases.update_database, "databases.update")
    add(f"DELETE {dbs}/{{database}}", databases.delete_database, "databases.delete")

    # Cloud SQL Admin: users
    usr = f"{inst}/{{instance}}/users"
    add(f"GET {usr}", users.list_users, "users.list")
    add(f"POST {usr}", users.insert_user, "users.insert")
    add(f"PUT {usr}", users.update_user, "users.update")
    add(f"DELETE {usr}", users.delete_user, "users.delete")
    add(f"GET {usr}/{{user}}", users.get_user, "users.get")

    # Cloud SQL Admin: operations
    add(f"GET {_SQL_V1BETA4}/operations", operations.list_operations, "operations.list")
    add(
        f"GET {_SQL_V1BETA4}/operations/{{operation}}",
        operations.get_operation,
        "operations.get",
    )

    return router


def _setup_routes(app: FastAPI, config: GcpMockConfig) -> None:
    """Register the probe endpoints and the Google API catch-all.

    Args:
        app: The FastAPI application to attach routes to.
        config: The loaded configuration.
    """
    router = build_router(app)
    app.state.router = router
    metrics_enabled = config.observability.metrics

    @app.get("/health")
    async def health_check() -> Response:
        """Liveness probe."""
        return json_response({"status": "ok"})

    @app.get("/ready")
    async def readiness_check() -> Response:
        """Readiness probe. Ready once the store exists."""
        if getattr(app.state, "store", None) is None:
            return json_response({"status": "starting"}, status=503)
        return json_response({"status": "ready"})

    def _observe(request: Request, status: int) -> None:
        if not metrics_enabled:
            return
        import gcpmock.metrics as _m

        _m.record_operation(
            getattr(request.state, "api_flavor", flavor_for_path(request.url.path)),
            getattr(request.state, "route_name", "unknown"),
            status,
        )
        if request.method != "GET":
            _m.refresh_gauges(app.state.store.stats())

    @app.api_route("/{full_path:path}", methods=_API_METHODS)
    async def google_api(request: Request, full_path: str) -> Response:
        """Dispatch every other request through the API route table."""
        try:
            response = await router.dispatch(request)
        except ApiError as exc:
            _observe(request, exc.http_status)
            raise
        _observe(request, response.status_code)
        return response
