"""
Swiftly: Application Assembly
==============================

What:  The `Swiftly` kernel object and the ASGI application factory.
How:   `Swiftly` owns one Router, one PluginPipeline, one CodeRegistry and
       one Dispatcher. `create_app()` wraps it in a FastAPI app whose only
       route is a catch-all that hands every request to the dispatcher.
Who:   Applications build a `Swiftly`, declare routes and plugins on it and
       serve `create_app(kernel)`; uvicorn serves `swiftly.main:app`.
When:  Assembly at import time, plugin init in the lifespan startup.

Application Architecture:
    ┌─────────────────────────────────────────────────────┐
    │                  FastAPI / Starlette                │
    │   GZip middleware → catch-all /{full_path:path}     │
    └─────────────────────────┬───────────────────────────┘
                              │ Request
    ┌─────────────────────────▼───────────────────────────┐
    │                     Dispatcher                      │
    │  Plugins → Router → Auth gate → Schema → Handler    │
    └─────────────────────────┬───────────────────────────┘
                              │ Envelope
                           Response

Lifecycle:
    Startup:
    1. Initialize logging
    2. Check production settings (fail fast)
    3. Run plugin on_init hooks in order
    Shutdown:
    1. Run plugin on_shutdown hooks in reverse order

Example:
    app = Swiftly()

    @app.post("/users", schema=SchemaBuilder().string("username", min=3).build())
    async def create_user(data, ctx):
        return {"username": data["username"]}

    asgi = create_app(app)
"""

import logging
import sys
import time
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Callable, Iterable, Optional

from fastapi import FastAPI, Request
from fastapi.middleware.gzip import GZipMiddleware

from swiftly import __version__
from swiftly.codes import CodeRegistry
from swiftly.config import Settings, get_settings
from swiftly.dispatcher import Dispatcher
from swiftly.endpoint import Endpoint, resolve_schema
from swiftly.exceptions import ConfigurationError
from swiftly.plugins import default_plugins
from swiftly.plugins.base import Plugin, PluginPipeline
from swiftly.router import Router

logger = logging.getLogger(__name__)

HTTP_METHODS = ["GET", "POST", "PUT", "PATCH", "DELETE", "HEAD", "OPTIONS"]


# ══════════════════════════════════════════════════════════════════════════
# Logging Configuration
# ══════════════════════════════════════════════════════════════════════════

def setup_logging(settings: Settings) -> None:
    """
    Configure the root logger once for the whole process.

    Format: %(asctime)s [%(levelname)s] %(name)s: %(message)s
    Output: stdout (container runtimes capture it)
    """
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True,
    )

    # Third-party libraries are noisy at INFO
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)


# ══════════════════════════════════════════════════════════════════════════
# Kernel
# ══════════════════════════════════════════════════════════════════════════

class Swiftly:
    """
    The request-handling kernel.

    Args:
        settings:     Settings instance (default: process-wide settings)
        plugins:      Plugins to register (default: the built-in set)
        registry:     Code registry (default: a freshly seeded one)
        core_routes:  Mount /core/* routes (default: settings.core_routes_enabled)
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        plugins: Optional[Iterable[Plugin]] = None,
        registry: Optional[CodeRegistry] = None,
        core_routes: Optional[bool] = None,
    ):
        self.settings = settings or get_settings()
        self.registry = registry or CodeRegistry.seeded()
        self.router = Router()
        self.pipeline = PluginPipeline()
        self.dispatcher = Dispatcher(self.router, self.pipeline, self.settings, self.registry)
        self.started_at = time.time()

        for plugin in default_plugins(self.settings) if plugins is None else plugins:
            self.use(plugin)

        if self.settings.core_routes_enabled if core_routes is None else core_routes:
            from swiftly.routes.health import register_core_routes

            register_core_routes(self)

    # ── Plugins ───────────────────────────────────────────────────────────

    def use(self, plugin: Plugin) -> "Swiftly":
        self.pipeline.register(plugin)
        return self

    # ── Routes ────────────────────────────────────────────────────────────

    def route(
        self,
        method: str,
        path: str,
        handler: Optional[Callable[..., Any]] = None,
        *,
        schema: Any = None,
        auth: bool = False,
        name: Optional[str] = None,
    ):
        """
        Register a handler, directly or as a decorator.

            app.route("GET", "/ping", ping)

            @app.route("POST", "/users", schema=user_schema)
            async def create_user(data, ctx): ...
        """
        resolved = resolve_schema(schema)

        def decorator(func: Callable[..., Any]) -> Callable[..., Any]:
            self.router.register(method, path, func, schema=resolved, auth=auth, name=name)
            return func

        if handler is not None:
            return decorator(handler)
        return decorator

    def get(self, path: str, **options: Any):
        return self.route("GET", path, **options)

    def post(self, path: str, **options: Any):
        return self.route("POST", path, **options)

    def put(self, path: str, **options: Any):
        return self.route("PUT", path, **options)

    def patch(self, path: str, **options: Any):
        return self.route("PATCH", path, **options)

    def delete(self, path: str, **options: Any):
        return self.route("DELETE", path, **options)

    def mount(self, path: str, endpoint: Endpoint) -> "Swiftly":
        if not isinstance(endpoint, Endpoint):
            raise ConfigurationError(f"Cannot mount {endpoint!r} at {path}: not an Endpoint")
        self.router.register(
            endpoint.method,
            path,
            endpoint.handler,
            schema=endpoint.schema,
            auth=endpoint.auth,
            name=endpoint.name,
        )
        return self

    # ── Codes ─────────────────────────────────────────────────────────────

    def register_code(self, code: int, message: str, status: int = 400) -> "Swiftly":
        self.registry.register(code, message, status)
        return self

    # ── Lifecycle ─────────────────────────────────────────────────────────

    async def startup(self) -> None:
        """Validate settings and initialize plugins. Safe to call twice."""
        if self.pipeline.initialized:
            return
        try:
            self.settings.validate_required_for_production()
        except ValueError as e:
            logger.error("Configuration error: %s", str(e))
            raise ConfigurationError(str(e)) from e

        await self.pipeline.initialize(self.settings, self.registry)
        logger.info(
            "%s ready: %d plugins, %d routes (%s)",
            self.settings.app_name,
            len(self.pipeline.active),
            len(self.router),
            self.settings.environment,
        )

    async def shutdown(self) -> None:
        await self.pipeline.shutdown()
        logger.info("%s shut down", self.settings.app_name)


# ══════════════════════════════════════════════════════════════════════════
# ASGI Application
# ══════════════════════════════════════════════════════════════════════════

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    kernel: Swiftly = app.state.kernel
    setup_logging(kernel.settings)
    logger.info("=" * 60)
    logger.info("%s starting up...", kernel.settings.app_name)

    await kernel.startup()

    logger.info("Server ready at http://%s:%d", kernel.settings.backend_host, kernel.settings.backend_port)
    logger.info("=" * 60)

    yield

    logger.info("%s shutting down...", kernel.settings.app_name)
    await kernel.shutdown()
    logger.info("Shutdown complete.")


def create_app(kernel: Optional[Swiftly] = None, settings: Optional[Settings] = None) -> FastAPI:
    """
    Wrap a kernel in a FastAPI application.

    FastAPI contributes the ASGI plumbing, lifespan and GZip; routing,
    validation and error mapping all happen in the kernel. The generated
    OpenAPI docs are disabled since no FastAPI routes describe the API.
    """
    kernel = kernel or Swiftly(settings)

    app = FastAPI(
        title=kernel.settings.app_name,
        version=__version__,
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
        lifespan=lifespan,
    )
    app.state.kernel = kernel

    # Small responses are not worth compressing
    app.add_middleware(GZipMiddleware, minimum_size=500)

    @app.api_route("/{full_path:path}", methods=HTTP_METHODS, include_in_schema=False)
    async def dispatch(request: Request):
        return await kernel.dispatcher.dispatch(request)

    return app


# uvicorn expects `swiftly.main:app` to be importable
app = create_app()
