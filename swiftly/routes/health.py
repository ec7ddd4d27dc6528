"""
Swiftly: Core Routes
=====================

What:  Built-in operational endpoints mounted under /core.
How:   Ordinary kernel routes (same dispatcher, same envelope) registered by
       `register_core_routes()` when CORE_ROUTES_ENABLED is true.
Who:   Load balancers and container health checks (/core/health/check),
       operators (/core/health/info), developers (/core/debug/routes).

Endpoints:
    GET /core/health/check   liveness: status, version, uptime
    GET /core/health/info    environment, plugins (name + order), route count
    GET /core/debug/routes   route table with per-method counts
                             (registered in development only)
"""

import logging
import platform
import time
from collections import Counter

from swiftly import __version__

logger = logging.getLogger(__name__)


def register_core_routes(app) -> None:
    """Mount the core routes on a Swiftly application."""

    @app.get("/core/health/check", name="Health check")
    async def health_check(data, ctx):
        return {
            "status": "ok",
            "version": __version__,
            "uptime_seconds": round(time.time() - app.started_at, 2),
        }

    @app.get("/core/health/info", name="System info")
    async def health_info(data, ctx):
        return {
            "name": app.settings.app_name,
            "version": __version__,
            "environment": app.settings.environment,
            "python": platform.python_version(),
            "plugins": [
                {"name": plugin.name, "order": plugin.order, "enabled": plugin.enabled}
                for plugin in app.pipeline.plugins
            ],
            "routes": len(app.router),
        }

    if app.settings.environment != "development":
        return

    @app.get("/core/debug/routes", name="Route table")
    async def debug_routes(data, ctx):
        routes = sorted(
            (entry.describe() for entry in app.router.routes),
            key=lambda r: (r["path"], r["method"]),
        )
        prefixes = Counter(
            "/" + r["path"].strip("/").split("/")[0] for r in routes if r["path"].strip("/")
        )
        return {
            "total": len(routes),
            "methods": dict(Counter(r["method"] for r in routes)),
            "prefixes": dict(prefixes),
            "routes": routes,
        }

    logger.debug("Debug route table mounted at /core/debug/routes")
