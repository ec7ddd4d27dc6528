# Plugins package init
"""
Built-in plugins, in execution order:

    request_id  -20   X-Request-ID header + log correlation
    logger      -10   access log line per request
    database      0   SQLAlchemy async engine (disabled without DATABASE_URL)
    cache         1   in-memory TTL cache
    cors          2   CORS headers, OPTIONS preflight
    rate_limit    3   per-IP sliding window
    jwt           5   token signing / verification
    auth          6   Bearer token → ctx.user
"""

from typing import List

from swiftly.plugins.auth import AuthPlugin
from swiftly.plugins.base import Plugin, PluginPipeline, define_plugin
from swiftly.plugins.cache import CachePlugin, MemoryCache
from swiftly.plugins.cors import CorsPlugin
from swiftly.plugins.database import Database, DatabasePlugin
from swiftly.plugins.logger import RequestLoggerPlugin
from swiftly.plugins.rate_limit import RateLimitPlugin
from swiftly.plugins.request_id import RequestIdPlugin, request_id_var
from swiftly.plugins.tokens import JwtPlugin, TokenService


def default_plugins(settings) -> List[Plugin]:
    """The built-in plugin set, honoring the enable flags in settings."""
    plugins: List[Plugin] = [
        RequestIdPlugin(),
        RequestLoggerPlugin(),
        DatabasePlugin(),
        CachePlugin(),
    ]
    if settings.cors_enabled:
        plugins.append(CorsPlugin())
    if settings.rate_limit_enabled:
        plugins.append(RateLimitPlugin())
    plugins.extend([JwtPlugin(), AuthPlugin()])
    return plugins


__all__ = [
    "AuthPlugin",
    "CachePlugin",
    "CorsPlugin",
    "Database",
    "DatabasePlugin",
    "JwtPlugin",
    "MemoryCache",
    "Plugin",
    "PluginPipeline",
    "RateLimitPlugin",
    "RequestIdPlugin",
    "RequestLoggerPlugin",
    "TokenService",
    "default_plugins",
    "define_plugin",
    "request_id_var",
]
