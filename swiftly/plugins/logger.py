"""
Swiftly: Request Logging Plugin
================================

What:  One access-log line per request on the `swiftly.access` logger.
How:   `on_response` runs after the envelope is written, so the final status
       and the elapsed time are known. Level follows the status:
       5xx → ERROR, 4xx → WARNING, otherwise INFO.

Logged fields (also passed as `extra` for structured handlers):
    request_id, method, path, status, code, duration_ms, client_ip

Request bodies and Authorization headers are never logged.
"""

import logging
from typing import Iterable

from swiftly.context import RequestContext
from swiftly.plugins.base import Plugin

access_logger = logging.getLogger("swiftly.access")

DEFAULT_SKIP_PATHS = ("/core/health/check",)


class RequestLoggerPlugin(Plugin):
    name = "logger"
    order = -10

    def __init__(self, skip_paths: Iterable[str] = DEFAULT_SKIP_PATHS):
        self.skip_paths = frozenset(skip_paths)

    def on_init(self, app_ctx):
        return access_logger

    def on_response(self, ctx: RequestContext, init_data) -> None:
        if ctx.path in self.skip_paths:
            return

        status = ctx.response.status_code
        if status >= 500:
            log_level = logging.ERROR
        elif status >= 400:
            log_level = logging.WARNING
        else:
            log_level = logging.INFO

        code = ctx.response.envelope.code if ctx.response.envelope is not None else None
        duration_ms = ctx.elapsed_ms
        client_ip = ctx.client_ip

        access_logger.log(
            log_level,
            "%s %s %d %.1fms [%s] from %s",
            ctx.method,
            ctx.path,
            status,
            duration_ms,
            ctx.request_id,
            client_ip,
            extra={
                "request_id": ctx.request_id,
                "method": ctx.method,
                "path": ctx.path,
                "status": status,
                "code": code,
                "duration_ms": round(duration_ms, 2),
                "client_ip": client_ip,
            },
        )
