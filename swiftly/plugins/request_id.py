"""
Swiftly: Request ID Plugin
===========================

What:  Assigns a short identifier to every request and echoes it back.
How:   Reuses the client's X-Request-ID header when present, otherwise
       generates an 8-character id. The id is stored on the context, in a
       ContextVar for log correlation, and in the X-Request-ID response header.
Who:   Runs first (order -20) so every later log line can carry the id.
"""

import uuid
from contextvars import ContextVar

from swiftly.context import RequestContext
from swiftly.plugins.base import Plugin

HEADER = "X-Request-ID"

# Coroutine-local: concurrent requests on the same loop each see their own id
request_id_var: ContextVar[str] = ContextVar("request_id", default="")


class RequestIdPlugin(Plugin):
    name = "request_id"
    order = -20

    def on_request(self, ctx: RequestContext, init_data) -> None:
        rid = ctx.request.headers.get(HEADER) or str(uuid.uuid4())[:8]
        ctx.request_id = rid
        request_id_var.set(rid)

    def on_response(self, ctx: RequestContext, init_data) -> None:
        if ctx.request_id:
            ctx.response.headers[HEADER] = ctx.request_id
