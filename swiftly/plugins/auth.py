"""
Bearer-token authentication.

Reads ``Authorization: Bearer <token>``, verifies it with the token service
published by the jwt plugin and stores the claims in ``ctx.user``. A bad
token never rejects the request here: the failure is kept in
``ctx.auth_error`` and reported only if the matched route requires auth.
"""

import logging

from swiftly.context import RequestContext
from swiftly.exceptions import ApiError, ConfigurationError
from swiftly.plugins.base import Plugin

logger = logging.getLogger(__name__)

BEARER_PREFIX = "bearer "


class AuthPlugin(Plugin):
    name = "auth"
    order = 6

    def on_init(self, app_ctx):
        tokens = app_ctx.extensions.get("jwt")
        if tokens is None:
            raise ConfigurationError("The auth plugin requires the jwt plugin")
        return tokens

    def on_request(self, ctx: RequestContext, tokens) -> None:
        header = ctx.request.headers.get("authorization", "")
        if not header.lower().startswith(BEARER_PREFIX):
            return
        token = header[len(BEARER_PREFIX):].strip()
        try:
            ctx.user = tokens.verify(token)
        except ApiError as exc:
            ctx.user = None
            ctx.auth_error = exc
            logger.info("[%s] Rejected bearer token: %s", ctx.request_id, exc.message)
