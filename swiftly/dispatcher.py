"""
Swiftly: Dispatcher
====================

What:  Drives one request through the kernel and produces exactly one
       response.
How:   A per-request state machine over a fresh RequestContext:

           CREATED          context built, body decoded
              │
           PLUGINS_RUNNING  on_request hooks in order ─── sent? ──┐
              │                                                   │
           ROUTED           router match, auth gate               │
              │                                                   │
           VALIDATED        schema check (body or query+params)   │
              │                                                   │
           HANDLED          handler(data, ctx) → result           │
              │                                                   │
           SENT  ◄──────────────────────────────────────────────-─┘
              ▲
           ERROR            any exception above, mapped to an envelope

Who:   Called by the catch-all route installed in `swiftly.main`.

Error mapping (the single place exceptions become envelopes):
    ApiError (4xx)     → its code, logged at WARNING
    ApiError (5xx)     → its code, logged at ERROR
    anything else      → API_INTERNAL_ERROR (12), logged with traceback;
                         message redacted in production
"""

import inspect
import logging
from typing import Any, Optional

from starlette.requests import Request
from starlette.responses import Response

from swiftly.codes import Code, CodeRegistry, default_registry
from swiftly.context import RequestContext, RequestState
from swiftly.exceptions import (
    ApiError,
    AuthenticationError,
    InvalidParamFormatError,
    MethodNotAllowedError,
    NotFoundError,
    ValidationError,
)
from swiftly.plugins.base import PluginPipeline
from swiftly.response import Envelope, ResponseBuilder, is_envelope_like, make_error, make_response
from swiftly.router import RouteEntry, Router
from swiftly.validation.schema import validate

logger = logging.getLogger(__name__)

GENERIC_ERROR_MESSAGE = "An unexpected error occurred. Please try again or contact support."


class Dispatcher:
    def __init__(
        self,
        router: Router,
        pipeline: PluginPipeline,
        settings: Any,
        registry: Optional[CodeRegistry] = None,
    ):
        self.router = router
        self.pipeline = pipeline
        self.settings = settings
        self.registry = registry or default_registry

    async def dispatch(self, request: Request) -> Response:
        ctx = RequestContext(
            request,
            config=self.settings,
            registry=self.registry,
            extensions=self.pipeline.extensions,
        )
        passthrough: Optional[Response] = None
        try:
            await ctx.load_body()

            ctx.transition(RequestState.PLUGINS_RUNNING)
            if not await self.pipeline.run(ctx):
                route = self._route(ctx)
                ctx.transition(RequestState.ROUTED)

                if route.auth and not ctx.is_authenticated:
                    raise self._auth_failure(ctx)

                ctx.data = self._validate(ctx, route)
                ctx.transition(RequestState.VALIDATED)

                result = await self._invoke(route, ctx)
                ctx.transition(RequestState.HANDLED)
                passthrough = self._write_result(ctx, result)
        except Exception as exc:
            self._write_error(ctx, exc)

        return await self._send(ctx, passthrough)

    # ── Steps ─────────────────────────────────────────────────────────────

    def _route(self, ctx: RequestContext) -> RouteEntry:
        raw_path = ctx.request.scope.get("raw_path")
        url = raw_path.decode("latin-1") if raw_path else ctx.path
        match = self.router.match(ctx.method, url)
        if match is None:
            allowed = self.router.allowed_methods(url)
            if allowed:
                raise MethodNotAllowedError(ctx.method, allowed)
            raise NotFoundError(ctx.method, ctx.path)
        ctx.route = match.route
        ctx.params = match.params
        return match.route

    def _auth_failure(self, ctx: RequestContext) -> ApiError:
        if isinstance(ctx.auth_error, ApiError):
            return ctx.auth_error
        return AuthenticationError()

    def _validate(self, ctx: RequestContext, route: RouteEntry) -> Any:
        if ctx.is_write:
            if ctx.body_error:
                raise InvalidParamFormatError(message=ctx.body_error)
            source = ctx.body if ctx.body is not None else {}
        else:
            source = {**ctx.query, **ctx.params}

        if route.schema is None:
            return source

        result = validate(source, route.schema)
        if not result.ok:
            raise ValidationError(result.errors, message=next(iter(result.errors.values())))
        return result.data

    async def _invoke(self, route: RouteEntry, ctx: RequestContext) -> Any:
        result = route.handler(ctx.data, ctx)
        if inspect.isawaitable(result):
            result = await result
        return result

    def _write_result(self, ctx: RequestContext, result: Any) -> Optional[Response]:
        if isinstance(result, Response):
            return result
        if ctx.response.sent:
            # Handler wrote to ctx.response itself
            return None
        if isinstance(result, Envelope):
            ctx.response.write_envelope(result)
        elif is_envelope_like(result):
            ctx.response.write_raw_envelope(result)
        else:
            ctx.response.write_envelope(make_response(Code.SUCCESS, data=result, registry=self.registry))
        return None

    def _write_error(self, ctx: RequestContext, exc: Exception) -> None:
        ctx.error = exc
        ctx.transition(RequestState.ERROR)

        if isinstance(exc, ApiError):
            status = self.registry.status(exc.code)
            if status >= 500:
                logger.error("[%s] %s %s failed: %s", ctx.request_id, ctx.method, ctx.path, exc.message)
            else:
                logger.warning("[%s] %s %s rejected: %s", ctx.request_id, ctx.method, ctx.path, exc.message)
            envelope = make_error(exc.code, exc.explicit_message, exc.detail, registry=self.registry)
            ctx.response.write_envelope(envelope, exc.headers)
            return

        logger.error(
            "[%s] Unexpected error in %s %s: %s",
            ctx.request_id,
            ctx.method,
            ctx.path,
            str(exc),
            exc_info=exc,
        )
        message = GENERIC_ERROR_MESSAGE if self._production else str(exc) or type(exc).__name__
        detail = None if self._production else {"type": type(exc).__name__}
        ctx.response.write_envelope(
            make_error(Code.API_INTERNAL_ERROR, message, detail, registry=self.registry)
        )

    async def _send(self, ctx: RequestContext, passthrough: Optional[Response]) -> Response:
        try:
            await self.pipeline.run_response_hooks(ctx)
        except Exception as exc:
            passthrough = None
            headers = ctx.response.headers
            ctx.response = ResponseBuilder(self.registry)
            for key, value in headers.items():
                if key.lower() not in ("content-type", "content-length"):
                    ctx.response.headers.append(key, value)
            self._write_error(ctx, exc)

        ctx.transition(RequestState.SENT)
        if passthrough is not None:
            for key, value in ctx.response.headers.items():
                if key.lower() not in passthrough.headers:
                    passthrough.headers.append(key, value)
            return passthrough
        return ctx.response.finalize()

    @property
    def _production(self) -> bool:
        return bool(getattr(self.settings, "is_production", False))
