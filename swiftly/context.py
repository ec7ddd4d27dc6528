"""
Swiftly: Request Context
=========================

What:  The mutable per-request state threaded through plugins, router,
       validator and handler.
How:   A fixed core (request, response builder, params, query, body, user,
       state) plus an extension map keyed by plugin name. Each plugin's
       init data is visible as `ctx.<plugin name>`.
Who:   Built by the dispatcher for every request; discarded after the
       response is sent. Never shared between requests.

Lifecycle (RequestState):
    CREATED → PLUGINS_RUNNING → ROUTED → VALIDATED → HANDLED → SENT
        any state ──→ ERROR ──→ SENT
"""

import logging
import time
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional

from starlette.exceptions import HTTPException
from starlette.requests import Request

from swiftly.codes import CodeRegistry, default_registry
from swiftly.response import ResponseBuilder

logger = logging.getLogger(__name__)

WRITE_METHODS = frozenset({"POST", "PUT", "PATCH"})


class RequestState(str, Enum):
    CREATED = "created"
    PLUGINS_RUNNING = "plugins_running"
    ROUTED = "routed"
    VALIDATED = "validated"
    HANDLED = "handled"
    ERROR = "error"
    SENT = "sent"


class AppContext:
    """
    Shared initialization context handed to every plugin's on_init.

    Plugins initialize in ascending order; whatever an earlier plugin's
    on_init returned is readable by later plugins as `app_ctx.<name>`.
    """

    def __init__(self, config: Any, registry: Optional[CodeRegistry] = None):
        self.config = config
        self.registry = registry or default_registry
        self.extensions: Dict[str, Any] = {}

    def publish(self, name: str, value: Any) -> None:
        self.extensions[name] = value

    def __getattr__(self, name: str) -> Any:
        extensions = self.__dict__.get("extensions", {})
        if name in extensions:
            return extensions[name]
        raise AttributeError(f"{type(self).__name__} has no attribute or plugin data '{name}'")


class RequestContext:
    """
    Per-request state.

    Core attributes:
        request     Starlette Request
        response    ResponseBuilder (status, headers, body, sent)
        method      upper-case HTTP method
        path        URL path
        query       query-string parameters
        params      route parameters (set after routing)
        body        decoded request body (JSON / form / text) or None
        user        authenticated identity, None when anonymous
        state       current RequestState
        route       matched RouteEntry (set after routing)
        data        validated data handed to the handler
        error       exception that moved the request to ERROR

    Plugin data lives in `extensions[<plugin name>]`.
    """

    def __init__(
        self,
        request: Request,
        config: Any = None,
        registry: Optional[CodeRegistry] = None,
        extensions: Optional[Mapping[str, Any]] = None,
    ):
        self.request = request
        self.registry = registry or default_registry
        self.response = ResponseBuilder(self.registry)
        self.config = config
        self.method = request.method.upper()
        self.path = request.url.path
        self.query: Dict[str, Any] = _query_dict(request)
        self.params: Dict[str, str] = {}
        self.body: Any = None
        self.body_error: Optional[str] = None
        self.user: Any = None
        self.auth_error: Optional[Exception] = None
        self.route: Any = None
        self.data: Any = None
        self.error: Optional[BaseException] = None
        self.request_id: str = ""
        self.started_at = time.perf_counter()
        self.state = RequestState.CREATED
        self.extensions: Dict[str, Any] = dict(extensions or {})
        # Names of plugins whose on_request was reached, in order
        self.plugins_run: List[str] = []

    # ── State ─────────────────────────────────────────────────────────────

    def transition(self, state: RequestState) -> None:
        logger.debug("[%s] %s %s: %s → %s", self.request_id, self.method, self.path, self.state.value, state.value)
        self.state = state

    @property
    def is_write(self) -> bool:
        return self.method in WRITE_METHODS

    @property
    def is_authenticated(self) -> bool:
        return self.user is not None

    @property
    def client_ip(self) -> str:
        forwarded = self.request.headers.get("x-forwarded-for")
        if forwarded:
            return forwarded.split(",")[0].strip()
        return getattr(self.request.client, "host", "unknown") if self.request.client else "unknown"

    @property
    def elapsed_ms(self) -> float:
        return (time.perf_counter() - self.started_at) * 1000

    # ── Plugin extensions ─────────────────────────────────────────────────

    def set_extension(self, plugin: str, value: Any) -> None:
        """Overwrite the namespace owned by `plugin` for this request only."""
        self.extensions[plugin] = value

    def get_extension(self, plugin: str, default: Any = None) -> Any:
        return self.extensions.get(plugin, default)

    def __getattr__(self, name: str) -> Any:
        extensions = self.__dict__.get("extensions", {})
        if name in extensions:
            return extensions[name]
        raise AttributeError(f"{type(self).__name__} has no attribute or plugin data '{name}'")

    # ── Body decoding ─────────────────────────────────────────────────────

    async def load_body(self) -> None:
        """
        Decode the request body by content type.

            application/json                    → parsed JSON
            application/x-www-form-urlencoded   → dict
            multipart/form-data                 → dict (files as UploadFile)
            anything else                       → text

        A decode failure is recorded in `body_error` and reported when the
        route validates its input.
        """
        if not self.is_write:
            return
        raw = await self.request.body()
        if not raw:
            return
        content_type = self.request.headers.get("content-type", "").lower()
        try:
            if "application/json" in content_type:
                self.body = await self.request.json()
            elif "application/x-www-form-urlencoded" in content_type or "multipart/form-data" in content_type:
                form = await self.request.form()
                self.body = {
                    key: (values if len(values) > 1 else values[0])
                    for key, values in ((k, form.getlist(k)) for k in form.keys())
                }
            else:
                self.body = raw.decode("utf-8", errors="replace")
        except (ValueError, HTTPException) as exc:
            # Starlette reports unparseable forms as HTTPException(400)
            reason = exc.detail if isinstance(exc, HTTPException) else exc
            self.body_error = f"Malformed request body: {reason}"
            logger.info("[%s] Could not decode %s body: %s", self.request_id, content_type or "request", reason)


def _query_dict(request: Request) -> Dict[str, Any]:
    """Single values stay scalar, repeated keys become lists."""
    query: Dict[str, Any] = {}
    for key in request.query_params.keys():
        values = request.query_params.getlist(key)
        query[key] = values if len(values) > 1 else values[0]
    return query
