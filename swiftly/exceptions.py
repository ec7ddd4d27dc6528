"""
Swiftly: Exception Hierarchy
=============================

What:  Kernel exceptions for configuration problems and request-path errors.
How:   Each exception carries a message and an optional context dict.
       Request-path errors (ApiError) also carry a response code from the
       code registry; the dispatcher turns them into envelopes.
Who:   Raised by the router, validators, plugins and handlers; caught by the
       dispatcher (request path) or left to abort startup (configuration).

Exception Hierarchy:
    SwiftlyError (base)
    ├── ConfigurationError           → startup-fatal (code 90)
    │   ├── RuleDefinitionError      → bad schema / rule string (91)
    │   └── PluginInitError          → a plugin's on_init failed (90)
    └── ApiError                     → envelope with `code`
        ├── NotFoundError            → 10 / HTTP 404
        ├── MethodNotAllowedError    → 11 / HTTP 405
        ├── RateLimitExceededError   → 14 / HTTP 429
        ├── ValidationError          → 20 / HTTP 400 (per-field map)
        ├── InvalidParamFormatError  → 24 / HTTP 400
        ├── AuthenticationError      → 34 / HTTP 401
        │   ├── TokenExpiredError    → 31
        │   └── TokenInvalidError    → 32
        ├── PermissionDeniedError    → 33 / HTTP 403
        └── ServiceUnavailableError  → 81 / HTTP 503
"""

from typing import Any, Dict, Iterable, Mapping, Optional

from swiftly.codes import Code


class SwiftlyError(Exception):
    """
    Base exception for all Swiftly errors.

    Attributes:
        message:  Human-readable description
        context:  Additional debug info (logged, never sent to the client)
    """

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        context: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.context = context or {}
        super().__init__(self.message)


# ══════════════════════════════════════════════════════════════════════════
# Configuration Errors (startup)
# ══════════════════════════════════════════════════════════════════════════


class ConfigurationError(SwiftlyError):
    """
    Raised for invalid kernel configuration.

    When:  Missing plugin name, duplicate plugin, route without handler,
           reserved code registration, invalid settings.
    Effect: Fatal at startup. Never converted into a response envelope.
    """

    code = Code.CONFIG_ERROR

    def __init__(
        self,
        message: str = "Invalid configuration",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class RuleDefinitionError(ConfigurationError):
    """
    Raised when a validation rule itself is malformed.

    Distinct from data validation failures: a rule string with the wrong
    number of parts or an unknown kind token is a programming error.
    """

    code = Code.INVALID_CONFIG

    def __init__(
        self,
        message: str = "Invalid rule definition",
        field: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if field:
            ctx["field"] = field
        super().__init__(message=message, context=ctx)
        self.field = field


class PluginInitError(ConfigurationError):
    """Raised when a plugin's on_init hook fails. No partial-plugin operation."""

    def __init__(
        self,
        plugin: str,
        cause: Optional[BaseException] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        message = f"Plugin '{plugin}' failed to initialize"
        if cause is not None:
            message = f"{message}: {cause}"
        ctx = context or {}
        ctx["plugin"] = plugin
        super().__init__(message=message, context=ctx)
        self.plugin = plugin


# ══════════════════════════════════════════════════════════════════════════
# Request-Path Errors (mapped to envelopes by the dispatcher)
# ══════════════════════════════════════════════════════════════════════════


class ApiError(SwiftlyError):
    """
    Raised anywhere on the request path to answer with a specific code.

    Handlers and plugins raise this (or a subclass) instead of building an
    error envelope by hand. `message=None` means "use the registry default".

    Attributes:
        code:     Response code (see swiftly.codes)
        detail:   Sent to the client as the envelope's `detail`
        headers:  Extra response headers (e.g. Retry-After, Allow)
    """

    default_code: int = Code.FAIL

    def __init__(
        self,
        code: Optional[int] = None,
        message: Optional[str] = None,
        detail: Any = None,
        headers: Optional[Mapping[str, str]] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        self.code = int(code if code is not None else self.default_code)
        self.detail = detail
        self.headers = dict(headers or {})
        self.explicit_message = message
        super().__init__(message=message or f"API error {self.code}", context=context)


class NotFoundError(ApiError):
    """No route matched the request path."""

    default_code = Code.API_NOT_FOUND

    def __init__(self, method: str = "", path: str = "", message: Optional[str] = None):
        if message is None and path:
            target = f"{method} {path}" if method else path
            message = f"Route {target} not found"
        super().__init__(message=message, context={"method": method, "path": path})


class MethodNotAllowedError(ApiError):
    """The path exists, but not for this HTTP method."""

    default_code = Code.API_METHOD_NOT_ALLOWED

    def __init__(self, method: str, allowed: Iterable[str]):
        self.allowed = sorted(set(allowed))
        super().__init__(
            message=f"Method {method} is not allowed. Allowed: {', '.join(self.allowed)}",
            detail={"allowed": self.allowed},
            headers={"Allow": ", ".join(self.allowed)},
        )


class RateLimitExceededError(ApiError):
    """Client exceeded the per-IP request rate limit."""

    default_code = Code.API_RATE_LIMITED

    def __init__(self, retry_after: int = 60):
        self.retry_after = retry_after
        super().__init__(
            message=f"Rate limit exceeded. Please wait {retry_after} seconds before making more requests.",
            detail={"retry_after": retry_after},
            headers={"Retry-After": str(retry_after)},
        )


class ValidationError(ApiError):
    """
    Raised when request data fails schema validation.

    `errors` maps field name to message and becomes the envelope `detail`,
    so the client gets every failing field in a single round trip.
    """

    default_code = Code.INVALID_PARAMS

    def __init__(self, errors: Mapping[str, str], message: Optional[str] = None):
        self.errors = dict(errors)
        super().__init__(message=message, detail=self.errors)


class InvalidParamFormatError(ApiError):
    """The request body could not be decoded (e.g. malformed JSON)."""

    default_code = Code.INVALID_PARAM_FORMAT


class AuthenticationError(ApiError):
    """Missing identity on a protected route."""

    default_code = Code.LOGIN_REQUIRED


class TokenExpiredError(AuthenticationError):
    default_code = Code.TOKEN_EXPIRED


class TokenInvalidError(AuthenticationError):
    default_code = Code.TOKEN_INVALID


class PermissionDeniedError(ApiError):
    default_code = Code.PERMISSION_DENIED


class ServiceUnavailableError(ApiError):
    """The kernel cannot serve requests yet (plugins not initialized)."""

    default_code = Code.SERVICE_UNAVAILABLE
