"""
Swiftly: Minimalist Backend Kernel
===================================

What: Request-handling kernel that turns an HTTP request into a matched
      handler call, threads a per-request context through ordered plugins,
      validates input against declarative schemas and answers with a
      canonical `{code, message, data, detail, timestamp}` envelope.
Who:  Imported by applications that declare routes and plugins, and by
      uvicorn through `swiftly.main:app`.

Architecture Note:

    ┌─────────────────────────────────────┐
    │     Swiftly app (swiftly.main)      │  ← assembly, lifespan, ASGI
    ├─────────────────────────────────────┤
    │       Dispatcher (per request)      │  ← state machine
    ├──────────────┬──────────────────────┤
    │ Plugin       │ Router               │
    │ Pipeline     │                      │
    ├──────────────┴──────────────────────┤
    │  Request Context / Response Builder │
    ├─────────────────────────────────────┤
    │  Schema Builder → Rule Engine       │  ← validation
    ├─────────────────────────────────────┤
    │  Envelope + Code Registry           │  ← taxonomy
    └─────────────────────────────────────┘

    Data flows strictly downward for each request.
"""

__version__ = "1.0.0"

from swiftly.codes import Code, CodeRegistry  # noqa: E402
from swiftly.context import RequestContext  # noqa: E402
from swiftly.endpoint import Endpoint, endpoint  # noqa: E402
from swiftly.exceptions import (  # noqa: E402
    ApiError,
    ConfigurationError,
    SwiftlyError,
)
from swiftly.plugins.base import Plugin, define_plugin  # noqa: E402
from swiftly.response import Envelope, make_error, make_response  # noqa: E402
from swiftly.router import Router  # noqa: E402
from swiftly.validation import SchemaBuilder, parse_rule, schema_from_rules, validate  # noqa: E402

__all__ = [
    "__version__",
    "ApiError",
    "Code",
    "CodeRegistry",
    "ConfigurationError",
    "Endpoint",
    "Envelope",
    "Plugin",
    "RequestContext",
    "Router",
    "SchemaBuilder",
    "SwiftlyError",
    "define_plugin",
    "endpoint",
    "make_error",
    "make_response",
    "parse_rule",
    "schema_from_rules",
    "validate",
]
