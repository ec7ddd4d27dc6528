"""
Declarative endpoints.

An Endpoint bundles a handler with its method, schema and auth flag so a
module can declare it once and the application mounts it at a path::

    create_user = Endpoint(
        name="Create user",
        method="post",
        schema=SchemaBuilder().string("username", min=3, max=20).build(),
        handler=create_user_handler,
    )
    app.mount("/user/create", create_user)
"""

from dataclasses import dataclass
from typing import Any, Callable, Optional

from swiftly.exceptions import ConfigurationError
from swiftly.validation.dsl import schema_from_rules
from swiftly.validation.schema import Schema, SchemaBuilder

SUPPORTED_METHODS = {"GET", "POST", "PUT", "PATCH", "DELETE", "HEAD", "OPTIONS", "*"}


@dataclass(frozen=True)
class Endpoint:
    name: str
    handler: Callable[..., Any]
    method: str = "GET"
    schema: Any = None
    auth: bool = False

    def __post_init__(self):
        if not self.name:
            raise ConfigurationError("Endpoint must have a name")
        if not callable(self.handler):
            raise ConfigurationError(f"Endpoint '{self.name}' must have a callable handler")
        method = (self.method or "").upper()
        if method not in SUPPORTED_METHODS:
            raise ConfigurationError(f"Endpoint '{self.name}' has unsupported method {self.method!r}")
        object.__setattr__(self, "method", method)
        object.__setattr__(self, "schema", resolve_schema(self.schema))


def resolve_schema(schema: Any) -> Optional[Schema]:
    """
    Accept a Schema, a SchemaBuilder, or a legacy
    ``{"fields": {name: rule}, "required": [...]}`` declaration.
    """
    if schema is None or isinstance(schema, Schema):
        return schema
    if isinstance(schema, SchemaBuilder):
        return schema.build()
    if isinstance(schema, dict) and "fields" in schema:
        return schema_from_rules(schema["fields"] or {}, schema.get("required") or ())
    raise ConfigurationError(f"Unsupported schema declaration: {type(schema).__name__}")


def endpoint(name: str, method: str = "GET", schema: Any = None, auth: bool = False):
    """Decorator form of Endpoint."""

    def decorator(func: Callable[..., Any]) -> Endpoint:
        return Endpoint(name=name, handler=func, method=method, schema=schema, auth=auth)

    return decorator
