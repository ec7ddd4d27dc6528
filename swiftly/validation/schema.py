"""
Swiftly: Schema Builder
========================

What:  Chainable construction of immutable schemas, and the `validate()`
       entry point used by the dispatcher.
How:   `SchemaBuilder.field()` lowers keyword options into a FieldRule; the
       builder's `build()` freezes the collected rules into a `Schema`.
       `validate()` walks the schema in declaration order, delegates each
       field to the Rule Engine and collects every error.
Who:   Route declarations (`schema=`), the legacy rule-string adapter and
       the presets module.

Example:
    schema = (
        SchemaBuilder()
        .string("username", min=3, max=20)
        .string("email", email=True)
        .number("age", int=True, min=0, optional=True)
        .build()
    )
    result = schema.validate({"username": "ab", "email": "bad"})
    result.ok      → False
    result.errors  → {"username": "...", "email": "..."}
"""

import copy
import re
from types import MappingProxyType
from typing import Any, Dict, Iterator, Mapping, Union

from pydantic import BaseModel, Field
from pydantic import ValidationError as PydanticValidationError

from swiftly.exceptions import RuleDefinitionError
from swiftly.validation.engine import coerce, evaluate
from swiftly.validation.rules import MISSING, FieldKind, FieldRule, is_missing

ROOT_ERROR_KEY = "_"

_OPTION_NAMES = {
    "optional": None,
    "default": "default",
    "label": "label",
    "min": "min",
    "max": "max",
    "pattern": "pattern",
    "expression": "expression",
    "int": "integer",
    "integer": "integer",
    "positive": "positive",
    "email": "email",
    "url": "url",
    "items": "items",
    "separator": "separator",
    "values": "choices",
    "choices": "choices",
    "schema": "schema",
}


class ValidationResult(BaseModel):
    ok: bool
    errors: Dict[str, str] = Field(default_factory=dict)
    data: Dict[str, Any] = Field(default_factory=dict)

    model_config = {"frozen": True}


class Schema(Mapping[str, FieldRule]):
    """Immutable, ordered mapping of field name to FieldRule."""

    __slots__ = ("_fields",)

    def __init__(self, fields: Mapping[str, FieldRule]):
        self._fields = MappingProxyType(dict(fields))

    def __getitem__(self, name: str) -> FieldRule:
        return self._fields[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._fields)

    def __len__(self) -> int:
        return len(self._fields)

    def __repr__(self) -> str:
        kinds = ", ".join(f"{name}:{rule.kind.value}" for name, rule in self._fields.items())
        return f"Schema({kinds})"

    def validate(self, data: Any) -> ValidationResult:
        return validate(data, self)


class SchemaBuilder:
    """
    Chainable schema construction.

    Each call appends one FieldRule; declaring the same name again replaces
    the earlier rule (last write wins, original position kept).
    """

    def __init__(self) -> None:
        self._fields: Dict[str, FieldRule] = {}

    def field(self, name: str, kind: Union[str, FieldKind], **options: Any) -> "SchemaBuilder":
        if not isinstance(name, str) or not name:
            raise RuleDefinitionError(f"Field name must be a non-empty string, got {name!r}")
        try:
            kind = FieldKind(kind)
        except ValueError:
            raise RuleDefinitionError(f"Unsupported field kind {kind!r}", field=name) from None

        unknown = set(options) - set(_OPTION_NAMES)
        if unknown:
            raise RuleDefinitionError(
                f"Unknown options for field '{name}': {', '.join(sorted(unknown))}", field=name
            )

        attrs: Dict[str, Any] = {}
        for option, value in options.items():
            target = _OPTION_NAMES[option]
            if target is None or value is None:
                continue
            attrs[target] = value
        attrs["required"] = not options.get("optional", False) and options.get("default") is None

        if isinstance(attrs.get("pattern"), re.Pattern):
            attrs["pattern"] = attrs["pattern"].pattern
        if "choices" in attrs:
            attrs["choices"] = tuple(attrs["choices"])
        if "items" in attrs:
            try:
                attrs["items"] = FieldKind(attrs["items"])
            except ValueError:
                raise RuleDefinitionError(
                    f"Unsupported array item kind {attrs['items']!r}", field=name
                ) from None
        if "schema" in attrs:
            attrs["schema"] = _as_schema(attrs["schema"], name)

        try:
            rule = FieldRule(kind=kind, **attrs)
        except PydanticValidationError as exc:
            reason = exc.errors()[0].get("msg", str(exc))
            raise RuleDefinitionError(f"Invalid rule for field '{name}': {reason}", field=name) from exc
        return self.add(name, rule)

    def add(self, name: str, rule: FieldRule) -> "SchemaBuilder":
        """Append an already-built rule."""
        self._fields[name] = rule
        return self

    def extend(self, schema: Mapping[str, FieldRule]) -> "SchemaBuilder":
        for name, rule in schema.items():
            self.add(name, rule)
        return self

    # ── Shorthands ────────────────────────────────────────────────────────

    def string(self, name: str, **options: Any) -> "SchemaBuilder":
        return self.field(name, FieldKind.STRING, **options)

    def number(self, name: str, **options: Any) -> "SchemaBuilder":
        return self.field(name, FieldKind.NUMBER, **options)

    def boolean(self, name: str, **options: Any) -> "SchemaBuilder":
        return self.field(name, FieldKind.BOOLEAN, **options)

    def array(self, name: str, items: Any = None, **options: Any) -> "SchemaBuilder":
        return self.field(name, FieldKind.ARRAY, items=items, **options)

    def enum(self, name: str, values: Any, **options: Any) -> "SchemaBuilder":
        return self.field(name, FieldKind.ENUM, values=values, **options)

    def object(self, name: str, schema: Any = None, **options: Any) -> "SchemaBuilder":
        return self.field(name, FieldKind.OBJECT, schema=schema, **options)

    def build(self) -> Schema:
        return Schema(self._fields)


def _as_schema(value: Any, field: str) -> Schema:
    if isinstance(value, Schema):
        return value
    if isinstance(value, SchemaBuilder):
        return value.build()
    if isinstance(value, Mapping) and all(isinstance(v, FieldRule) for v in value.values()):
        return Schema(value)
    raise RuleDefinitionError(f"Nested schema for '{field}' must be a Schema or SchemaBuilder", field=field)


def validate(data: Any, schema: Mapping[str, FieldRule]) -> ValidationResult:
    """
    Validate `data` against `schema`.

    Algorithm:
        for each field, in declaration order:
            absent + optional → default (deep-copied) or omitted
            absent + required → "<label> is required"
            present           → Rule Engine, then coerce on success
        every field is checked; errors are collected, never short-circuited

    Returns:
        ValidationResult(ok, errors, data). `data` holds only schema fields.
    """
    if data is None:
        data = {}
    if not isinstance(data, Mapping):
        return ValidationResult(ok=False, errors={ROOT_ERROR_KEY: "Request data must be an object"})

    errors: Dict[str, str] = {}
    normalized: Dict[str, Any] = {}

    for name, rule in schema.items():
        value = data.get(name, MISSING)
        label = rule.display_name(name)

        if is_missing(value):
            if rule.required:
                errors[name] = f"{label} is required"
            elif rule.default is not None:
                normalized[name] = copy.deepcopy(rule.default)
            continue

        if rule.kind == FieldKind.OBJECT and rule.nested is not None and isinstance(value, Mapping):
            nested = validate(value, rule.nested)
            if nested.ok:
                normalized[name] = nested.data
            else:
                for child, message in nested.errors.items():
                    errors[f"{name}.{child}"] = message
            continue

        error = evaluate(value, rule, label)
        if error:
            errors[name] = error
        else:
            normalized[name] = coerce(value, rule)

    return ValidationResult(ok=not errors, errors=errors, data=normalized)
