"""
Legacy rule strings.

Older route modules declare rules as comma-separated strings::

    "Page size,number,1,100,null"
    "Username,string,3,20,^[a-zA-Z0-9_]+$"
    "Tags,array,0,10,[a-z]+,;"
    "Score,number,1,10,x*2=10"

Positions: ``label, kind, min, max, constraint[, separator]``. The kind-first order
``kind, label, ...`` is accepted too. ``null`` leaves a position unset. For
numbers the constraint is an arithmetic expression, for strings and arrays it is a
regular expression. An array's trailing part is the separator only when it is
``null`` or one to three non-regex characters; otherwise it stays in the
pattern. This module only *parses*; the resulting FieldRule is
evaluated by the same engine as builder-made rules.
"""

import logging
import re
from typing import Any, Dict, Iterable, Mapping, Optional, Tuple

from swiftly.exceptions import RuleDefinitionError
from swiftly.validation.rules import FieldKind, FieldRule
from swiftly.validation.schema import Schema, SchemaBuilder

logger = logging.getLogger(__name__)

NULL_TOKEN = "null"
DSL_KINDS = {FieldKind.NUMBER.value, FieldKind.STRING.value, FieldKind.ARRAY.value}

# Trailing array part read as separator: `null` or 1-3 non-regex characters
SEPARATOR_TOKEN = re.compile(r"[^\w\s\\^$.*+?()\[\]{}]{1,3}")


def _optional(token: str) -> Optional[str]:
    token = token.strip()
    return None if token == "" or token.lower() == NULL_TOKEN else token


def _bound(token: str, name: str, field: str) -> Optional[float]:
    value = _optional(token)
    if value is None:
        return None
    try:
        return float(value)
    except ValueError:
        raise RuleDefinitionError(
            f"Rule for '{field}' has a non-numeric {name}: {token!r}", field=field
        ) from None


def _is_separator(token: str) -> bool:
    token = token.strip()
    return token == "" or token.lower() == NULL_TOKEN or SEPARATOR_TOKEN.fullmatch(token) is not None


def _split(text: str, field: str) -> Tuple[str, str, list]:
    parts = text.split(",")
    if len(parts) < 5:
        raise RuleDefinitionError(
            f"Rule for '{field}' must have at least 5 comma-separated parts, got {len(parts)}",
            field=field,
        )
    first, second = parts[0].strip(), parts[1].strip().lower()
    if second in DSL_KINDS:
        label, kind = first, second
    elif first.lower() in DSL_KINDS:
        kind, label = first.lower(), parts[1].strip()
    else:
        raise RuleDefinitionError(
            f"Rule for '{field}' has an unsupported type: {parts[1].strip()!r}", field=field
        )
    return label, kind, parts[2:]


def parse_rule(text: str, field: str = "", required: bool = True) -> FieldRule:
    """Lower one rule string into a FieldRule."""
    if not isinstance(text, str):
        raise RuleDefinitionError(f"Rule for '{field}' must be a string", field=field or None)
    field = field or "value"
    label, kind, rest = _split(text, field)
    low, high = _bound(rest[0], "min", field), _bound(rest[1], "max", field)

    separator = None
    if kind == FieldKind.ARRAY.value and len(rest) > 3 and _is_separator(rest[-1]):
        separator = _optional(rest[-1])
        constraint = _optional(",".join(rest[2:-1]))
    else:
        constraint = _optional(",".join(rest[2:]))

    options: Dict[str, Any] = {"label": label or None, "min": low, "max": high}
    if kind == FieldKind.NUMBER.value:
        options["expression"] = constraint
    else:
        options["pattern"] = constraint
    if separator:
        options["separator"] = separator
    if not required:
        options["optional"] = True
    return SchemaBuilder().field(field, kind, **options).build()[field]


def schema_from_rules(rules: Mapping[str, str], required: Iterable[str] = ()) -> Schema:
    """
    Build a Schema from a ``{field: rule string}`` mapping.

    Only names listed in `required` are required; the rest are validated
    only when present.
    """
    if not isinstance(rules, Mapping):
        raise RuleDefinitionError("Rules must be a mapping of field name to rule string")
    if isinstance(required, str):
        raise RuleDefinitionError("Required fields must be a list of names, not a string")
    required = list(required)
    unknown = [name for name in required if name not in rules]
    if unknown:
        raise RuleDefinitionError(f"Required fields without a rule: {', '.join(unknown)}")

    builder = SchemaBuilder()
    for name, text in rules.items():
        builder.add(name, parse_rule(text, field=name, required=name in required))
    return builder.build()


def extend_rules(base: Mapping[str, str], extra: Mapping[str, str]) -> Dict[str, str]:
    """Merge two rule pools; `extra` wins on collisions."""
    return {**base, **extra}


def pick_rules(fields: Iterable[str], pool: Mapping[str, str]) -> Dict[str, str]:
    """Select the named rules from a pool, skipping names the pool lacks."""
    picked = {}
    for name in fields:
        if name in pool:
            picked[name] = pool[name]
        else:
            logger.debug("Rule pool has no entry for '%s'", name)
    return picked
