# Validation package init
"""
Swiftly: Validation
====================

    rules.py       FieldRule / FieldKind (typed rule variant)
    expression.py  safe arithmetic for "x*2=10" style constraints
    engine.py      evaluate(value, rule, label) / coerce(value, rule)
    schema.py      SchemaBuilder, Schema, validate()
    dsl.py         legacy "label,kind,min,max,constraint" rule strings
    presets.py     pagination / id schemas and a common rule pool
"""

from swiftly.validation.dsl import extend_rules, parse_rule, pick_rules, schema_from_rules
from swiftly.validation.engine import coerce, evaluate
from swiftly.validation.rules import MISSING, FieldKind, FieldRule
from swiftly.validation.schema import Schema, SchemaBuilder, ValidationResult, validate

__all__ = [
    "MISSING",
    "FieldKind",
    "FieldRule",
    "Schema",
    "SchemaBuilder",
    "ValidationResult",
    "coerce",
    "evaluate",
    "extend_rules",
    "parse_rule",
    "pick_rules",
    "schema_from_rules",
    "validate",
]
