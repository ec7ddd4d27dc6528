"""
Swiftly: Rule Engine
=====================

What:  Evaluates one value against one FieldRule.
How:   `evaluate()` returns a human-readable message on failure and None on
       success; `coerce()` converts an accepted value to its declared kind.
Who:   Called by `swiftly.validation.schema.validate` for every field.

Contract:
    - Required-but-missing (absent, None, "") fails before any type check.
    - Data problems, including malformed patterns or expressions inside an
      otherwise valid rule, come back as messages. The engine never raises
      for them.
    - `max <= 0` means "no upper bound" for numbers, strings and arrays.
"""

import math
import re
import sys
from functools import lru_cache
from typing import Any, List, Optional, Pattern
from urllib.parse import urlparse

from swiftly.validation.expression import ExpressionError, evaluate_expression, split_constraint
from swiftly.validation.rules import FieldKind, FieldRule, is_missing

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
TRUE_WORDS = {"true", "1", "yes", "on"}
FALSE_WORDS = {"false", "0", "no", "off"}


@lru_cache(maxsize=512)
def _compile(pattern: str) -> Pattern[str]:
    return re.compile(pattern)


def _fmt(bound: float) -> str:
    return f"{bound:g}"


def _has_upper(rule: FieldRule) -> bool:
    return rule.max is not None and rule.max > 0


# ══════════════════════════════════════════════════════════════════════════
# Scalar helpers
# ══════════════════════════════════════════════════════════════════════════


def to_number(value: Any) -> Optional[float]:
    """Numeric value of `value`, or None. Booleans are not numbers."""
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value) if math.isfinite(value) else None
    if isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            return None
        return number if math.isfinite(number) else None
    return None


def to_boolean(value: Any) -> Optional[bool]:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        word = value.strip().lower()
        if word in TRUE_WORDS:
            return True
        if word in FALSE_WORDS:
            return False
    return None


def to_list(value: Any, separator: str) -> Optional[List[Any]]:
    """Native sequences pass through; strings are split and empties dropped."""
    if isinstance(value, (list, tuple)):
        return list(value)
    if isinstance(value, str):
        return [part.strip() for part in value.split(separator) if part.strip()]
    return None


def _enum_match(value: Any, choices: tuple) -> Any:
    """1-tuple holding the matching choice, or None when nothing matches."""
    for choice in choices:
        if value == choice and type(value) is type(choice):
            return (choice,)
    for choice in choices:
        if str(value) == str(choice):
            return (choice,)
    return None


# ══════════════════════════════════════════════════════════════════════════
# Per-kind checks
# ══════════════════════════════════════════════════════════════════════════


def _check_number(value: Any, rule: FieldRule, label: str) -> Optional[str]:
    number = to_number(value)
    if number is None:
        return f"{label} must be a number"
    if rule.integer and not number.is_integer():
        return f"{label} must be an integer"
    if rule.positive and number <= 0:
        return f"{label} must be a positive number"
    if rule.min is not None and number < rule.min:
        return f"{label} must not be less than {_fmt(rule.min)}"
    if _has_upper(rule) and number > rule.max:
        return f"{label} must not be greater than {_fmt(rule.max)}"
    if rule.expression and rule.expression.strip():
        return _check_expression(number, rule.expression.strip(), label)
    return None


def _check_expression(number: float, constraint: str, label: str) -> Optional[str]:
    try:
        left, target = split_constraint(constraint)
        result = evaluate_expression(left, number)
    except ExpressionError as exc:
        return f"{label} has an invalid expression constraint: {exc}"
    if abs(result - target) > sys.float_info.epsilon:
        return f"{label} does not satisfy {constraint}"
    return None


def _check_pattern(text: str, pattern: str) -> Optional[bool]:
    """True/False for match, None when the pattern does not compile."""
    try:
        compiled = _compile(pattern)
    except re.error:
        return None
    return compiled.fullmatch(text) is not None


def _check_string(value: Any, rule: FieldRule, label: str) -> Optional[str]:
    if not isinstance(value, str):
        return f"{label} must be a string"
    length = len(value)
    if rule.min is not None and length < rule.min:
        return f"{label} must be at least {_fmt(rule.min)} characters long"
    if _has_upper(rule) and length > rule.max:
        return f"{label} must be at most {_fmt(rule.max)} characters long"
    if rule.email and not EMAIL_PATTERN.match(value):
        return f"{label} must be a valid email address"
    if rule.url:
        parsed = urlparse(value)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            return f"{label} must be a valid URL"
    if rule.pattern:
        matched = _check_pattern(value, rule.pattern)
        if matched is None:
            return f"{label} has an invalid pattern"
        if not matched:
            return f"{label} has an invalid format"
    return None


def _check_array(value: Any, rule: FieldRule, label: str) -> Optional[str]:
    items = to_list(value, rule.separator)
    if items is None:
        return f"{label} must be an array"
    if rule.min is not None and len(items) < rule.min:
        return f"{label} must contain at least {_fmt(rule.min)} items"
    if _has_upper(rule) and len(items) > rule.max:
        return f"{label} must contain at most {_fmt(rule.max)} items"
    if rule.pattern:
        for item in items:
            matched = _check_pattern(str(item), rule.pattern)
            if matched is None:
                return f"{label} has an invalid pattern"
            if not matched:
                return f'{label} contains an invalid item "{item}"'
    if rule.items is not None:
        element = FieldRule(kind=rule.items)
        for index, item in enumerate(items):
            error = evaluate(item, element, f"{label}[{index}]")
            if error:
                return error
    return None


def _check_boolean(value: Any, rule: FieldRule, label: str) -> Optional[str]:
    if to_boolean(value) is None:
        return f"{label} must be a boolean"
    return None


def _check_enum(value: Any, rule: FieldRule, label: str) -> Optional[str]:
    if _enum_match(value, rule.choices) is None:
        allowed = ", ".join(str(choice) for choice in rule.choices)
        return f"{label} must be one of: {allowed}"
    return None


def _check_object(value: Any, rule: FieldRule, label: str) -> Optional[str]:
    if not isinstance(value, dict):
        return f"{label} must be an object"
    if rule.nested is not None:
        result = rule.nested.validate(value)
        if not result.ok:
            field, message = next(iter(result.errors.items()))
            return f"{label}.{field}: {message}"
    return None


_CHECKS = {
    FieldKind.NUMBER: _check_number,
    FieldKind.STRING: _check_string,
    FieldKind.ARRAY: _check_array,
    FieldKind.BOOLEAN: _check_boolean,
    FieldKind.ENUM: _check_enum,
    FieldKind.OBJECT: _check_object,
}


def evaluate(value: Any, rule: FieldRule, label: str) -> Optional[str]:
    """Validate `value` against `rule`; return an error message or None."""
    if is_missing(value):
        return f"{label} is required" if rule.required else None
    return _CHECKS[rule.kind](value, rule, label)


# ══════════════════════════════════════════════════════════════════════════
# Coercion (only called after evaluate() succeeded)
# ══════════════════════════════════════════════════════════════════════════


def _coerce_number(value: Any, rule: FieldRule) -> Any:
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        if rule.integer and isinstance(value, float):
            return int(value)
        return value
    number = to_number(value)
    if rule.integer or (number.is_integer() and re.fullmatch(r"\s*[+-]?\d+\s*", str(value))):
        return int(number)
    return number


def coerce(value: Any, rule: FieldRule) -> Any:
    """Convert an accepted value to the rule's declared kind."""
    kind = rule.kind
    if kind == FieldKind.NUMBER:
        return _coerce_number(value, rule)
    if kind == FieldKind.STRING:
        return str(value)
    if kind == FieldKind.BOOLEAN:
        return to_boolean(value)
    if kind == FieldKind.ENUM:
        return _enum_match(value, rule.choices)[0]
    if kind == FieldKind.ARRAY:
        items = to_list(value, rule.separator)
        if rule.items is not None:
            element = FieldRule(kind=rule.items)
            return [coerce(item, element) for item in items]
        return items
    if kind == FieldKind.OBJECT and rule.nested is not None:
        return rule.nested.validate(value).data
    return value
