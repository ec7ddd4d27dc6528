"""
Field rule model: the typed contract for a single field.

A FieldRule is a tagged variant: `kind` selects which of the remaining
attributes apply. Rules are frozen pydantic models, so a built Schema can be
shared between concurrent requests.
"""

from enum import Enum
from typing import Any, Optional, Tuple

from pydantic import BaseModel, Field, model_validator


class FieldKind(str, Enum):
    NUMBER = "number"
    STRING = "string"
    ARRAY = "array"
    BOOLEAN = "boolean"
    ENUM = "enum"
    OBJECT = "object"


# Kinds allowed as array elements
SCALAR_KINDS = (FieldKind.NUMBER, FieldKind.STRING, FieldKind.BOOLEAN)


class _Missing:
    """Sentinel for a key that is absent from the input mapping."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "MISSING"

    def __bool__(self) -> bool:
        return False


MISSING = _Missing()


def is_missing(value: Any) -> bool:
    """Absent, None and the empty string all count as "not provided"."""
    return value is MISSING or value is None or (isinstance(value, str) and value == "")


class FieldRule(BaseModel):
    kind: FieldKind
    label: Optional[str] = None
    required: bool = True
    default: Any = None

    # number: value bounds / string: length bounds / array: element count
    # max <= 0 means "no upper bound"
    min: Optional[float] = None
    max: Optional[float] = None

    # string / array elements: full-match regular expression
    pattern: Optional[str] = None
    # number: "<expr in x>=<number>"
    expression: Optional[str] = None

    integer: bool = False
    positive: bool = False
    email: bool = False
    url: bool = False

    choices: Tuple[Any, ...] = ()
    items: Optional[FieldKind] = None
    separator: str = Field(default=",", min_length=1)

    # object: nested swiftly.validation.schema.Schema
    schema_: Any = Field(default=None, alias="schema")

    model_config = {
        "frozen": True,
        "populate_by_name": True,
        "arbitrary_types_allowed": True,
    }

    @model_validator(mode="after")
    def check_consistency(self) -> "FieldRule":
        if self.min is not None and self.max is not None and self.max > 0 and self.min > self.max:
            raise ValueError(f"min ({self.min:g}) is greater than max ({self.max:g})")
        if self.kind == FieldKind.ENUM and not self.choices:
            raise ValueError("enum rules need at least one value")
        if self.items is not None and self.items not in SCALAR_KINDS:
            raise ValueError(f"array items must be one of {[k.value for k in SCALAR_KINDS]}")
        if self.expression is not None and self.kind != FieldKind.NUMBER:
            raise ValueError("expression constraints only apply to number rules")
        return self

    @property
    def nested(self) -> Any:
        return self.schema_

    def display_name(self, field: str) -> str:
        """`Label (field)` when a distinct label exists, else the field name."""
        if self.label and self.label != field:
            return f"{self.label} ({field})"
        return field
