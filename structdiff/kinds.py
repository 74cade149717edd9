"""
structdiff.kinds — Node classification.

Every value met during a traversal is tagged with exactly one Kind.
Container kinds have children and are walked; every other kind is a leaf
and is compared directly by value.

    Kind.NULL       None
    Kind.BOOLEAN    bool
    Kind.NUMBER     int, float, Decimal, Fraction
    Kind.STRING     str
    Kind.SEQUENCE   list                      (container)
    Kind.SET        set                       (container)
    Kind.MAPPING    dict                      (container)
    Kind.RECORD     objects with field state  (container)
    Kind.TIMESTAMP  datetime, date, time
    Kind.PATTERN    compiled re patterns
    Kind.VIEW       memoryview, array.array
    Kind.BUFFER     bytes, bytearray
    Kind.OTHER      anything else (tuples, frozensets, enums, callables ...)
"""

import array
import datetime
import enum
import re
import types
from decimal import Decimal
from enum import Enum
from fractions import Fraction
from typing import Any


class Kind(Enum):
    """Structural type of a graph value."""
    NULL = "null"
    BOOLEAN = "boolean"
    NUMBER = "number"
    STRING = "string"
    SEQUENCE = "sequence"
    SET = "set"
    MAPPING = "mapping"
    RECORD = "record"
    TIMESTAMP = "timestamp"
    PATTERN = "pattern"
    VIEW = "view"
    BUFFER = "buffer"
    OTHER = "other"

    @property
    def is_container(self) -> bool:
        return self in CONTAINER_KINDS


CONTAINER_KINDS = frozenset({Kind.SEQUENCE, Kind.SET, Kind.MAPPING, Kind.RECORD})

# Values of these types may carry a __dict__ but are never treated as records.
_OPAQUE_TYPES = (
    type,
    types.FunctionType,
    types.BuiltinFunctionType,
    types.MethodType,
    types.ModuleType,
    enum.Enum,
)


def _has_field_state(value: Any) -> bool:
    if hasattr(value, "__dict__"):
        return True
    for cls in type(value).__mro__:
        if cls.__dict__.get("__slots__"):
            return True
    return False


def classify(value: Any) -> Kind:
    """
    Classify a value.  Never raises: anything unrecognised is Kind.OTHER.

    bool MUST be checked before numbers because bool subclasses int.
    """
    if value is None:
        return Kind.NULL
    if isinstance(value, bool):
        return Kind.BOOLEAN
    if isinstance(value, (int, float, Decimal, Fraction)):
        return Kind.NUMBER
    if isinstance(value, str):
        return Kind.STRING
    if isinstance(value, list):
        return Kind.SEQUENCE
    if isinstance(value, set):
        return Kind.SET
    if isinstance(value, dict):
        return Kind.MAPPING
    if isinstance(value, (datetime.date, datetime.time)):
        return Kind.TIMESTAMP
    if isinstance(value, re.Pattern):
        return Kind.PATTERN
    if isinstance(value, (memoryview, array.array)):
        return Kind.VIEW
    if isinstance(value, (bytes, bytearray)):
        return Kind.BUFFER
    if isinstance(value, (tuple, frozenset, complex)) or isinstance(value, _OPAQUE_TYPES):
        return Kind.OTHER
    if _has_field_state(value):
        return Kind.RECORD
    return Kind.OTHER
