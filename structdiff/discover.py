"""
structdiff.discover — Record property enumeration strategies.

A strategy is any callable ``(record) -> list of names`` deciding which
fields of a record the algorithms will see as children.  The algorithms
never invent their own policy; pass one of these (or your own) as the
``props_fn`` option.

    own_names         instance __dict__ entries plus populated __slots__
    public_names      own_names without names starting with "_"
    field_names       dataclass fields (own_names for non-dataclasses)
    enumerable_names  own_names plus properties marked with @enumerable
"""

import dataclasses
from typing import Any, Callable

from .errors import UsageError

PropsFn = Callable[[Any], list]
PropFilterFn = Callable[[Any, Any], bool]

_ENUMERABLE_MARK = "__structdiff_enumerable__"


def _slot_names(obj: Any) -> list[str]:
    names: list[str] = []
    for cls in type(obj).__mro__:
        slots = cls.__dict__.get("__slots__", ())
        if isinstance(slots, str):
            slots = (slots,)
        for name in slots:
            if name in ("__dict__", "__weakref__") or name in names:
                continue
            if name.startswith("__") and not name.endswith("__"):
                name = f"_{cls.__name__.lstrip('_')}{name}"
            if hasattr(obj, name):
                names.append(name)
    return names


def own_names(obj: Any) -> list[str]:
    """Names of the fields held directly by the instance."""
    names = list(getattr(obj, "__dict__", {}))
    for name in _slot_names(obj):
        if name not in names:
            names.append(name)
    return names


def public_names(obj: Any) -> list[str]:
    return [n for n in own_names(obj) if not n.startswith("_")]


def field_names(obj: Any) -> list[str]:
    if dataclasses.is_dataclass(obj) and not isinstance(obj, type):
        return [f.name for f in dataclasses.fields(obj)]
    return own_names(obj)


def enumerable_names(obj: Any) -> list[str]:
    """own_names plus every property (up the class chain) marked @enumerable."""
    names = own_names(obj)
    for cls in type(obj).__mro__:
        for name, attr in cls.__dict__.items():
            if isinstance(attr, property) and getattr(attr.fget, _ENUMERABLE_MARK, False):
                if name not in names:
                    names.append(name)
    return names


def enumerable(prop: Any) -> property:
    """
    Mark a property as a discoverable record field for enumerable_names.

        class Temperature:
            def __init__(self, c):
                self._c = c

            @enumerable
            @property
            def fahrenheit(self):
                return self._c * 9 / 5 + 32
    """
    if not isinstance(prop, property) or prop.fget is None:
        raise UsageError("@enumerable applied to something other than a property")
    setattr(prop.fget, _ENUMERABLE_MARK, True)
    return prop
