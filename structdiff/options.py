"""
structdiff.options — Validated algorithm options.

Each algorithm takes one immutable options model.  The convenience
functions (equal, diff, clone, traverse) accept the same fields as keyword
arguments:

    diff(a, b, lax_array_ordering=True, epsilon=1e-6)

Unknown names and invalid values raise pydantic.ValidationError.
"""

import sys
from typing import Any, Callable, Optional

from pydantic import BaseModel, ConfigDict, Field

from .discover import PropFilterFn, PropsFn, own_names


class VisitorOptions(BaseModel):
    """Options shared by every algorithm that walks a graph."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True, extra="forbid")

    # Which record fields are visible as children.
    props_fn: PropsFn = Field(default=own_names)
    # Optional (owner, key) -> bool filter over record fields and mapping keys.
    prop_filter: Optional[PropFilterFn] = None
    # Track visited containers so that cyclic graphs terminate.
    guard_circular_refs: bool = False


class TraverseOptions(VisitorOptions):
    pass


class CompareOptions(VisitorOptions):
    """Options shared by the equality and diff algorithms."""

    # Compare values of different kinds with ==.
    loose_equality: bool = False
    # Numbers closer than this are equal.
    epsilon: float = Field(default=sys.float_info.epsilon, ge=0.0)
    # Sequences are equal when they hold the same elements in any order.
    lax_array_ordering: bool = False
    # Key order matters when both mappings hold exactly the same keys.
    strict_map_ordering: bool = False
    # Iteration order matters when both sets hold exactly the same members.
    strict_set_ordering: bool = False


class EqualOptions(CompareOptions):
    pass


class CloneOptions(VisitorOptions):
    """Options for the clone algorithm."""

    # (node) -> bare instance; structdiff.clone.default_create_copy when None.
    create_copy_fn: Optional[Callable[[Any], Any]] = None


class DiffOptions(CompareOptions):
    """Options for the diff algorithm."""

    # When set, right-hand values are cloned before being embedded in Changes.
    clone_options: Optional[CloneOptions] = None
