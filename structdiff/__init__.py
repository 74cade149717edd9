"""
structdiff
==========

Deep equality, diff, patch and clone for arbitrary Python object graphs.

    equal({"a": [1, 2]}, {"a": [1, 2]})        → True
    diff({"a": 1}, {"a": 2})                   → [EDIT at a: 2]
    patch([1, 2, 3], diff([1, 2, 3], [1, 3]))  → [1, 3]
    clone(graph, guard_circular_refs=True)     → an independent deep copy

All four share one traversal framework: values are classified into Kinds
(null, number, sequence, mapping, record, ...), containers are walked by
key, and comparison walks two graphs in lockstep.  A diff is a list of
reversible Changes:

    undo = change.apply(target)
    redo = undo.undo()
    undo = redo.redo()
"""

from structdiff.clone import Clone, clone, default_create_copy
from structdiff.compare import Comparator, Outcome
from structdiff.diff import Diff, diff
from structdiff.discover import (
    enumerable, enumerable_names, field_names, own_names, public_names,
)
from structdiff.equal import Equal, equal
from structdiff.errors import PatchError, StructDiffError, UsageError
from structdiff.kinds import Kind, classify
from structdiff.options import (
    CloneOptions, CompareOptions, DiffOptions, EqualOptions, TraverseOptions, VisitorOptions,
)
from structdiff.patch import Add, Change, Edit, PathSegment, Redo, Remove, Undo, patch
from structdiff.traverse import STOP, Traverse, traverse
from structdiff.util import content_hash
from structdiff.visit import GraphNode, Visitor

__version__ = "0.1.0"
__all__ = [
    "Kind", "classify", "GraphNode", "Visitor",
    "Traverse", "traverse", "STOP",
    "Comparator", "Outcome",
    "Equal", "equal",
    "Diff", "diff",
    "Clone", "clone", "default_create_copy",
    "Change", "Add", "Remove", "Edit", "PathSegment", "Undo", "Redo", "patch",
    "own_names", "public_names", "field_names", "enumerable_names", "enumerable",
    "VisitorOptions", "TraverseOptions", "CompareOptions", "EqualOptions",
    "DiffOptions", "CloneOptions",
    "StructDiffError", "UsageError", "PatchError",
    "content_hash",
]
