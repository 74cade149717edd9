"""
structdiff.visit — Graph node model and the base traversal framework.

THE SHAPE OF A WALK
═══════════════════

Every value met during a walk is wrapped in a GraphNode that knows its
Kind, its parent node, and the key/position by which the parent reaches
it.  Nodes are created fresh for each call and discarded afterwards.

    visit(node)
      ├─ circular guard (opt-in): container already seen → don't descend
      ├─ classify node.kind (once)
      └─ dispatch on Kind:
           RECORD   → visit_record    children = props_fn(value) | prop_filter
           MAPPING  → visit_mapping   children = mapping keys | prop_filter
           SET      → visit_set       children = members (no key)
           SEQUENCE → visit_sequence  children = indexes
           leaves   → visit_other

A visit returns:
    True / False   descend / don't descend (siblings continue either way)
    a GraphNode    stop; the node is handed up through every frame

Subclasses (Traverse, Clone) override visit_node() to act on each node
and make_child() to build their own node type.  The comparator walks two
graphs at once and uses only the shared machinery (classification, child
discovery, circular guard).
"""

from dataclasses import dataclass, field
from typing import Any, Callable, Iterator, Optional, Union

from .kinds import Kind, classify
from .options import VisitorOptions


class _NoKey:
    """Sentinel for nodes their parent reaches without a key (set members, roots)."""
    __slots__ = ()

    def __repr__(self) -> str:
        return "NO_KEY"

    def __bool__(self) -> bool:
        return False


NO_KEY = _NoKey()


@dataclass(eq=False)
class GraphNode:
    """One value within a traversal, plus where it sits in its parent."""
    value: Any
    key: Any = NO_KEY
    position: Optional[int] = None
    parent: Optional["GraphNode"] = field(default=None, repr=False)
    kind: Optional[Kind] = None
    child_keys: Optional[list] = field(default=None, repr=False)

    def __repr__(self) -> str:
        kind = self.kind.value if self.kind else "?"
        return f"GraphNode({kind}, key={self.key!r}, value={self.value!r})"


VisitResult = Union[bool, GraphNode]
ChildVisitor = Callable[[], VisitResult]


def halted(result: Any) -> bool:
    """True if a visit result means 'stop the whole walk'."""
    return isinstance(result, GraphNode)


@dataclass
class VisitorContext:
    """Per-call state.  Never stored on the algorithm instance."""
    # id(value) → value for every container visited so far (circular guard).
    refs: Optional[dict] = None


class Visitor:
    """Base walk over a single graph."""

    _DISPATCH = {
        Kind.RECORD: "visit_record",
        Kind.MAPPING: "visit_mapping",
        Kind.SET: "visit_set",
        Kind.SEQUENCE: "visit_sequence",
    }

    def __init__(self, options: Optional[VisitorOptions] = None):
        options = options or VisitorOptions()
        self.options = options
        self.props_fn = options.props_fn
        self.prop_filter = options.prop_filter
        self.guard_circular_refs = options.guard_circular_refs

    def create_context(self) -> VisitorContext:
        return VisitorContext(refs={} if self.guard_circular_refs else None)

    # ── classification and child discovery ──────────────────────────

    @staticmethod
    def classify(node: GraphNode) -> Kind:
        if node.kind is None:
            node.kind = classify(node.value)
        return node.kind

    def child_keys(self, node: GraphNode) -> list:
        """Keys of a record or mapping node, computed once and cached."""
        if node.child_keys is None:
            if self.classify(node) is Kind.RECORD:
                keys = list(self.props_fn(node.value))
            else:
                keys = list(node.value.keys())
            if self.prop_filter is not None:
                keys = [k for k in keys if self.prop_filter(node.value, k)]
            node.child_keys = keys
        return node.child_keys

    @staticmethod
    def child_value(node: GraphNode, key: Any) -> Any:
        if node.kind is Kind.RECORD:
            return getattr(node.value, key)
        return node.value[key]

    def make_child(self, parent: GraphNode, value: Any, key: Any = NO_KEY,
                   position: Optional[int] = None) -> GraphNode:
        """Create the node for one child of ``parent``."""
        return GraphNode(value=value, key=key, position=position, parent=parent)

    def iter_children(self, node: GraphNode) -> Iterator[GraphNode]:
        """Yield a fresh child node for every child of a container node."""
        kind = self.classify(node)
        if kind in (Kind.RECORD, Kind.MAPPING):
            for i, key in enumerate(self.child_keys(node)):
                yield self.make_child(node, self.child_value(node, key), key, i)
        elif kind is Kind.SET:
            for i, member in enumerate(list(node.value)):
                yield self.make_child(node, member, NO_KEY, i)
        elif kind is Kind.SEQUENCE:
            for i, item in enumerate(list(node.value)):
                yield self.make_child(node, item, i, i)

    # ── circular reference guard ────────────────────────────────────

    @staticmethod
    def reference_id(node: GraphNode) -> Any:
        return id(node.value)

    def has_reference(self, ctx: VisitorContext, node: GraphNode) -> bool:
        return ctx.refs is not None and self.reference_id(node) in ctx.refs

    def add_reference(self, ctx: VisitorContext, node: GraphNode) -> None:
        if ctx.refs is not None:
            ctx.refs[self.reference_id(node)] = node.value

    # ── dispatch ────────────────────────────────────────────────────

    def visit(self, node: GraphNode, ctx: VisitorContext) -> VisitResult:
        """Choke point every node goes through."""
        if self.has_reference(ctx, node):
            return False
        kind = self.classify(node)
        name = self._DISPATCH.get(kind)
        if name is None:
            return self.visit_other(node, ctx)
        self.add_reference(ctx, node)
        return getattr(self, name)(node, ctx)

    def visit_children(self, node: GraphNode, ctx: VisitorContext) -> VisitResult:
        for child in self.iter_children(node):
            result = self.visit(child, ctx)
            if halted(result):
                return result
        return True

    def visit_record(self, node: GraphNode, ctx: VisitorContext) -> VisitResult:
        return self.visit_node(node, ctx, lambda: self.visit_children(node, ctx))

    def visit_mapping(self, node: GraphNode, ctx: VisitorContext) -> VisitResult:
        return self.visit_node(node, ctx, lambda: self.visit_children(node, ctx))

    def visit_set(self, node: GraphNode, ctx: VisitorContext) -> VisitResult:
        return self.visit_node(node, ctx, lambda: self.visit_children(node, ctx))

    def visit_sequence(self, node: GraphNode, ctx: VisitorContext) -> VisitResult:
        return self.visit_node(node, ctx, lambda: self.visit_children(node, ctx))

    def visit_other(self, node: GraphNode, ctx: VisitorContext) -> VisitResult:
        return self.visit_node(node, ctx)

    def visit_node(self, node: GraphNode, ctx: VisitorContext,
                   children: Optional[ChildVisitor] = None) -> VisitResult:
        """
        Every node ends up here.  The default just recurses into the
        children (if any); override to act on each node.
        """
        if children is not None:
            return children()
        return True
