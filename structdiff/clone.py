"""
structdiff.clone — Deep copy built on the traversal framework.

    copy = clone(graph)
    copy = clone(graph, guard_circular_refs=True)   # cycles and shared
                                                    # substructure preserved

For every container the walk creates an empty *mirror* (via
create_copy_fn), fills it from the children's mirrors, and attaches it to
the parent's mirror under the same key.  Immutable leaves are reused.

With guard_circular_refs every container is cloned once: meeting it a
second time attaches the existing mirror instead of walking it again, so
the copy has the same shape (cycles included) as the original.
"""

import array
import copy
from dataclasses import dataclass, field
from typing import Any, Optional

import structlog

from .kinds import Kind
from .options import CloneOptions
from .visit import NO_KEY, ChildVisitor, GraphNode, VisitResult, Visitor, VisitorContext

logger = structlog.get_logger()


def _emptied(value: Any, empty: Any) -> Any:
    """An empty instance of ``value``'s type; builtins get ``empty`` itself."""
    if type(value) is type(empty):
        return empty
    mirror = copy.copy(value)
    mirror.clear()
    return mirror


def default_create_copy(node: GraphNode) -> Any:
    """
    Create the bare copy of one node's value.

    Containers come back empty (sequences pre-sized with None), mutable
    binary values come back as independent copies, and everything else is
    returned unchanged.
    """
    value = node.value
    kind = node.kind
    if kind is Kind.SEQUENCE:
        if type(value) is list:
            return [None] * len(value)
        mirror = copy.copy(value)
        mirror[:] = [None] * len(value)
        return mirror
    if kind is Kind.MAPPING:
        return _emptied(value, {})
    if kind is Kind.SET:
        return _emptied(value, set())
    if kind is Kind.RECORD:
        cls = type(value)
        return cls.__new__(cls)
    if kind is Kind.BUFFER:
        return bytearray(value) if isinstance(value, bytearray) else value
    if kind is Kind.VIEW:
        if isinstance(value, array.array):
            return array.array(value.typecode, value)
        return memoryview(bytearray(value.tobytes())).cast(value.format, value.shape)
    return value


@dataclass(eq=False)
class CloneNode(GraphNode):
    mirror: Any = None


@dataclass
class CloneContext(VisitorContext):
    # id(original container) → its mirror
    clones: dict = field(default_factory=dict)


class Clone(Visitor):
    """Concrete deep-copy algorithm."""

    def __init__(self, options: Optional[CloneOptions] = None):
        options = options or CloneOptions()
        super().__init__(options)
        self.create_copy_fn = options.create_copy_fn or default_create_copy

    def create_context(self) -> CloneContext:
        base = super().create_context()
        return CloneContext(refs=base.refs)

    def clone(self, value: Any) -> Any:
        ctx = self.create_context()
        root = CloneNode(value=value)
        self.visit(root, ctx)
        logger.debug("clone.complete", containers=len(ctx.clones))
        return root.mirror

    def make_child(self, parent: GraphNode, value: Any, key: Any = NO_KEY,
                   position: Optional[int] = None) -> CloneNode:
        return CloneNode(value=value, key=key, position=position, parent=parent)

    def visit(self, node: GraphNode, ctx: VisitorContext) -> VisitResult:
        if self.has_reference(ctx, node):
            node.mirror = ctx.clones[self.reference_id(node)]
            self.attach(node)
            return False
        return super().visit(node, ctx)

    def visit_node(self, node: GraphNode, ctx: VisitorContext,
                   children: Optional[ChildVisitor] = None) -> VisitResult:
        node.mirror = self.create_copy_fn(node)
        if children is not None:
            ctx.clones[self.reference_id(node)] = node.mirror
            children()
        # Attached only once filled, so hashable records enter sets complete.
        self.attach(node)
        return True

    def attach(self, node: GraphNode) -> None:
        """Store ``node.mirror`` in its parent's mirror."""
        parent = node.parent
        if parent is None:
            return
        target = parent.mirror
        kind = parent.kind
        if kind in (Kind.SEQUENCE, Kind.MAPPING):
            target[node.key] = node.mirror
        elif kind is Kind.SET:
            target.add(node.mirror)
        elif kind is Kind.RECORD:
            try:
                object.__setattr__(target, node.key, node.mirror)
            except AttributeError:
                # computed properties without a setter
                logger.debug("clone.read_only_field", owner=type(target).__name__, field=node.key)


def clone(value: Any, options: Optional[CloneOptions] = None, **kwargs) -> Any:
    """Convenience wrapper: ``Clone(options).clone(value)``."""
    if options is None:
        options = CloneOptions(**kwargs)
    return Clone(options).clone(value)
