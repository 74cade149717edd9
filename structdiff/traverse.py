"""
structdiff.traverse — Walk one graph, invoking a callback for every node.

The callback receives ``(node, ctx)`` and its return value steers the walk:

    True or None    descend into the node's children (if any)
    False           skip the children, continue with the next sibling
    list of nodes   walk exactly these nodes as the children instead
    a callable      descend; the callable is invoked once before the
                    children and once after them, receiving the first
                    call's result
    STOP            abort; traverse() returns the node that stopped it
"""

from dataclasses import dataclass
from typing import Any, Callable, Optional

from .options import TraverseOptions
from .visit import ChildVisitor, GraphNode, VisitResult, Visitor, VisitorContext, halted


class _Stop:
    __slots__ = ()

    def __repr__(self) -> str:
        return "STOP"


STOP = _Stop()

TraverseCallback = Callable[[GraphNode, "TraverseContext"], Any]


@dataclass
class TraverseContext(VisitorContext):
    callback: Optional[TraverseCallback] = None


class Traverse(Visitor):
    """Concrete single-graph walk."""

    def __init__(self, options: Optional[TraverseOptions] = None):
        super().__init__(options or TraverseOptions())

    def create_context(self, callback: Optional[TraverseCallback] = None) -> TraverseContext:
        base = super().create_context()
        return TraverseContext(refs=base.refs, callback=callback)

    def traverse(self, value: Any, callback: Optional[TraverseCallback] = None) -> Optional[GraphNode]:
        """
        Walk ``value``.  Returns None when the walk completed, or the node
        at which the callback returned STOP.
        """
        ctx = self.create_context(callback)
        result = self.visit(GraphNode(value=value), ctx)
        if halted(result):
            return result
        return None

    def visit_node(self, node: GraphNode, ctx: VisitorContext,
                   children: Optional[ChildVisitor] = None) -> VisitResult:
        decision: Any = True
        if isinstance(ctx, TraverseContext) and ctx.callback is not None:
            decision = ctx.callback(node, ctx)
        if decision is None:
            decision = True
        if decision is STOP:
            return node

        # The callback named the children itself.
        if isinstance(decision, list):
            for child in decision:
                result = self.visit(child, ctx)
                if halted(result):
                    return result
            return False

        wrapper = None
        if callable(decision):
            wrapper = decision
            decision = True
        if decision and children is not None:
            first = wrapper() if wrapper else None
            try:
                return children()
            finally:
                if wrapper:
                    wrapper(first)
        return bool(decision)


def traverse(value: Any, callback: Optional[TraverseCallback] = None,
             options: Optional[TraverseOptions] = None, **kwargs) -> Optional[GraphNode]:
    """
    Convenience wrapper: ``Traverse(options).traverse(value, callback)``.

    Build a Traverse once if you walk many graphs with the same options.
    """
    if options is None:
        options = TraverseOptions(**kwargs)
    return Traverse(options).traverse(value, callback)
