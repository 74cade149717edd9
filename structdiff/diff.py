"""
structdiff.diff — Compute the Changes that turn one graph into another.

    changes = diff(left, right)
    result = patch(left, changes)      # now equal(result, right)

Every inequality the comparator reports becomes one Change addressed by a
path into the left graph:

    not_equal  → Edit(path of the left value, right value)
    no_left    → Add(path of the right value, right value)
                 (insert-marked when the parent is a sequence)
    no_right   → Remove(path of the left value)

Changes are emitted in an order that keeps every later path valid while
the list is applied front to back (see structdiff.compare).
"""

from dataclasses import dataclass, field
from typing import Any, Optional

import structlog

from .clone import Clone
from .compare import CompareContext, Comparator, Outcome
from .kinds import Kind
from .options import DiffOptions
from .patch import Add, Change, Edit, PathSegment, Remove
from .util import content_hash
from .visit import GraphNode, VisitResult

logger = structlog.get_logger()


@dataclass
class DiffContext(CompareContext):
    changes: list = field(default_factory=list)


class Diff(Comparator):
    """Concrete diff algorithm."""

    def __init__(self, options: Optional[DiffOptions] = None):
        options = options or DiffOptions()
        super().__init__(options)
        self.cloner = Clone(options.clone_options) if options.clone_options else None

    def create_context(self) -> DiffContext:
        base = super().create_context()
        return DiffContext(refs=base.refs)

    def diff(self, left: Any, right: Any) -> list[Change]:
        ctx = self.create_context()
        self.compare(GraphNode(value=left), GraphNode(value=right), ctx)
        logger.debug("diff.complete", changes=len(ctx.changes))
        return ctx.changes

    # ── paths ───────────────────────────────────────────────────────

    def make_path(self, node: GraphNode, insert: bool = False) -> tuple:
        """Path from the root to ``node``; ``insert`` marks a sequence terminal."""
        segments = []
        terminal = True
        while node.parent is not None:
            parent = node.parent
            kind = parent.kind
            if kind is Kind.SET:
                if self.strict_set_ordering and node.position is not None:
                    key = node.position
                else:
                    key = content_hash(node.value)
            else:
                key = node.key
            segments.append(PathSegment(kind, key, insert and terminal and kind is Kind.SEQUENCE))
            terminal = False
            node = parent
        return tuple(reversed(segments))

    def _embed(self, value: Any) -> Any:
        if self.cloner is None:
            return value
        return self.cloner.clone(value)

    # ── outcome hooks ───────────────────────────────────────────────

    def not_equal(self, ctx: DiffContext, left: GraphNode, right: GraphNode,
                  outcome: Outcome) -> VisitResult:
        if ctx.searching:
            return super().not_equal(ctx, left, right, outcome)
        ctx.result = outcome
        ctx.changes.append(Edit(self.make_path(left), self._embed(right.value)))
        return True

    def no_left(self, ctx: DiffContext, right: GraphNode) -> VisitResult:
        if ctx.searching:
            return super().no_left(ctx, right)
        ctx.result = Outcome.NO_LEFT
        ctx.changes.append(Add(self.make_path(right, insert=True), self._embed(right.value)))
        return True

    def no_right(self, ctx: DiffContext, left: GraphNode) -> VisitResult:
        if ctx.searching:
            return super().no_right(ctx, left)
        ctx.result = Outcome.NO_RIGHT
        ctx.changes.append(Remove(self.make_path(left)))
        return True


def diff(left: Any, right: Any, options: Optional[DiffOptions] = None, **kwargs) -> list[Change]:
    """Convenience wrapper: ``Diff(options).diff(left, right)``."""
    if options is None:
        options = DiffOptions(**kwargs)
    return Diff(options).diff(left, right)
