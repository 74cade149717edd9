"""
structdiff.compare — The dual-graph comparator.

Walks two graphs in lockstep and reports an Outcome for every node pair
through four hooks that the concrete algorithms override:

    are_equal(ctx, left, right, outcome)   SAME or EQUAL
    not_equal(ctx, left, right, outcome)   NOT_EQUAL, LESS, GREATER
    no_left(ctx, right)                    right has no left counterpart
    no_right(ctx, left)                    left has no right counterpart

Equal stops at the first inequality; Diff records a Change and keeps going.


PER-PAIR ALGORITHM
══════════════════

    compare(left, right):
      1. both absent → SAME;  one absent → no_left / no_right
      2. positions differ (strict ordering modes) → NOT_EQUAL
      3. same object → SAME, don't descend
      4. kinds differ → loose == (opt-in) or NOT_EQUAL
      5. container kind → pair the children:
            keys only in left  → no_right
            keys only in right → no_left
            shared keys        → compare(left child, right child)
      6. leaf kind → kind-specific rule

Children are always emitted so that applying the resulting Changes in
order never invalidates a later Change's path:

    SET       shared members visited tail-first
    SEQUENCE  strict: left indexes from the tail to the head, then
                      surplus right indexes ascending
              lax:    first-fit matching (below), then
                        matched pairs     descending left index
                        removals          descending left index
                        additions         ascending right index


LAX SEQUENCE MATCHING
═════════════════════

For each left element in index order, scan the not-yet-consumed right
elements of the same kind and take the first one a *search* comparison
finds equal.  A search records its outcome separately and never touches
the enclosing result.  This is a one-pass first-fit heuristic, not a
minimum-edit alignment:

    [1, 2, 3] vs [2, 2, 3]
        1 → no match          → removed (left 0)
        2 → right 0           → paired
        3 → right 2           → paired
        right 1 unconsumed    → added
"""

import locale
from dataclasses import dataclass
from enum import Enum
from typing import Any, NamedTuple, Optional

import structlog

from .errors import UsageError
from .kinds import Kind
from .options import CompareOptions
from .visit import NO_KEY, GraphNode, VisitResult, Visitor, VisitorContext, halted

logger = structlog.get_logger()


class Outcome(Enum):
    """Result of comparing one node pair."""
    SAME = "same"            # same object
    EQUAL = "equal"          # equal value, distinct object
    LESS = "less"
    GREATER = "greater"
    NOT_EQUAL = "not_equal"
    NO_LEFT = "no_left"      # only the right side has a value
    NO_RIGHT = "no_right"    # only the left side has a value

    @property
    def is_equal(self) -> bool:
        return self in (Outcome.SAME, Outcome.EQUAL)


class NodePair(NamedTuple):
    """Two nodes of the same kind travelling down the comparison together."""
    left: GraphNode
    right: GraphNode


@dataclass
class CompareContext(VisitorContext):
    result: Optional[Outcome] = None
    # True only while a lax-ordering search comparison is running.
    searching: bool = False
    search_result: Optional[Outcome] = None


def _safe_eq(a: Any, b: Any) -> bool:
    try:
        return bool(a == b)
    except (TypeError, ValueError) as exc:
        logger.debug("compare.eq_unsupported", left_type=type(a).__name__,
                     right_type=type(b).__name__, error=str(exc))
        return False


def _ordering(lt: bool, gt: bool) -> Outcome:
    if lt:
        return Outcome.LESS
    if gt:
        return Outcome.GREATER
    return Outcome.EQUAL


def _compare_strings(a: str, b: str) -> Outcome:
    try:
        c = locale.strcoll(a, b)
    except ValueError:
        # strcoll rejects embedded NUL characters
        return _ordering(a < b, a > b)
    return _ordering(c < 0, c > 0)


def _compare_timestamps(a: Any, b: Any) -> Outcome:
    try:
        return _ordering(a < b, a > b)
    except TypeError:
        # naive vs aware, or date vs datetime
        return Outcome.NOT_EQUAL


def _compare_patterns(a: Any, b: Any) -> Outcome:
    if (a.pattern, a.flags) == (b.pattern, b.flags):
        return Outcome.EQUAL
    return Outcome.NOT_EQUAL


def _compare_bytes(a: Any, b: Any) -> Outcome:
    va, vb = memoryview(a), memoryview(b)
    if va.nbytes != vb.nbytes:
        return Outcome.NOT_EQUAL
    if va.tobytes() == vb.tobytes():
        return Outcome.EQUAL
    return Outcome.NOT_EQUAL


class Comparator(Visitor):
    """Abstract comparison of two graphs.  See the module docstring."""

    _COMPARE = {
        Kind.RECORD: "compare_record",
        Kind.MAPPING: "compare_mapping",
        Kind.SET: "compare_set",
        Kind.SEQUENCE: "compare_sequence",
    }

    def __init__(self, options: Optional[CompareOptions] = None):
        options = options or CompareOptions()
        super().__init__(options)
        self.loose_equality = options.loose_equality
        self.epsilon = options.epsilon
        self.lax_array_ordering = options.lax_array_ordering
        self.strict_map_ordering = options.strict_map_ordering
        self.strict_set_ordering = options.strict_set_ordering

    def create_context(self) -> CompareContext:
        base = super().create_context()
        return CompareContext(refs=base.refs)

    def visit(self, node: GraphNode, ctx: VisitorContext) -> VisitResult:
        raise UsageError("a comparator walks node pairs; call compare(left, right, ctx)")

    # ── entry point ─────────────────────────────────────────────────

    def compare(self, left: Optional[GraphNode], right: Optional[GraphNode],
                ctx: CompareContext) -> VisitResult:
        """Compare one node pair (either side may be absent)."""
        if left is None:
            if right is None:
                return self.are_equal(ctx, left, right, Outcome.SAME)
            return self.no_left(ctx, right)
        if right is None:
            return self.no_right(ctx, left)

        if left.position != right.position:
            return self.not_equal(ctx, left, right, Outcome.NOT_EQUAL)
        if left.value is right.value:
            return self.are_equal(ctx, left, right, Outcome.SAME)

        if self.classify(left) is self.classify(right):
            return self.compare_pair(NodePair(left, right), ctx)
        if self.loose_equality and _safe_eq(left.value, right.value):
            return self.are_equal(ctx, left, right, Outcome.EQUAL)
        return self.not_equal(ctx, left, right, Outcome.NOT_EQUAL)

    def compare_pair(self, pair: NodePair, ctx: CompareContext) -> VisitResult:
        """Dispatch a same-kind pair to its container or leaf comparison."""
        name = self._COMPARE.get(pair.right.kind)
        if name is None:
            return self.compare_leaves(pair, ctx)
        if ctx.refs is not None:
            ref = (id(pair.left.value), id(pair.right.value))
            if ref in ctx.refs:
                return False
            ctx.refs[ref] = pair
        return getattr(self, name)(pair, ctx)

    # ── leaves ──────────────────────────────────────────────────────

    def compare_numbers(self, a: Any, b: Any) -> Outcome:
        a_nan, b_nan = a != a, b != b
        if a_nan or b_nan:
            return Outcome.EQUAL if a_nan and b_nan else Outcome.NOT_EQUAL
        if a == b:
            return Outcome.EQUAL
        try:
            delta = abs(a - b)
        except (TypeError, OverflowError):
            # e.g. Decimal vs float, or an int too large for a float
            try:
                delta = abs(float(a) - float(b))
            except OverflowError:
                delta = None
        if delta is not None and delta < self.epsilon:
            return Outcome.EQUAL
        return _ordering(a < b, a > b)

    def compare_scalars(self, a: Any, b: Any) -> Outcome:
        if a is b:
            return Outcome.SAME
        if self.loose_equality and _safe_eq(a, b):
            return Outcome.EQUAL
        if type(a) is type(b) and _safe_eq(a, b):
            return Outcome.EQUAL
        return Outcome.NOT_EQUAL

    def compare_leaves(self, pair: NodePair, ctx: CompareContext) -> VisitResult:
        left, right = pair
        kind = right.kind
        a, b = left.value, right.value
        if kind is Kind.STRING:
            outcome = _compare_strings(a, b)
        elif kind is Kind.NUMBER:
            outcome = self.compare_numbers(a, b)
        elif kind is Kind.TIMESTAMP:
            outcome = _compare_timestamps(a, b)
        elif kind is Kind.PATTERN:
            outcome = _compare_patterns(a, b)
        elif kind in (Kind.VIEW, Kind.BUFFER):
            outcome = _compare_bytes(a, b)
        else:
            outcome = self.compare_scalars(a, b)

        if outcome.is_equal:
            return self.are_equal(ctx, left, right, outcome)
        return self.not_equal(ctx, left, right, outcome)

    # ── keyed containers ────────────────────────────────────────────

    def compare_record(self, pair: NodePair, ctx: CompareContext) -> VisitResult:
        # Field order never matters for records.
        return self._compare_keyed(pair, ctx, strict=False)

    def compare_mapping(self, pair: NodePair, ctx: CompareContext) -> VisitResult:
        return self._compare_keyed(pair, ctx, strict=self.strict_map_ordering)

    def _compare_keyed(self, pair: NodePair, ctx: CompareContext, strict: bool) -> VisitResult:
        left, right = pair
        left_keys = self.child_keys(left)
        right_keys = self.child_keys(right)
        left_index = {k: i for i, k in enumerate(left_keys)}
        right_index = {k: i for i, k in enumerate(right_keys)}

        shared = [k for k in left_keys if k in right_index]
        removed = [k for k in left_keys if k not in right_index]
        added = [k for k in right_keys if k not in left_index]
        # Ordering only counts when membership is identical.
        strict = strict and not removed and not added

        for key in removed:
            result = self.no_right(ctx, self.make_child(left, self.child_value(left, key), key))
            if halted(result):
                return result
        for key in added:
            result = self.no_left(ctx, self.make_child(right, self.child_value(right, key), key))
            if halted(result):
                return result
        for key in shared:
            result = self.compare(
                self.make_child(left, self.child_value(left, key), key,
                                left_index[key] if strict else None),
                self.make_child(right, self.child_value(right, key), key,
                                right_index[key] if strict else None),
                ctx,
            )
            if halted(result):
                return result
        return False

    # ── sets ────────────────────────────────────────────────────────

    def compare_set(self, pair: NodePair, ctx: CompareContext) -> VisitResult:
        left, right = pair
        left_members = list(left.value)
        right_members = list(right.value)
        shared = [v for v in left_members if v in right.value]
        removed = [v for v in left_members if v not in right.value]
        added = [v for v in right_members if v not in left.value]
        strict = self.strict_set_ordering and not removed and not added
        right_index = {v: i for i, v in enumerate(right_members)} if strict else {}

        for member in removed:
            result = self.no_right(ctx, self.make_child(left, member))
            if halted(result):
                return result
        for member in added:
            result = self.no_left(ctx, self.make_child(right, member))
            if halted(result):
                return result
        # Re-keying a set member is a delete-then-append, so work tail-first.
        for i in range(len(shared) - 1, -1, -1):
            member = shared[i]
            result = self.compare(
                self.make_child(left, member, NO_KEY, i if strict else None),
                self.make_child(right, member, NO_KEY, right_index[member] if strict else None),
                ctx,
            )
            if halted(result):
                return result
        return False

    # ── sequences ───────────────────────────────────────────────────

    def _elements(self, node: GraphNode) -> list[GraphNode]:
        lax = self.lax_array_ordering
        elements = []
        for i, item in enumerate(node.value):
            child = self.make_child(node, item, i, None if lax else i)
            self.classify(child)
            elements.append(child)
        return elements

    def compare_sequence(self, pair: NodePair, ctx: CompareContext) -> VisitResult:
        left_elems = self._elements(pair.left)
        right_elems = self._elements(pair.right)
        if self.lax_array_ordering:
            return self._compare_unordered(left_elems, right_elems, ctx)

        # Tail first, so removals never shift an index not yet visited.
        for i in range(len(left_elems) - 1, -1, -1):
            result = self.compare(
                left_elems[i],
                right_elems[i] if i < len(right_elems) else None,
                ctx,
            )
            if halted(result):
                return result
        # Surplus right elements are appended in order.
        for i in range(len(left_elems), len(right_elems)):
            result = self.compare(None, right_elems[i], ctx)
            if halted(result):
                return result
        return False

    def _compare_unordered(self, left_elems: list[GraphNode], right_elems: list[GraphNode],
                           ctx: CompareContext) -> VisitResult:
        consumed: set[int] = set()
        shared: list[tuple[int, int]] = []
        removed: list[int] = []
        for i, elem in enumerate(left_elems):
            j = self.find_match(elem, right_elems, consumed, ctx)
            if j < 0:
                removed.append(i)
            else:
                shared.append((i, j))
        added = [j for j in range(len(right_elems)) if j not in consumed]

        # Already known equal; compared again so that are_equal() fires.
        for i, j in sorted(shared, reverse=True):
            result = self.compare(left_elems[i], right_elems[j], ctx)
            if halted(result):
                return result
        for i in reversed(removed):
            result = self.no_right(ctx, left_elems[i])
            if halted(result):
                return result
        for j in added:
            result = self.no_left(ctx, right_elems[j])
            if halted(result):
                return result
        return False

    def find_match(self, elem: GraphNode, candidates: list[GraphNode], consumed: set[int],
                   ctx: CompareContext) -> int:
        """Index of the first unconsumed candidate equal to ``elem``, or -1."""
        for candidate in candidates:
            if candidate.key in consumed or candidate.kind is not elem.kind:
                continue
            if self.search(elem, candidate, ctx):
                consumed.add(candidate.key)
                return candidate.key
        return -1

    def search(self, left: GraphNode, right: GraphNode, ctx: CompareContext) -> bool:
        """
        Compare a pair without disturbing the enclosing comparison.

        A pair that produced no outcome at all (e.g. two empty containers)
        counts as equal.
        """
        saved = (ctx.searching, ctx.search_result)
        mark = len(ctx.refs) if ctx.refs is not None else 0
        ctx.searching, ctx.search_result = True, None
        try:
            self.compare(left, right, ctx)
            return ctx.search_result is None or ctx.search_result.is_equal
        finally:
            ctx.searching, ctx.search_result = saved
            if ctx.refs is not None:
                while len(ctx.refs) > mark:
                    ctx.refs.popitem()

    # ── outcome hooks ───────────────────────────────────────────────

    @staticmethod
    def _record(ctx: CompareContext, outcome: Outcome) -> None:
        if ctx.searching:
            ctx.search_result = outcome
        else:
            ctx.result = outcome

    def are_equal(self, ctx: CompareContext, left: Optional[GraphNode],
                  right: Optional[GraphNode], outcome: Outcome) -> VisitResult:
        """Both sides equal; never descend further.  Only the first equal outcome sticks."""
        if ctx.searching:
            if ctx.search_result is None:
                ctx.search_result = outcome
        elif ctx.result is None:
            ctx.result = outcome
        return False

    def not_equal(self, ctx: CompareContext, left: GraphNode, right: GraphNode,
                  outcome: Outcome) -> VisitResult:
        """Default: record and stop the walk."""
        self._record(ctx, outcome)
        return left

    def no_left(self, ctx: CompareContext, right: GraphNode) -> VisitResult:
        self._record(ctx, Outcome.NO_LEFT)
        return right

    def no_right(self, ctx: CompareContext, left: GraphNode) -> VisitResult:
        self._record(ctx, Outcome.NO_RIGHT)
        return left
