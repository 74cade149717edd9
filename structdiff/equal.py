"""
structdiff.equal — Deep equality of two graphs.

    equal({"x": [1, 2]}, {"x": [1, 2]})                       → True
    equal([1, 2, 3], [3, 2, 1], lax_array_ordering=True)      → True
    equal({}, {})                                             → None

The comparison stops at the first inequality.  None means no outcome was
ever recorded (two distinct empty containers, for instance); treat it as
equal unless you care about the distinction.
"""

from typing import Any, Optional

from .compare import Comparator
from .options import EqualOptions
from .visit import GraphNode


class Equal(Comparator):
    """Concrete equality algorithm."""

    def __init__(self, options: Optional[EqualOptions] = None):
        super().__init__(options or EqualOptions())

    def equal(self, left: Any, right: Any) -> Optional[bool]:
        ctx = self.create_context()
        self.compare(GraphNode(value=left), GraphNode(value=right), ctx)
        if ctx.result is None:
            return None
        return ctx.result.is_equal


def equal(left: Any, right: Any, options: Optional[EqualOptions] = None, **kwargs) -> Optional[bool]:
    """
    Convenience wrapper: ``Equal(options).equal(left, right)``.

    Keyword arguments build the EqualOptions when ``options`` is omitted.
    """
    if options is None:
        options = EqualOptions(**kwargs)
    return Equal(options).equal(left, right)
