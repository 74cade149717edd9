"""
structdiff.patch — Reversible, path-addressed edit operations.

A diff is a list of Changes.  Each Change names a path from the root of
the left-hand graph to the value it touches:

    Add(path, value)     insert (sequences, insert-marked segment) or set
    Remove(path)         delete the value at path
    Edit(path, value)    replace the value at path

    change.apply(target)  → Undo
    undo.undo()           → Redo      (target restored exactly)
    redo.redo()           → Undo      (change applied again)

Each path segment carries the kind of the container it steps through and
the key used in it:

    RECORD    attribute name
    MAPPING   mapping key
    SEQUENCE  index            (insert=True on Add: splice, don't overwrite)
    SET       content hash of the member, or its position under strict
              set ordering

apply() resolves the whole path before it mutates anything, so a failing
Change raises PatchError and leaves the target untouched.  With
``materialize=True`` missing intermediate containers are created (with
the kind the next segment names) instead of failing; undo then restores
the touched value but leaves those containers in place.
"""

import copy
from dataclasses import dataclass
from types import SimpleNamespace
from typing import Any, Callable, Optional

import structlog

from .discover import own_names
from .errors import PatchError, UsageError
from .kinds import Kind, classify
from .util import content_hash

logger = structlog.get_logger()

Revert = Callable[[], None]


class _Missing:
    __slots__ = ()

    def __repr__(self) -> str:
        return "MISSING"


_MISSING = _Missing()


@dataclass(frozen=True)
class PathSegment:
    """One step of a path: the container's kind and the key used in it."""
    kind: Kind
    key: Any
    insert: bool = False

    def __repr__(self) -> str:
        marker = "+" if self.insert else ""
        return f"{self.kind.value}[{marker}{self.key!r}]"


def format_path(path: tuple) -> str:
    return "/".join(f"{'+' if s.insert else ''}{s.key}" for s in path) or "(root)"


# ═══════════════════════════════════════════════════════════════════
#  CONTAINER PRIMITIVES
# ═══════════════════════════════════════════════════════════════════

def _empty(kind: Kind) -> Any:
    if kind is Kind.RECORD:
        return SimpleNamespace()
    if kind is Kind.MAPPING:
        return {}
    if kind is Kind.SEQUENCE:
        return []
    if kind is Kind.SET:
        return set()
    raise UsageError(f"cannot materialize a container of kind {kind.value}")


def _find_member(container: set, key: Any) -> Any:
    if isinstance(key, int):
        members = list(container)
        return members[key] if 0 <= key < len(members) else _MISSING
    for member in container:
        if content_hash(member) == key:
            return member
    return _MISSING


def _own_field(obj: Any, name: Any) -> Any:
    """An instance field or property value; class-level defaults don't count."""
    if name in own_names(obj) or isinstance(getattr(type(obj), name, None), property):
        return getattr(obj, name, _MISSING)
    return _MISSING


def _lookup(container: Any, seg: PathSegment) -> Any:
    """The value at ``seg`` in ``container``, or _MISSING."""
    if seg.kind is Kind.RECORD:
        return _own_field(container, seg.key)
    if seg.kind is Kind.MAPPING:
        return container.get(seg.key, _MISSING)
    if seg.kind is Kind.SEQUENCE:
        idx = seg.key
        return container[idx] if isinstance(idx, int) and 0 <= idx < len(container) else _MISSING
    if seg.kind is Kind.SET:
        return _find_member(container, seg.key)
    return _MISSING


def _pad(container: list, idx: int) -> None:
    if idx > len(container):
        container.extend([None] * (idx - len(container)))


def _hashable(value: Any) -> bool:
    try:
        hash(value)
    except TypeError:
        return False
    return True


def _put(container: Any, seg: PathSegment, value: Any) -> Revert:
    """Set (or create) the value at ``seg``.  Returns the inverse operation."""
    prev = _lookup(container, seg)
    key = seg.key
    if seg.kind is Kind.RECORD:
        setattr(container, key, value)
        if prev is _MISSING:
            return lambda: delattr(container, key)
        return lambda: setattr(container, key, prev)
    if seg.kind is Kind.MAPPING:
        container[key] = value
        if prev is _MISSING:
            return lambda: container.pop(key)
        return lambda: container.__setitem__(key, prev)
    if seg.kind is Kind.SEQUENCE:
        if prev is _MISSING:
            _pad(container, key)
            container.append(value)
            return lambda: container.pop(key)
        container[key] = value
        return lambda: container.__setitem__(key, prev)
    # SET
    if prev is not _MISSING:
        container.discard(prev)
    existed = value in container
    container.add(value)

    def revert_set() -> None:
        if not existed:
            container.discard(value)
        if prev is not _MISSING:
            container.add(prev)
    return revert_set


def _insert_at(container: list, idx: int, value: Any, pad: bool) -> Revert:
    # Past-the-end inserts append, as list.insert does, unless padding.
    if pad:
        _pad(container, idx)
    idx = min(idx, len(container))
    container.insert(idx, value)
    return lambda: container.pop(idx)


def _delete(container: Any, seg: PathSegment, prev: Any) -> Revert:
    key = seg.key
    if seg.kind is Kind.RECORD:
        delattr(container, key)
        return lambda: setattr(container, key, prev)
    if seg.kind is Kind.MAPPING:
        position = list(container).index(key)
        del container[key]

        def revert_mapping() -> None:
            # Restore the key at its original position.
            items = list(container.items())
            items.insert(position, (key, prev))
            container.clear()
            container.update(items)
        return revert_mapping
    if seg.kind is Kind.SEQUENCE:
        del container[key]
        return lambda: container.insert(key, prev)
    container.discard(prev)
    return lambda: container.add(prev)


# ═══════════════════════════════════════════════════════════════════
#  UNDO / REDO TOKENS
# ═══════════════════════════════════════════════════════════════════

class Undo:
    """Returned by Change.apply(); reverses exactly that application."""

    def __init__(self, change: "Change", target: Any, materialize: bool, revert: Revert,
                 previous_value: Any = None):
        self.change = change
        self.target = target
        self.materialize = materialize
        self.previous_value = previous_value
        self._revert = revert
        self._done = False

    def undo(self) -> "Redo":
        if self._done:
            raise UsageError("this change has already been undone")
        self._revert()
        self._done = True
        return Redo(self.change, self.target, self.materialize)

    def __repr__(self) -> str:
        return f"Undo({self.change!r})"


class Redo:
    """Returned by Undo.undo(); applies the change again."""

    def __init__(self, change: "Change", target: Any, materialize: bool):
        self.change = change
        self.target = target
        self.materialize = materialize
        self._done = False

    def redo(self) -> Undo:
        if self._done:
            raise UsageError("this change has already been redone")
        undo = self.change.apply(self.target, self.materialize)
        self._done = True
        return undo

    def __repr__(self) -> str:
        return f"Redo({self.change!r})"


# ═══════════════════════════════════════════════════════════════════
#  CHANGES
# ═══════════════════════════════════════════════════════════════════

@dataclass
class Change:
    """Base class of the edit operations.  Not instantiated directly."""
    path: tuple

    op = "change"

    def apply(self, target: Any, materialize: bool = False) -> Undo:
        raise NotImplementedError

    def to_dict(self) -> dict[str, Any]:
        """Plain-data description (values embedded as-is)."""
        return {
            "op": self.op,
            "path": [[s.kind.value, s.key, s.insert] for s in self.path],
        }

    # ── path resolution ─────────────────────────────────────────────

    def _fail(self, message: str, index: Optional[int] = None, cause: Any = None) -> PatchError:
        return PatchError(f"{self.op} at {format_path(self.path)}: {message}",
                          path=self.path, segment_index=index, cause=cause)

    def _check_kind(self, container: Any, index: int) -> None:
        seg = self.path[index]
        actual = classify(container)
        if actual is not seg.kind:
            raise self._fail(f"expected a {seg.kind.value}, found a {actual.value}", index)

    def _resolve(self, target: Any, materialize: bool) -> tuple[Any, int]:
        """
        Walk every segment but the last.

        Returns (container, depth): the deepest existing container and how
        many segments were walked.  depth < len(path) - 1 means the rest of
        the chain is missing and must be materialized.
        """
        container = target
        last = len(self.path) - 1
        for i in range(last):
            self._check_kind(container, i)
            child = _lookup(container, self.path[i])
            if child is _MISSING or (materialize and child is None):
                if not materialize:
                    raise self._fail("nothing to step into", i)
                for j in range(i, last):
                    if self.path[j].kind is Kind.SET:
                        raise self._fail("cannot materialize a container inside a set", j)
                return container, i
            container = child
        self._check_kind(container, last)
        return container, last

    def _materialize(self, container: Any, depth: int) -> Any:
        for i in range(depth, len(self.path) - 1):
            child = _empty(self.path[i + 1].kind)
            _put(container, self.path[i], child)
            container = child
        return container

    def _parent(self, target: Any, materialize: bool) -> tuple[Any, bool]:
        """Resolve the parent of the terminal segment; (container, is_real)."""
        container, depth = self._resolve(target, materialize)
        if depth == len(self.path) - 1:
            return container, True
        # Validate against a stand-in; the real chain is built after the checks.
        return (container, depth), False

    def _realize(self, parent: Any, real: bool) -> Any:
        if real:
            return parent
        container, depth = parent
        return self._materialize(container, depth)

    def __repr__(self) -> str:
        return f"{self.op.upper()} at {format_path(self.path)}"


@dataclass(repr=False)
class Add(Change):
    """Add ``value`` at ``path``; an insert-marked sequence segment splices."""
    value: Any = None

    op = "add"

    def apply(self, target: Any, materialize: bool = False) -> Undo:
        if not self.path:
            raise self._fail("an add needs a non-empty path")
        seg = self.path[-1]
        parent, real = self._parent(target, materialize)
        probe = parent if real else _empty(seg.kind)

        if seg.kind is Kind.SEQUENCE:
            if not isinstance(seg.key, int) or seg.key < 0:
                raise self._fail(f"bad sequence index {seg.key!r}", len(self.path) - 1)
            if not seg.insert and seg.key > len(probe) and not materialize:
                raise self._fail(f"index {seg.key} out of range", len(self.path) - 1)
        elif seg.kind is Kind.SET and not _hashable(self.value):
            raise self._fail("set members must be hashable", len(self.path) - 1)

        container = self._realize(parent, real)
        try:
            if seg.kind is Kind.SEQUENCE and seg.insert:
                revert = _insert_at(container, seg.key, self.value, materialize)
            else:
                revert = _put(container, seg, self.value)
        except AttributeError as exc:
            raise self._fail("attribute is read-only", len(self.path) - 1, exc) from exc
        return Undo(self, target, materialize, revert)

    def to_dict(self) -> dict[str, Any]:
        return {**super().to_dict(), "value": self.value}

    def __repr__(self) -> str:
        return f"{super().__repr__()}: {self.value!r}"


@dataclass(repr=False)
class Remove(Change):
    """Remove the value at ``path``."""

    op = "remove"

    def apply(self, target: Any, materialize: bool = False) -> Undo:
        if not self.path:
            raise self._fail("the root cannot be removed")
        seg = self.path[-1]
        # Nothing to remove inside a container that does not exist.
        parent, _ = self._parent(target, False)
        prev = _lookup(parent, seg)
        if prev is _MISSING:
            raise self._fail("nothing to remove", len(self.path) - 1)
        try:
            revert = _delete(parent, seg, prev)
        except AttributeError as exc:
            raise self._fail("attribute cannot be deleted", len(self.path) - 1, exc) from exc
        return Undo(self, target, materialize, revert, previous_value=prev)


def replaceable_in_place(target: Any, value: Any) -> bool:
    """True if a root Edit can swap ``target``'s contents for ``value``'s."""
    kind = classify(target)
    if classify(value) is not kind:
        return False
    if kind in (Kind.MAPPING, Kind.SEQUENCE, Kind.SET):
        return True
    if kind is Kind.RECORD:
        return hasattr(target, "__dict__") and hasattr(value, "__dict__")
    return isinstance(target, bytearray)


def _swap_root(target: Any, value: Any) -> Optional[Revert]:
    """Replace the contents of a mutable root in place; None if impossible."""
    if not replaceable_in_place(target, value):
        return None
    kind = classify(target)
    if kind is Kind.MAPPING:
        saved = list(target.items())
        target.clear()
        target.update(value)
        return lambda: (target.clear(), target.update(saved))
    if kind is Kind.SEQUENCE:
        saved = target[:]
        target[:] = value
        return lambda: target.__setitem__(slice(None), saved)
    if kind is Kind.SET:
        saved = set(target)
        target.clear()
        target.update(value)
        return lambda: (target.clear(), target.update(saved))
    if kind is Kind.RECORD:
        saved = dict(target.__dict__)
        target.__dict__.clear()
        target.__dict__.update(value.__dict__)
        return lambda: (target.__dict__.clear(), target.__dict__.update(saved))
    saved = bytes(target)
    target[:] = value
    return lambda: target.__setitem__(slice(None), saved)


@dataclass(repr=False)
class Edit(Change):
    """Replace the value at ``path`` with ``value``."""
    value: Any = None

    op = "edit"

    def apply(self, target: Any, materialize: bool = False) -> Undo:
        if not self.path:
            previous = copy.copy(target)
            revert = _swap_root(target, self.value)
            if revert is None:
                raise self._fail(f"cannot replace a {classify(target).value} root in place")
            return Undo(self, target, materialize, revert, previous_value=previous)

        seg = self.path[-1]
        parent, real = self._parent(target, materialize)
        prev = _lookup(parent, seg) if real else _MISSING
        if prev is _MISSING and not materialize:
            raise self._fail("nothing to edit", len(self.path) - 1)
        if seg.kind is Kind.SET and not _hashable(self.value):
            raise self._fail("set members must be hashable", len(self.path) - 1)

        container = self._realize(parent, real)
        try:
            revert = _put(container, seg, self.value)
        except AttributeError as exc:
            raise self._fail("attribute is read-only", len(self.path) - 1, exc) from exc
        return Undo(self, target, materialize, revert,
                    previous_value=None if prev is _MISSING else prev)

    def to_dict(self) -> dict[str, Any]:
        return {**super().to_dict(), "value": self.value}

    def __repr__(self) -> str:
        return f"{super().__repr__()}: {self.value!r}"


# ═══════════════════════════════════════════════════════════════════
#  PATCH (apply a whole change list)
# ═══════════════════════════════════════════════════════════════════

def patch(target: Any, changes: list[Change], materialize: bool = False) -> Any:
    """
    Apply ``changes`` in order and return the resulting root.

    The root is returned because a root Edit on an immutable value (or a
    change of kind) cannot happen in place:

        patch(1, diff(1, 2))             → 2
        patch([1, 2], diff([1, 2], [2])) → the same list, now [2]

    If any change fails, the ones already applied are undone and the
    PatchError is re-raised.
    """
    undos: list[Undo] = []
    root = target
    try:
        for change in changes:
            if not change.path and isinstance(change, Edit) and not replaceable_in_place(root, change.value):
                root = change.value
                continue
            undos.append(change.apply(root, materialize))
    except PatchError as exc:
        for undo in reversed(undos):
            undo.undo()
        logger.warning("patch.rolled_back", applied=len(undos), total=len(changes), error=str(exc))
        raise
    return root
