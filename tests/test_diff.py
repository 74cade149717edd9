"""
Test suite for structdiff diff and patch.

    §1  Diff of keyed values (mappings, records)
    §2  Diff of sequences (strict and lax ordering)
    §3  Diff of sets
    §4  Applying diffs (in place, onto an empty target, root changes)
    §5  Change mechanics (undo / redo, atomicity, errors)
"""

import sys
import os
import itertools
import math
import re
from dataclasses import dataclass
from datetime import datetime

import pytest

# Add parent to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from structdiff.clone import clone
from structdiff.diff import Diff, diff
from structdiff.equal import equal
from structdiff.errors import PatchError, UsageError
from structdiff.kinds import Kind
from structdiff.options import CloneOptions, DiffOptions
from structdiff.patch import Add, Edit, PathSegment, Remove, patch
from structdiff.util import content_hash


@dataclass
class Point:
    x: int
    y: int


@dataclass(frozen=True)
class FrozenPoint:
    x: int
    y: int


class WithDefault:
    colour = "red"


class Plain:
    def __init__(self, x):
        self.x = x


def ordered_set(*members):
    """A set whose iteration order follows insertion, for colliding members."""
    result = set()
    for member in members:
        result.add(member)
    return result


def key(name):
    return PathSegment(Kind.MAPPING, name)


def index(i, insert=False):
    return PathSegment(Kind.SEQUENCE, i, insert)


NESTED_ONE = {
    "noChange": "same",
    "levelOne": {"levelTwo": "value"},
    "arrayOne": [{"objValue": "value"}],
}
NESTED_TWO = {
    "noChange": "same",
    "levelOne": {"levelTwo": "another value"},
    "arrayOne": [{"objValue": "new value"}, {"objValue": "more value"}],
}


# ═══════════════════════════════════════════════════════════════════
#  §1  KEYED VALUES
# ═══════════════════════════════════════════════════════════════════

class TestDiffKeyed:

    def test_empty_mappings(self):
        assert diff({}, {}) == []

    def test_added_key(self):
        assert diff({}, {"other": "x"}) == [Add((key("other"),), "x")]

    def test_added_keys_in_right_order(self):
        d = diff({}, {"other": "property", "another": 13.13})
        assert d == [Add((key("other"),), "property"), Add((key("another"),), 13.13)]

    def test_removed_key(self):
        assert diff({"one": "property"}, {}) == [Remove((key("one"),))]

    def test_edited_key(self):
        assert diff({"key": None}, {"key": "v"}) == [Edit((key("key"),), "v")]

    def test_value_set_to_none(self):
        d = diff({"key": {"nested": "value"}}, {"key": None})
        assert d == [Edit((key("key"),), None)]

    def test_none_on_both_sides(self):
        assert diff({"date": None}, {"date": None}) == []

    def test_self_diff_is_empty(self):
        lhs = {"one": "property"}
        assert diff(lhs, lhs) == []

    def test_mapping_against_sequence_is_a_root_edit(self):
        assert diff({"one": "property"}, ["one"]) == [Edit((), ["one"])]

    KEYLESS = [
        [],
        {},
        datetime(2020, 1, 1),
        bytes(5),
        memoryview(bytearray(3)),
        None,
        re.compile("a"),
    ]

    @pytest.mark.parametrize("lhs,rhs", list(itertools.permutations(KEYLESS, 2)))
    def test_different_kinds_are_edits(self, lhs, rhs):
        d = diff({"key": lhs}, {"key": rhs})
        assert len(d) == 1
        assert isinstance(d[0], Edit)

    def test_changed_timestamp(self):
        d = diff({"key": datetime(1987, 8, 9)}, {"key": datetime(1994, 8, 24)})
        assert d == [Edit((key("key"),), datetime(1994, 8, 24))]

    def test_changed_buffer(self):
        lhs = bytearray(4)
        lhs[1] = 3
        d = diff({"key": lhs}, {"key": bytearray(4)})
        assert len(d) == 1 and isinstance(d[0], Edit)

    def test_nan(self):
        assert diff({"key": math.nan}, {"key": math.nan}) == []
        assert diff({"key": math.nan}, {"key": 0}) == [Edit((key("key"),), 0)]

    def test_record_field(self):
        d = diff(Point(1, 2), Point(1, 3))
        assert d == [Edit((PathSegment(Kind.RECORD, "y"),), 3)]

    def test_filtered_sequence_is_ignored(self):
        lhs = {
            "enhancement": "Filter/Ignore Keys?",
            "numero": 11,
            "submittedBy": "ericclemmons",
            "supportedBy": ["ericclemmons"],
            "status": "open",
        }
        rhs = {
            "enhancement": "Filter/Ignore Keys?",
            "numero": 11,
            "submittedBy": "ericclemmons",
            "supportedBy": ["ericclemmons", "TylerGarlick", "flitbit", "ergdev"],
            "status": "closed",
            "fixedBy": "flitbit",
        }

        d = diff(lhs, rhs, prop_filter=lambda owner, k: k != "supportedBy")
        assert [type(c) for c in d] == [Add, Edit]

        d = diff(lhs, rhs, prop_filter=lambda owner, k: k != "fixedBy")
        assert [type(c) for c in d] == [Add, Add, Add, Edit]
        assert [c.path for c in d[:3]] == [
            (key("supportedBy"), index(1, insert=True)),
            (key("supportedBy"), index(2, insert=True)),
            (key("supportedBy"), index(3, insert=True)),
        ]

    def test_nested_values(self):
        assert diff(NESTED_ONE, NESTED_ONE) == []
        assert len(diff(NESTED_ONE, NESTED_TWO)) == 3

        removed = diff(NESTED_ONE, {})
        assert len(removed) == 3
        assert all(isinstance(c, Remove) for c in removed)

        added = diff({}, NESTED_ONE)
        assert len(added) == 3
        assert all(isinstance(c, Add) for c in added)

    def test_strict_map_ordering_reports_moved_keys(self):
        d = diff({"a": 1, "b": 2}, {"b": 2, "a": 1}, strict_map_ordering=True)
        assert [type(c) for c in d] == [Edit, Edit]
        assert diff({"a": 1, "b": 2}, {"b": 2, "a": 1}) == []

    def test_circular_graphs(self):
        def make(leaf):
            g = {"leaf": leaf, "children": []}
            g["children"].append(g)
            return g

        assert diff(make(1), make(1), guard_circular_refs=True) == []
        assert diff(make(1), make(2), guard_circular_refs=True) == [Edit((key("leaf"),), 2)]

    def test_values_are_embedded_without_clone(self):
        rhs = {"a": [1]}
        assert diff({}, rhs)[0].value is rhs["a"]

    def test_clone_options_copy_embedded_values(self):
        rhs = {"a": [1]}
        d = diff({}, rhs, clone_options=CloneOptions())
        assert d[0].value == [1]
        assert d[0].value is not rhs["a"]


# ═══════════════════════════════════════════════════════════════════
#  §2  SEQUENCES
# ═══════════════════════════════════════════════════════════════════

class TestDiffSequences:

    def test_removals_run_tail_first(self):
        d = diff(["a", "a", "a"], ["a"])
        assert d == [Remove((index(2),)), Remove((index(1),))]

    def test_additions_are_insert_marked(self):
        d = diff([1], [1, 2, 3])
        assert d == [Add((index(1, insert=True),), 2), Add((index(2, insert=True),), 3)]

    def test_element_edit(self):
        assert diff([1, 2], [1, 5]) == [Edit((index(1),), 5)]

    def test_lax_permutation(self):
        assert diff([1, 2, 3], [1, 3, 2], lax_array_ordering=True) == []

    def test_lax_repeated_elements(self):
        assert diff([1, 1, 2], [1, 2, 1], lax_array_ordering=True) == []

    def test_lax_complex_objects(self):
        obj1 = {"foo": "bar", "faz": [1, "pie", {"food": "yum"}]}
        obj2 = {"faz": ["pie", {"food": "yum"}, 1], "foo": "bar"}
        assert diff(obj1, obj2, lax_array_ordering=True) == []

    def test_lax_empty_containers_match(self):
        assert diff([[], 1], [1, []], lax_array_ordering=True) == []

    def test_lax_first_fit(self):
        d = diff([1, 2, 3], [2, 2, 3], lax_array_ordering=True)
        assert d == [Remove((index(0),)), Add((index(1, insert=True),), 2)]

    def test_lax_diff_applies(self):
        lhs = [1, 2, 3]
        for change in diff(lhs, [2, 2, 3], lax_array_ordering=True):
            change.apply(lhs)
        assert lhs == [2, 2, 3]


# ═══════════════════════════════════════════════════════════════════
#  §3  SETS
# ═══════════════════════════════════════════════════════════════════

class TestDiffSets:

    def test_members_are_addressed_by_content_hash(self):
        d = diff({1, 2}, {2, 3})
        assert d == [
            Remove((PathSegment(Kind.SET, content_hash(1)),)),
            Add((PathSegment(Kind.SET, content_hash(3)),), 3),
        ]

    def test_set_diff_applies(self):
        lhs = {"tags": {"a", "b"}}
        result = patch(lhs, diff(lhs, {"tags": {"b", "c"}}))
        assert result == {"tags": {"b", "c"}}

    def test_equal_sets(self):
        assert diff({1, 2, 3}, {3, 2, 1}) == []

    def test_record_members_hash_by_fields(self):
        assert content_hash(Plain(1)) == content_hash(Plain(1))
        assert content_hash(Plain(1)) != content_hash(Plain(2))
        assert content_hash(Plain(1)) != content_hash(Point(1, 1))

    def test_record_member_removal_applies(self):
        first, second = Plain(1), Plain(2)
        lhs = {first, second}
        d = diff(lhs, {second})
        assert d == [Remove((PathSegment(Kind.SET, content_hash(Plain(1))),))]
        patch(lhs, d)
        assert lhs == {second}


class TestStrictSetOrdering:
    """8 and 16 share a hash slot, so insertion order decides iteration order."""

    def test_iteration_orders_differ(self):
        assert list(ordered_set(8, 16)) == [8, 16]
        assert list(ordered_set(16, 8)) == [16, 8]

    def test_equal_ignores_order_by_default(self):
        assert equal(ordered_set(8, 16), ordered_set(16, 8)) is True

    def test_equal_with_strict_ordering(self):
        assert equal(ordered_set(8, 16), ordered_set(16, 8), strict_set_ordering=True) is False
        assert equal(ordered_set(8, 16), ordered_set(8, 16), strict_set_ordering=True) is True

    def test_moved_members_are_position_keyed_edits(self):
        d = diff(ordered_set(8, 16), ordered_set(16, 8), strict_set_ordering=True)
        assert d == [
            Edit((PathSegment(Kind.SET, 1),), 16),
            Edit((PathSegment(Kind.SET, 0),), 8),
        ]

    def test_different_membership_falls_back_to_content_hash(self):
        d = diff({1, 2}, {2, 3}, strict_set_ordering=True)
        assert d == [
            Remove((PathSegment(Kind.SET, content_hash(1)),)),
            Add((PathSegment(Kind.SET, content_hash(3)),), 3),
        ]
        assert equal({1, 2}, {1, 2, 3}, strict_set_ordering=True) is False

    def test_position_keyed_edit_applies_and_undoes(self):
        target = ordered_set(8, 16)
        undo = Edit((PathSegment(Kind.SET, 0),), 99).apply(target)
        assert target == {16, 99}
        assert undo.previous_value == 8
        undo.undo()
        assert target == {8, 16}

    def test_position_out_of_range(self):
        with pytest.raises(PatchError):
            Edit((PathSegment(Kind.SET, 5),), 1).apply({1})


# ═══════════════════════════════════════════════════════════════════
#  §4  APPLYING DIFFS
# ═══════════════════════════════════════════════════════════════════

class TestApply:

    def test_nested_arrays_reordered(self):
        lhs = {
            "id": "Release",
            "phases": [
                {"id": "Phase1", "tasks": [{"id": "Task1"}, {"id": "Task2"}]},
                {"id": "Phase2", "tasks": [{"id": "Task3"}]},
            ],
        }
        rhs = {
            "id": "Release",
            "phases": [
                {"id": "Phase2", "tasks": [{"id": "Task3"}]},
                {"id": "Phase1", "tasks": [{"id": "Task1"}, {"id": "Task2"}]},
            ],
        }
        d = diff(lhs, rhs)
        assert len(d) == 6
        for change in d:
            change.apply(lhs)
        assert lhs == rhs

    def test_top_level_arrays(self):
        lhs = ["a", "a", "a"]
        for change in diff(lhs, ["a"]):
            change.apply(lhs)
        assert lhs == ["a"]

    def test_growing_array(self):
        lhs = [1]
        for change in diff(lhs, [1, 2, 3]):
            change.apply(lhs)
        assert lhs == [1, 2, 3]

    def test_record_fields(self):
        p = Point(1, 2)
        for change in diff(p, Point(5, 6)):
            change.apply(p)
        assert p == Point(5, 6)

    def test_materialize_onto_empty_target(self):
        result = {}
        for change in diff(NESTED_ONE, NESTED_TWO):
            change.apply(result, True)
        assert result["levelOne"] == {"levelTwo": "another value"}
        assert isinstance(result["arrayOne"], list)
        assert result["arrayOne"][0] == {"objValue": "new value"}
        assert result["arrayOne"][1] == {"objValue": "more value"}

    def test_root_regex(self):
        lhs, rhs = re.compile("foo"), re.compile("foo", re.I)
        d = diff(lhs, rhs)
        assert len(d) == 1
        edit = d[0]
        assert isinstance(edit, Edit)
        assert edit.path == ()
        assert edit.value is rhs
        # Patterns are immutable: the root is replaced, not mutated.
        assert patch(lhs, d) is rhs
        with pytest.raises(PatchError):
            edit.apply(lhs)

    def test_regex_undo_redo(self):
        lhs, rhs = re.compile("foo"), re.compile("foo", re.I)
        one = {"regexp": lhs}
        d = diff(one, {"regexp": rhs})
        assert len(d) == 1
        edit = d[0]
        assert edit.path == (key("regexp"),)

        undo = edit.apply(one)
        assert undo.previous_value is lhs
        assert one["regexp"] is rhs

        redo = undo.undo()
        assert one["regexp"] is lhs

        again = redo.redo()
        assert again.previous_value is lhs
        assert one["regexp"] is rhs

    def test_patch_replaces_immutable_roots(self):
        assert patch(1, diff(1, 2)) == 2
        assert patch([1], diff([1], {"a": 1})) == {"a": 1}

    def test_patch_mutates_in_place(self):
        lhs = [1, 2, 3]
        result = patch(lhs, diff(lhs, [1, 3]))
        assert result is lhs
        assert lhs == [1, 3]

    def test_patch_clone_leaves_original(self):
        lhs = {"a": [1, {"b": 2}]}
        result = patch(clone(lhs), diff(lhs, {"a": [1, {"b": 3}, 4]}))
        assert result == {"a": [1, {"b": 3}, 4]}
        assert lhs == {"a": [1, {"b": 2}]}

    def test_reusable_diff_algorithm(self):
        algo = Diff(DiffOptions(lax_array_ordering=True))
        assert algo.diff([1, 2], [2, 1]) == []
        assert algo.diff([1], [2]) == [Remove((index(0),)), Add((index(0, insert=True),), 2)]


# ═══════════════════════════════════════════════════════════════════
#  §5  CHANGE MECHANICS
# ═══════════════════════════════════════════════════════════════════

class TestChanges:

    def test_insert_and_undo(self):
        lst = [1, 2]
        undo = Add((index(1, insert=True),), "x").apply(lst)
        assert lst == [1, "x", 2]
        undo.undo()
        assert lst == [1, 2]

    def test_remove_undo_restores_key_order(self):
        d = {"a": 1, "b": 2, "c": 3}
        undo = Remove((key("b"),)).apply(d)
        assert list(d) == ["a", "c"]
        assert undo.previous_value == 2
        undo.undo()
        assert list(d.items()) == [("a", 1), ("b", 2), ("c", 3)]

    def test_add_over_existing_key_restores_it(self):
        d = {"a": 1}
        undo = Add((key("a"),), 2).apply(d)
        assert d == {"a": 2}
        undo.undo()
        assert d == {"a": 1}

    def test_redo_cycle(self):
        d = {"a": 1}
        edit = Edit((key("a"),), 2)
        undo = edit.apply(d)
        for _ in range(3):
            redo = undo.undo()
            assert d == {"a": 1}
            undo = redo.redo()
            assert d == {"a": 2}

    def test_add_shadowing_class_default_undoes_cleanly(self):
        left, right = WithDefault(), WithDefault()
        right.colour = "blue"
        d = diff(left, right)
        assert d == [Add((PathSegment(Kind.RECORD, "colour"),), "blue")]
        undo = d[0].apply(left)
        assert vars(left) == {"colour": "blue"}
        undo.undo()
        assert vars(left) == {}
        assert left.colour == "red"

    def test_class_default_is_not_removable(self):
        with pytest.raises(PatchError):
            Remove((PathSegment(Kind.RECORD, "colour"),)).apply(WithDefault())

    def test_double_redo_is_a_usage_error(self):
        lst = [1]
        redo = Add((index(0, insert=True),), 0).apply(lst).undo()
        redo.redo()
        with pytest.raises(UsageError):
            redo.redo()
        assert lst == [0, 1]

    def test_double_undo_is_a_usage_error(self):
        undo = Edit((key("a"),), 2).apply({"a": 1})
        undo.undo()
        with pytest.raises(UsageError):
            undo.undo()

    def test_missing_intermediate(self):
        target = {"x": 1}
        with pytest.raises(PatchError) as exc:
            Edit((key("a"), key("b")), 2).apply(target)
        assert exc.value.segment_index == 0
        assert target == {"x": 1}

    def test_kind_mismatch(self):
        with pytest.raises(PatchError) as exc:
            Edit((index(0),), 1).apply({})
        assert exc.value.segment_index == 0

    def test_nothing_to_edit_or_remove(self):
        with pytest.raises(PatchError):
            Edit((key("a"),), 1).apply({})
        with pytest.raises(PatchError):
            Remove((index(3),)).apply([1])

    def test_root_add_and_remove_rejected(self):
        with pytest.raises(PatchError):
            Add((), 1).apply({})
        with pytest.raises(PatchError):
            Remove(()).apply({})

    def test_materialize_builds_the_chain(self):
        target = {}
        undo = Edit((key("a"), index(2), key("b")), "v").apply(target, materialize=True)
        assert target == {"a": [None, None, {"b": "v"}]}
        undo.undo()
        # Materialized containers stay behind.
        assert target == {"a": [None, None, {}]}

    def test_root_edit_in_place(self):
        lst = [1, 2]
        undo = Edit((), [3]).apply(lst)
        assert lst == [3]
        assert undo.previous_value == [1, 2]
        undo.undo()
        assert lst == [1, 2]

    def test_immutable_root_edit_rejected(self):
        with pytest.raises(PatchError):
            Edit((), 5).apply(3)

    def test_read_only_record_field(self):
        p = FrozenPoint(1, 2)
        with pytest.raises(PatchError):
            Edit((PathSegment(Kind.RECORD, "x"),), 5).apply(p)
        assert p == FrozenPoint(1, 2)

    def test_unhashable_set_member(self):
        with pytest.raises(PatchError):
            Add((PathSegment(Kind.SET, "h"),), [1]).apply(set())

    def test_patch_rolls_back_on_failure(self):
        lst = [1, 2, 3]
        with pytest.raises(PatchError):
            patch(lst, [Remove((index(0),)), Remove((index(10),))])
        assert lst == [1, 2, 3]

    def test_to_dict(self):
        assert Add((key("a"),), 1).to_dict() == {
            "op": "add", "path": [["mapping", "a", False]], "value": 1,
        }
        assert Remove((index(0),)).to_dict() == {
            "op": "remove", "path": [["sequence", 0, False]],
        }

    def test_repr(self):
        assert repr(Edit((key("a"),), 2)) == "EDIT at a: 2"
        assert repr(Remove((key("a"), index(0, insert=True)))) == "REMOVE at a/+0"
