import math
import re

import pytest

from deckops.nodes import (
    Kind,
    Node,
    NodeKind,
    NodeTypeError,
    append,
    append_slice,
    check_type,
    check_types,
    copy_node,
    find_field_key_index,
    find_field_value_index,
    from_object,
    from_value,
    get_field_value,
    new_array,
    new_object,
    new_string,
    remove_field,
    remove_field_by_idx,
    search,
    set_field_value,
    to_array,
    to_object,
    to_value,
)


def _object_with_three():
    data = new_object()
    d1 = new_string("myName")
    d2 = new_string("yourName")
    d3 = new_string("hisName")
    set_field_value(data, "name1", d1)
    set_field_value(data, "name2", d2)
    set_field_value(data, "name3", d3)
    return data, d1, d2, d3


class TestFromObject:
    def test_returns_object_node(self):
        val = from_object({"name": "myName"})
        assert val.kind is Kind.MAPPING
        assert val.content[0].value == "name"
        assert val.content[1].value == "myName"

    def test_error_if_none(self):
        with pytest.raises(NodeTypeError, match="not an object, but None"):
            from_object(None)

    def test_keys_are_sorted(self):
        val = from_object({"b": 1, "a": 2})
        assert [val.content[0].value, val.content[2].value] == ["a", "b"]


class TestToObject:
    def test_returns_object(self):
        data = new_object()
        set_field_value(data, "name", new_string("myName"))
        assert to_object(data) == {"name": "myName"}

    def test_error_if_none(self):
        with pytest.raises(NodeTypeError, match=re.escape("data is not a mapping node/object")):
            to_object(None)

    def test_error_if_string(self):
        with pytest.raises(NodeTypeError, match=re.escape("data is not a mapping node/object")):
            to_object(new_string("123"))


class TestToArray:
    def test_returns_array(self):
        data = new_array()
        append(data, new_string("one"))
        assert to_array(data) == ["one"]

    def test_error_if_none(self):
        with pytest.raises(NodeTypeError, match=re.escape("data is not a sequence node/array")):
            to_array(None)


class TestValueConversion:
    def test_round_trip(self):
        value = {
            "name": "svc",
            "port": 8080,
            "ratio": 1.5,
            "enabled": True,
            "disabled": False,
            "nothing": None,
            "list": [1, "two", {"three": [3.25]}],
        }
        assert to_value(from_value(value)) == value

    def test_preserves_key_order(self):
        node = from_value({"z": 1, "a": 2})
        assert list(to_value(node)) == ["z", "a"]

    def test_scalar_tags(self):
        assert from_value(None).tag == "!!null"
        assert from_value(True).tag == "!!bool"
        assert from_value(3).tag == "!!int"
        assert from_value(3.5).tag == "!!float"
        assert from_value("x").tag == "!!str"

    def test_infinite_float(self):
        assert from_value(math.inf).value == ".inf"
        assert to_value(from_value(-math.inf)) == -math.inf

    def test_unsupported_type(self):
        with pytest.raises(TypeError):
            from_value(object())

    def test_document_node_unwraps(self):
        doc = Node(Kind.DOCUMENT, content=[from_value([1, 2])])
        assert to_value(doc) == [1, 2]

    def test_untagged_plain_scalars_resolve(self):
        assert to_value(Node(Kind.SCALAR, value="12")) == 12
        assert to_value(Node(Kind.SCALAR, value="true")) is True
        assert to_value(Node(Kind.SCALAR, value="~")) is None
        assert to_value(Node(Kind.SCALAR, value="12", style="double_quoted")) == "12"


class TestCheckTypes:
    def test_accepts_matching_kind(self):
        check_type(new_object(), NodeKind.OBJECT)
        check_types(new_string("a"), [NodeKind.NUMBER, NodeKind.STRING])
        with pytest.raises(NodeTypeError):
            check_type(new_object(), NodeKind.ARRAY)

    def test_single_expected_message(self):
        with pytest.raises(
            NodeTypeError,
            match=re.escape("expected node to be of type array, but was scalar (string)"),
        ):
            check_type(new_string("x"), NodeKind.ARRAY)

    def test_two_expected_message(self):
        with pytest.raises(
            NodeTypeError,
            match=re.escape("expected node to be of type array or object, but was scalar (bool)"),
        ):
            check_types(from_value(True), [NodeKind.ARRAY, NodeKind.OBJECT])

    def test_three_expected_message(self):
        with pytest.raises(
            NodeTypeError,
            match=re.escape("expected node to be of type array, object or null, but was scalar (number)"),
        ):
            check_types(from_value(1), [NodeKind.ARRAY, NodeKind.OBJECT, NodeKind.NULL])

    def test_scalar_kind_matches_scalar(self):
        check_type(from_value(None), NodeKind.SCALAR)
        with pytest.raises(NodeTypeError, match="but was object"):
            check_type(new_object(), NodeKind.SCALAR)


class TestGetFieldValue:
    def test_returns_node_if_found(self):
        data, d1, d2, d3 = _object_with_three()
        assert get_field_value(data, "name1") is d1
        assert get_field_value(data, "name2") is d2
        assert get_field_value(data, "name3") is d3

    def test_returns_none_if_not_found(self):
        data = new_object()
        set_field_value(data, "name1", new_string("myName"))
        assert get_field_value(data, "name2") is None

    def test_raises_if_not_object(self):
        with pytest.raises(NodeTypeError):
            get_field_value(new_string("myName"), "name")

    def test_indexes(self):
        data, _, _, _ = _object_with_three()
        assert find_field_key_index(data, "name2") == 2
        assert find_field_value_index(data, "name2") == 3
        assert find_field_key_index(data, "missing") is None
        assert find_field_value_index(data, "missing") is None


class TestRemoveField:
    def test_removes_fields(self):
        data, d1, d2, d3 = _object_with_three()
        remove_field(data, "name1")
        assert get_field_value(data, "name1") is None
        assert get_field_value(data, "name2") is d2
        assert get_field_value(data, "name3") is d3

        remove_field(data, "name2")
        assert get_field_value(data, "name2") is None
        assert get_field_value(data, "name3") is d3

        remove_field(data, "name3")
        assert get_field_value(data, "name3") is None
        assert data.content == []

    def test_ignores_non_existing(self):
        data, d1, d2, d3 = _object_with_three()
        remove_field(data, "doesn't exist")
        assert get_field_value(data, "name1") is d1
        assert get_field_value(data, "name2") is d2
        assert get_field_value(data, "name3") is d3
        assert len(data.content) == 6

    def test_remove_by_idx_out_of_bounds(self):
        data, _, _, _ = _object_with_three()
        with pytest.raises(IndexError, match="idx out of bounds"):
            remove_field_by_idx(data, 6)
        with pytest.raises(IndexError):
            remove_field_by_idx(data, -1)


class TestSetFieldValue:
    def test_adds_values(self):
        data = new_object()
        d1 = new_string("myName")
        set_field_value(data, "name1", d1)
        assert get_field_value(data, "name1") is d1

    def test_removes_if_none(self):
        data = new_object()
        d1 = new_string("myName")
        set_field_value(data, "name1", d1)
        assert get_field_value(data, "name1") is d1
        set_field_value(data, "name1", None)
        assert get_field_value(data, "name1") is None

    def test_setting_missing_field_to_none(self):
        data = new_object()
        d1 = new_string("myName")
        set_field_value(data, "name1", d1)
        assert get_field_value(data, "name1") is d1
        set_field_value(data, "name2", None)
        assert get_field_value(data, "name2") is None
        assert len(data.content) == 2

    def test_overwrites_existing_key(self):
        data = new_object()
        d1 = new_string("myName")
        set_field_value(data, "name1", d1)
        assert get_field_value(data, "name1") is d1
        d2 = new_string("yourName")
        set_field_value(data, "name1", d2)
        assert get_field_value(data, "name1") is d2
        assert len(data.content) == 2


class TestAppend:
    def test_adds_entries(self):
        data = new_array()
        d1, d2, d3 = new_string("myName"), new_string("yourName"), new_string("hisName")
        append(data, d1)
        append(data, d2)
        append(data, d3)
        assert len(data.content) == 3
        assert data.content[0] is d1
        assert data.content[1] is d2
        assert data.content[2] is d3

    def test_error_if_target_not_array(self):
        with pytest.raises(NodeTypeError, match=re.escape("targetArray is not a sequence node/array")):
            append(new_string("myName"), new_string("yourName"))

    def test_nothing_to_append(self):
        data = new_array()
        append(data)
        assert data.content == []

    def test_error_on_none(self):
        data = new_array()
        with pytest.raises(ValueError, match="value at index 0 is None"):
            append(data, None)

    def test_none_leaves_array_unchanged(self):
        data = new_array()
        d1 = new_string("myName")
        append(data, d1)
        with pytest.raises(ValueError, match="value at index 0 is None"):
            append(data, None)
        assert len(data.content) == 1
        assert data.content[0] is d1


class TestAppendSlice:
    def test_adds_entries(self):
        data = new_array()
        d1, d2, d3 = new_string("myName"), new_string("yourName"), new_string("hisName")
        append_slice(data, [d1, d2, d3])
        assert len(data.content) == 3
        assert data.content[0] is d1
        assert data.content[1] is d2
        assert data.content[2] is d3

    def test_error_if_target_not_array(self):
        with pytest.raises(NodeTypeError, match=re.escape("targetArray is not a sequence node/array")):
            append_slice(new_string("myName"), [new_string("a"), new_string("b")])

    def test_nothing_to_append(self):
        data = new_array()
        append_slice(data, [])
        append_slice(data, None)
        assert data.content == []

    def test_error_on_none(self):
        data = new_array()
        with pytest.raises(ValueError, match="value at index 1 is None"):
            append_slice(data, [new_string("myName"), None, new_string("hisName")])

    def test_none_leaves_array_unchanged(self):
        data = new_array()
        d1 = new_string("myName")
        append(data, d1)
        with pytest.raises(ValueError, match="value at index 1 is None"):
            append_slice(data, [new_string("yourName"), None, new_string("hisName")])
        assert len(data.content) == 1
        assert data.content[0] is d1


class TestSearch:
    @staticmethod
    def _searcher(hits):
        def match(node):
            hits.append(node.value)
            return True

        return match

    def test_raises_if_none(self):
        with pytest.raises(NodeTypeError):
            search(None, self._searcher([]))

    def test_raises_if_not_array(self):
        with pytest.raises(NodeTypeError):
            search(new_object(), self._searcher([]))

    def test_hit_with_each_entry(self):
        hits = []
        data = new_array()
        append(data, new_string("myName"), new_string("yourName"), new_string("hisName"))
        results = list(search(data, self._searcher(hits)))
        assert hits == ["myName", "yourName", "hisName"]
        assert [idx for idx, _ in results] == [0, 1, 2]

    def test_empty_array(self):
        hits = []
        assert list(search(new_array(), self._searcher(hits))) == []
        assert hits == []

    def test_skips_none_values(self):
        hits = []
        data = new_array()
        append(data, new_string("myName"), new_string("yourName"), new_string("hisName"))
        data.content[1] = None
        list(search(data, self._searcher(hits)))
        assert hits == ["myName", "hisName"]

    def test_handles_adding_and_removing(self):
        hits = []
        data = new_array()
        append(data, new_string("myName"), new_string("yourName"), new_string("hisName"))
        for _ in search(data, self._searcher(hits)):
            if data.content[1] is not None:
                data.content[1] = None
                data.content[0] = new_string("injected")
        assert hits == ["myName", "injected", "hisName"]

    def test_only_matching_nodes(self):
        data = new_array()
        append(data, new_string("a"), new_string("b"), new_string("a"))
        results = list(search(data, lambda node: node.value == "a"))
        assert [idx for idx, _ in results] == [0, 2]

    def test_match_error_propagates(self):
        data = new_array()
        append(data, new_string("a"))

        def failing(node):
            raise RuntimeError("boom")

        with pytest.raises(RuntimeError, match="boom"):
            next(search(data, failing))


class TestCopyNode:
    def test_none(self):
        assert copy_node(None) is None

    def test_copies_scalar(self):
        node = new_string("myName")
        duplicate = copy_node(node)
        assert duplicate is not node
        assert duplicate == node

    def test_copies_non_scalar(self):
        node = new_object()
        set_field_value(node, "key1", new_string("myName"))
        set_field_value(node, "key2", new_string("yourName"))
        duplicate = copy_node(node)
        assert len(duplicate.content) == 4

        node.content[0].value = "key3"
        assert duplicate.content[0].value == "key1"
        assert duplicate.content[1].value == "myName"
        assert duplicate.content[2].value == "key2"
        assert duplicate.content[3].value == "yourName"

    def test_drops_alias(self):
        target = new_string("x")
        node = Node(Kind.ALIAS, alias=target)
        assert copy_node(node).alias is None