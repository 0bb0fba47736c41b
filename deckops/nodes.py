"""Building, inspecting and editing YAML-style document nodes.

Documents are held as trees of :class:`Node` objects. Mappings keep their
keys and values interleaved in ``content`` (key, value, key, value, ...),
sequences keep their entries in ``content``, and scalars carry their text
in ``value`` together with a resolved ``tag`` such as ``!!str``.
"""

from __future__ import annotations

import math
from collections.abc import Callable, Iterable, Iterator, Mapping, Sequence
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any, Optional

STYLE_PLAIN = ""
STYLE_DOUBLE_QUOTED = "double_quoted"
STYLE_SINGLE_QUOTED = "single_quoted"
STYLE_FLOW = "flow"


class Kind(IntEnum):
    """The structural kind of a node."""

    DOCUMENT = 1
    SEQUENCE = 2
    MAPPING = 4
    SCALAR = 8
    ALIAS = 16


class NodeKind(IntEnum):
    """Node kinds including the JSON scalar types."""

    DOCUMENT = Kind.DOCUMENT
    ARRAY = Kind.SEQUENCE
    OBJECT = Kind.MAPPING
    SCALAR = Kind.SCALAR
    ALIAS = Kind.ALIAS
    NULL = 105
    NUMBER = 106
    BOOL = 107
    STRING = 108

    def __str__(self) -> str:
        return self.name.lower()


class NodeTypeError(TypeError):
    """A node was not of the kind an operation requires."""


@dataclass
class Node:
    """A single node of a YAML-style document tree."""

    kind: Optional[Kind] = None
    tag: str = ""
    value: str = ""
    style: str = STYLE_PLAIN
    content: list[Optional[Node]] = field(default_factory=list)
    alias: Optional[Node] = None


_SCALAR_TAGS = {
    "!!null": NodeKind.NULL,
    "!!bool": NodeKind.BOOL,
    "!!int": NodeKind.NUMBER,
    "!!float": NodeKind.NUMBER,
    "!!str": NodeKind.STRING,
}


def _kind_name(value: int) -> str:
    try:
        return str(NodeKind(value))
    except ValueError:
        return f"unknown type {value}"


#
# Node types and checks
#


def check_types(node: Node, expected: Sequence[NodeKind]) -> None:
    """Raise NodeTypeError unless ``node`` is one of the ``expected`` kinds."""
    expected = list(expected)
    if not expected:
        raise ValueError("no expected node types given")

    node_type = int(node.kind) if node.kind is not None else 0
    scalar_type = 0
    if node_type == NodeKind.SCALAR:
        scalar_type = int(_SCALAR_TAGS.get(node.tag, 0))

    for expected_type in expected:
        if node_type == expected_type or (
            node_type == NodeKind.SCALAR and scalar_type == expected_type
        ):
            return

    if node_type == NodeKind.SCALAR:
        got = f"{_kind_name(node_type)} ({_kind_name(scalar_type)})"
    else:
        got = _kind_name(node_type)

    names = [_kind_name(int(kind)) for kind in expected]
    if len(names) == 1:
        wanted = names[0]
    else:
        wanted = ", ".join(names[:-1]) + " or " + names[-1]
    raise NodeTypeError(f"expected node to be of type {wanted}, but was {got}")


def check_type(node: Node, expected: NodeKind) -> None:
    """Raise NodeTypeError unless ``node`` is of the ``expected`` kind."""
    check_types(node, [expected])


#
# Conversion between nodes and plain Python values
#


def _format_float(number: float) -> str:
    if math.isnan(number):
        return ".nan"
    if math.isinf(number):
        return ".inf" if number > 0 else "-.inf"
    return repr(number)


def _build(value: Any, sort_keys: bool) -> Node:
    if value is None:
        return Node(Kind.SCALAR, tag="!!null", value="null")
    if isinstance(value, bool):
        return Node(Kind.SCALAR, tag="!!bool", value="true" if value else "false")
    if isinstance(value, int):
        return Node(Kind.SCALAR, tag="!!int", value=str(value))
    if isinstance(value, float):
        return Node(Kind.SCALAR, tag="!!float", value=_format_float(value))
    if isinstance(value, str):
        return Node(Kind.SCALAR, tag="!!str", value=value)
    if isinstance(value, Mapping):
        node = Node(Kind.MAPPING, tag="!!map")
        items = sorted(value.items()) if sort_keys else value.items()
        for key, item in items:
            if not isinstance(key, str):
                raise TypeError(f"object keys must be strings, got {type(key).__name__}")
            node.content.append(Node(Kind.SCALAR, tag="!!str", value=key))
            node.content.append(_build(item, sort_keys))
        return node
    if isinstance(value, (list, tuple)):
        return Node(
            Kind.SEQUENCE,
            tag="!!seq",
            content=[_build(item, sort_keys) for item in value],
        )
    raise TypeError(f"cannot convert value of type {type(value).__name__} to a node")


def from_value(value: Any) -> Node:
    """Convert a JSON-compatible Python value into a node tree."""
    return _build(value, sort_keys=False)


def _resolve_plain(node: Node) -> Any:
    text = node.value
    if node.style in (STYLE_DOUBLE_QUOTED, STYLE_SINGLE_QUOTED):
        return text
    if text in ("", "~", "null", "Null", "NULL"):
        return None
    if text in ("true", "True", "TRUE"):
        return True
    if text in ("false", "False", "FALSE"):
        return False
    try:
        return int(text, 0)
    except ValueError:
        pass
    try:
        return _parse_float(text)
    except ValueError:
        return text


def _parse_float(text: str) -> float:
    lowered = text.lower()
    if lowered in (".inf", "+.inf"):
        return math.inf
    if lowered == "-.inf":
        return -math.inf
    if lowered == ".nan":
        return math.nan
    return float(text)


def _scalar_value(node: Node) -> Any:
    tag = node.tag
    if tag == "!!null":
        return None
    if tag == "!!bool":
        return node.value.lower() == "true"
    if tag == "!!int":
        try:
            return int(node.value)
        except ValueError:
            return int(node.value, 0)
    if tag == "!!float":
        return _parse_float(node.value)
    if tag == "":
        return _resolve_plain(node)
    return node.value


def to_value(node: Optional[Node]) -> Any:
    """Convert a node tree into plain Python values."""
    if node is None:
        return None
    if node.kind == Kind.DOCUMENT:
        return to_value(node.content[0]) if node.content else None
    if node.kind == Kind.ALIAS:
        return to_value(node.alias)
    if node.kind == Kind.MAPPING:
        return {
            key.value: to_value(item)
            for key, item in zip(node.content[::2], node.content[1::2])
            if key is not None
        }
    if node.kind == Kind.SEQUENCE:
        return [to_value(item) for item in node.content]
    if node.kind == Kind.SCALAR:
        return _scalar_value(node)
    return None


def from_object(data: Optional[Mapping[str, Any]]) -> Node:
    """Convert a mapping into an object node, with its keys sorted."""
    if not isinstance(data, Mapping):
        raise NodeTypeError(f"not an object, but {data!r}")
    return _build(data, sort_keys=True)


def to_object(node: Optional[Node]) -> dict[str, Any]:
    """Convert an object node into a dict."""
    if node is None or node.kind != Kind.MAPPING:
        raise NodeTypeError("data is not a mapping node/object")
    return to_value(node)


def to_array(node: Optional[Node]) -> list[Any]:
    """Convert an array node into a list."""
    if node is None or node.kind != Kind.SEQUENCE:
        raise NodeTypeError("data is not a sequence node/array")
    return to_value(node)


def copy_node(node: Optional[Node]) -> Optional[Node]:
    """Return a deep copy of ``node``; aliases are not carried over."""
    if node is None:
        return None
    return Node(
        kind=node.kind,
        tag=node.tag,
        value=node.value,
        style=node.style,
        content=[copy_node(child) for child in node.content],
        alias=None,
    )


#
# Objects and fields
#


def new_object() -> Node:
    """Create an empty object node."""
    return Node(Kind.MAPPING, tag="!!map", style=STYLE_FLOW)


def new_string(value: str) -> Node:
    """Create a string node."""
    return Node(Kind.SCALAR, tag="!!str", value=value, style=STYLE_DOUBLE_QUOTED)


def _require_object(target_object: Node) -> None:
    if target_object is None or target_object.kind != Kind.MAPPING:
        raise NodeTypeError("targetObject is not a mapping node/object")


def find_field_key_index(target_object: Node, key: str) -> Optional[int]:
    """Index in ``content`` of the node holding ``key``, or None if absent."""
    _require_object(target_object)
    for idx in range(0, len(target_object.content), 2):
        key_node = target_object.content[idx]
        if key_node is not None and key_node.value == key:
            return idx
    return None


def find_field_value_index(target_object: Node, key: str) -> Optional[int]:
    """Index in ``content`` of the value for ``key``, or None if absent."""
    idx = find_field_key_index(target_object, key)
    return None if idx is None else idx + 1


def remove_field_by_idx(target_object: Node, idx: int) -> None:
    """Remove the key at ``idx`` and the value following it."""
    if idx < 0 or idx >= len(target_object.content):
        raise IndexError("idx out of bounds")
    del target_object.content[idx : idx + 2]


def remove_field(target_object: Node, key: str) -> None:
    """Remove ``key`` and its value if present."""
    idx = find_field_key_index(target_object, key)
    if idx is not None:
        remove_field_by_idx(target_object, idx)


def get_field_value(target_object: Node, key: str) -> Optional[Node]:
    """Return the value node for ``key``, or None if absent."""
    idx = find_field_value_index(target_object, key)
    if idx is None:
        return None
    return target_object.content[idx]


def set_field_value(target_object: Node, key: str, value: Optional[Node]) -> None:
    """Set ``key`` to ``value``; a value of None removes the key."""
    idx = find_field_key_index(target_object, key)
    if idx is None:
        if value is not None:
            target_object.content.extend((new_string(key), value))
        return
    if value is None:
        remove_field_by_idx(target_object, idx)
    else:
        target_object.content[idx + 1] = value


#
# Arrays
#


def new_array() -> Node:
    """Create an empty array node."""
    return Node(Kind.SEQUENCE, tag="!!seq", style=STYLE_FLOW)


def _require_array(target_array: Optional[Node]) -> None:
    if target_array is None or target_array.kind != Kind.SEQUENCE:
        raise NodeTypeError("targetArray is not a sequence node/array")


def append(target_array: Node, *args: Node) -> None:
    """Append nodes to an array; nothing is appended if any of them is None."""
    _require_array(target_array)
    for idx, value in enumerate(args):
        if value is None:
            raise ValueError(f"value at index {idx} is None")
    target_array.content.extend(args)


def append_slice(target_array: Node, values: Optional[Iterable[Node]]) -> None:
    """Append every node in ``values`` to an array; None appends nothing."""
    _require_array(target_array)
    if values is None:
        return
    append(target_array, *values)


def search(
    target_array: Node, match: Callable[[Node], bool]
) -> Iterator[tuple[int, Node]]:
    """Yield ``(index, node)`` for every entry of an array that ``match`` accepts.

    Each step rescans the array, so entries may be replaced or removed while
    iterating; a node is yielded at most once and None entries are skipped.
    """
    _require_array(target_array)
    return _search(target_array, match)


def _search(
    target_array: Node, match: Callable[[Node], bool]
) -> Iterator[tuple[int, Node]]:
    found: dict[int, Node] = {}
    while True:
        for idx, node in enumerate(target_array.content):
            if node is None or id(node) in found:
                continue
            if match(node):
                found[id(node)] = node
                yield idx, node
                break
        else:
            return