"""A JSONPath evaluator that works on :class:`~deckops.nodes.Node` trees.

Supported syntax: the root ``$``, child access ``.name`` and ``['name']``,
wildcards ``.*`` and ``[*]``, recursive descent ``..``, indices, index unions
and slices (``[0]``, ``[-1]``, ``[0,2]``, ``[1:3]``), and filters such as
``[?(@.name == 'x' && @.port > 80)]``.
"""

from __future__ import annotations

import operator
import re
from collections.abc import Callable, Iterator
from typing import Any, Optional

from .nodes import Kind, Node, to_value

Step = Callable[[Node, Node], Iterator[Node]]
Predicate = Callable[[Node, Node], bool]
Operand = Callable[[Node, Node], list]

_INTEGER = re.compile(r"-?\d+")
_NUMBER = re.compile(r"-?\d+(\.\d+)?([eE][+-]?\d+)?")
_KEYWORD = re.compile(r"(true|false|null)(?![\w-])")
_OPERATOR = re.compile(r"==|!=|<=|>=|<|>")


class JsonPathError(ValueError):
    """A JSONPath expression could not be parsed."""


#
# Traversal steps
#


def _deref(node: Optional[Node]) -> Optional[Node]:
    while node is not None and node.kind == Kind.ALIAS:
        node = node.alias
    return node


def _children(node: Node) -> Iterator[Node]:
    node = _deref(node)
    if node is None:
        return
    if node.kind == Kind.MAPPING:
        entries = node.content[1::2]
    elif node.kind == Kind.SEQUENCE:
        entries = node.content
    else:
        return
    for entry in entries:
        entry = _deref(entry)
        if entry is not None:
            yield entry


def _descendants(node: Node) -> Iterator[Node]:
    yield node
    for child in _children(node):
        yield from _descendants(child)


def _child_step(name: str) -> Step:
    def step(node: Node, root: Node) -> Iterator[Node]:
        node = _deref(node)
        if node is None or node.kind != Kind.MAPPING:
            return
        for key, value in zip(node.content[::2], node.content[1::2]):
            if key is not None and key.value == name:
                value = _deref(value)
                if value is not None:
                    yield value

    return step


def _names_step(names: list[str]) -> Step:
    steps = [_child_step(name) for name in names]

    def step(node: Node, root: Node) -> Iterator[Node]:
        for child_step in steps:
            yield from child_step(node, root)

    return step


def _wildcard_step(node: Node, root: Node) -> Iterator[Node]:
    yield from _children(node)


def _descendant_step(node: Node, root: Node) -> Iterator[Node]:
    yield from _descendants(node)


def _index_step(selectors: list) -> Step:
    def step(node: Node, root: Node) -> Iterator[Node]:
        node = _deref(node)
        if node is None or node.kind != Kind.SEQUENCE:
            return
        items = node.content
        for selector in selectors:
            if isinstance(selector, slice):
                picked = items[selector]
            else:
                idx = selector + len(items) if selector < 0 else selector
                picked = [items[idx]] if 0 <= idx < len(items) else []
            for item in picked:
                item = _deref(item)
                if item is not None:
                    yield item

    return step


def _filter_step(predicate: Predicate) -> Step:
    def step(node: Node, root: Node) -> Iterator[Node]:
        for child in _children(node):
            if predicate(child, root):
                yield child

    return step


def _run(steps: tuple[Step, ...], start: Node, root: Node) -> list[Node]:
    current = [start]
    for step in steps:
        current = [found for node in current for found in step(node, root)]
    return current


#
# Filter comparisons
#


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _equal(left: Any, right: Any) -> bool:
    if isinstance(left, bool) != isinstance(right, bool):
        return False
    return left == right


def _ordered(compare: Callable[[Any, Any], bool]) -> Callable[[Any, Any], bool]:
    def check(left: Any, right: Any) -> bool:
        if _is_number(left) and _is_number(right):
            return compare(left, right)
        if isinstance(left, str) and isinstance(right, str):
            return compare(left, right)
        return False

    return check


_COMPARATORS: dict[str, Callable[[Any, Any], bool]] = {
    "==": _equal,
    "!=": lambda left, right: not _equal(left, right),
    "<": _ordered(operator.lt),
    "<=": _ordered(operator.le),
    ">": _ordered(operator.gt),
    ">=": _ordered(operator.ge),
}


#
# Parsing
#


def _is_name_char(ch: str) -> bool:
    return ch.isalnum() or ch in "_-" or ord(ch) > 127


class _Parser:
    def __init__(self, text: str) -> None:
        self.text = text
        self.pos = 0

    def peek(self, offset: int = 0) -> str:
        idx = self.pos + offset
        return self.text[idx] if idx < len(self.text) else ""

    def invalid(self, start: int) -> None:
        raise JsonPathError(
            f"invalid character '{self.text[self.pos]}' at position {self.pos}, "
            f'following "{self.text[start:self.pos]}"'
        )

    def expect(self, ch: str) -> None:
        found = self.peek()
        if found == "":
            raise JsonPathError(f"unexpected end of path, expected '{ch}'")
        if found != ch:
            raise JsonPathError(
                f"expected '{ch}' at position {self.pos}, but found '{found}'"
            )
        self.pos += 1

    def skip_spaces(self) -> None:
        while self.peek() in (" ", "\t"):
            self.pos += 1

    def parse(self) -> list[Step]:
        if not self.text.strip():
            raise JsonPathError("empty path")
        steps: list[Step] = []
        if self.peek() == "$":
            self.pos += 1
        elif self.peek() not in (".", "["):
            steps.append(_child_step(self.name(nested=False)))
        steps.extend(self.steps(nested=False))
        return steps

    def name(self, nested: bool) -> str:
        start = self.pos
        while self.pos < len(self.text):
            ch = self.text[self.pos]
            if _is_name_char(ch):
                self.pos += 1
                continue
            if ch in ".[" or nested:
                break
            self.invalid(start)
        if self.pos == start:
            raise JsonPathError(f"missing child name at position {start}")
        return self.text[start : self.pos]

    def steps(self, nested: bool) -> list[Step]:
        steps: list[Step] = []
        token_start = 0
        while self.pos < len(self.text):
            ch = self.peek()
            if ch == ".":
                token_start = self.pos
                if self.peek(1) == ".":
                    self.pos += 2
                    steps.append(_descendant_step)
                    if self.peek() == "[":
                        steps.append(self.bracket())
                        continue
                else:
                    self.pos += 1
                if self.peek() == "*":
                    self.pos += 1
                    steps.append(_wildcard_step)
                else:
                    steps.append(_child_step(self.name(nested)))
            elif ch == "[":
                token_start = self.pos
                steps.append(self.bracket())
            elif nested:
                break
            else:
                self.invalid(token_start)
        return steps

    def bracket(self) -> Step:
        start = self.pos
        self.expect("[")
        self.skip_spaces()
        ch = self.peek()
        if ch == "":
            raise JsonPathError(f"unexpected end of path at position {self.pos}")
        if ch == "*":
            self.pos += 1
            step = _wildcard_step
        elif ch == "?":
            self.pos += 1
            self.skip_spaces()
            self.expect("(")
            predicate = self.or_expr()
            self.skip_spaces()
            self.expect(")")
            step = _filter_step(predicate)
        elif ch in "'\"":
            names = [self.quoted()]
            self.skip_spaces()
            while self.peek() == ",":
                self.pos += 1
                self.skip_spaces()
                names.append(self.quoted())
                self.skip_spaces()
            step = _names_step(names)
        elif ch.isdigit() or ch in "-:":
            selectors = [self.index_item()]
            self.skip_spaces()
            while self.peek() == ",":
                self.pos += 1
                selectors.append(self.index_item())
                self.skip_spaces()
            step = _index_step(selectors)
        else:
            self.invalid(start)
        self.skip_spaces()
        self.expect("]")
        return step

    def integer(self) -> Optional[int]:
        self.skip_spaces()
        match = _INTEGER.match(self.text, self.pos)
        if match is None:
            return None
        self.pos = match.end()
        return int(match.group())

    def index_item(self) -> Any:
        first = self.integer()
        self.skip_spaces()
        if self.peek() != ":":
            if first is None:
                raise JsonPathError(f"missing index at position {self.pos}")
            return first
        parts = [first]
        while self.peek() == ":" and len(parts) < 3:
            self.pos += 1
            parts.append(self.integer())
            self.skip_spaces()
        if len(parts) == 3 and parts[2] == 0:
            raise JsonPathError("slice step cannot be zero")
        return slice(*parts)

    def quoted(self) -> str:
        quote = self.peek()
        if quote not in ("'", '"'):
            raise JsonPathError(f"expected a quoted name at position {self.pos}")
        self.pos += 1
        chars: list[str] = []
        while True:
            ch = self.peek()
            if ch == "":
                raise JsonPathError("unterminated quoted string")
            self.pos += 1
            if ch == "\\":
                escaped = self.peek()
                if escaped == "":
                    raise JsonPathError("unterminated quoted string")
                chars.append(escaped)
                self.pos += 1
            elif ch == quote:
                return "".join(chars)
            else:
                chars.append(ch)

    def or_expr(self) -> Predicate:
        terms = [self.and_expr()]
        self.skip_spaces()
        while self.text.startswith("||", self.pos):
            self.pos += 2
            terms.append(self.and_expr())
            self.skip_spaces()
        if len(terms) == 1:
            return terms[0]
        return lambda node, root: any(term(node, root) for term in terms)

    def and_expr(self) -> Predicate:
        terms = [self.unary()]
        self.skip_spaces()
        while self.text.startswith("&&", self.pos):
            self.pos += 2
            terms.append(self.unary())
            self.skip_spaces()
        if len(terms) == 1:
            return terms[0]
        return lambda node, root: all(term(node, root) for term in terms)

    def unary(self) -> Predicate:
        self.skip_spaces()
        if self.peek() == "!" and self.peek(1) != "=":
            self.pos += 1
            inner = self.unary()
            return lambda node, root: not inner(node, root)
        if self.peek() == "(":
            self.pos += 1
            inner = self.or_expr()
            self.skip_spaces()
            self.expect(")")
            return inner
        return self.comparison()

    def comparison(self) -> Predicate:
        left, left_is_path = self.operand()
        self.skip_spaces()
        match = _OPERATOR.match(self.text, self.pos)
        if match is None:
            if left_is_path:
                return lambda node, root: bool(left(node, root))
            return lambda node, root: any(bool(v) for v in left(node, root))
        self.pos = match.end()
        compare = _COMPARATORS[match.group()]
        right, _ = self.operand()
        return lambda node, root: any(
            compare(a, b) for a in left(node, root) for b in right(node, root)
        )

    def operand(self) -> tuple[Operand, bool]:
        self.skip_spaces()
        ch = self.peek()
        if ch in ("@", "$") and ch != "":
            self.pos += 1
            steps = tuple(self.steps(nested=True))
            relative = ch == "@"

            def evaluate(node: Node, root: Node) -> list:
                start = node if relative else root
                return [to_value(found) for found in _run(steps, start, root)]

            return evaluate, True
        if ch in ("'", '"') and ch != "":
            text = self.quoted()
            return (lambda node, root: [text]), False
        keyword = _KEYWORD.match(self.text, self.pos)
        if keyword is not None:
            self.pos = keyword.end()
            literal = {"true": True, "false": False, "null": None}[keyword.group(1)]
            return (lambda node, root: [literal]), False
        number = _NUMBER.match(self.text, self.pos)
        if number is not None:
            self.pos = number.end()
            text = number.group()
            value: Any = int(text) if number.group(1) is None and number.group(2) is None else float(text)
            return (lambda node, root: [value]), False
        if ch == "":
            raise JsonPathError("unexpected end of path in filter expression")
        raise JsonPathError(f"invalid filter operand at position {self.pos}")


class JsonPath:
    """A compiled JSONPath expression."""

    __slots__ = ("expression", "_steps")

    def __init__(self, expression: str) -> None:
        self.expression = expression
        self._steps = tuple(_Parser(expression).parse())

    def __repr__(self) -> str:
        return f"JsonPath({self.expression!r})"

    def find(self, node: Node) -> list[Node]:
        """Return the nodes below ``node`` that the expression selects."""
        if node is None:
            raise ValueError("node to search cannot be None")
        root: Optional[Node] = node
        if node.kind == Kind.DOCUMENT:
            root = node.content[0] if node.content else None
        root = _deref(root)
        if root is None:
            return []
        return _run(self._steps, root, root)


def compile_path(expression: str) -> JsonPath:
    """Compile ``expression``, raising JsonPathError if it is invalid."""
    return JsonPath(expression)