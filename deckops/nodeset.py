"""Sets of document nodes, compared by identity."""

from __future__ import annotations

import logging
from collections.abc import Iterable

from .nodes import Node

log = logging.getLogger(__name__)


class NodeSet(list):
    """A list of nodes with set operations based on node identity.

    None entries are ignored by the set operations, and results never hold
    the same node twice.
    """

    def intersection(self, other: Iterable[Node]) -> tuple[NodeSet, NodeSet]:
        """Split ``other`` into the nodes also in this set and the remainder.

        Both results are new sets.
        """
        other = list(other)
        if not self or not other:
            return NodeSet(), NodeSet(other)

        members = {id(node) for node in self if node is not None}

        common = NodeSet()
        remainder = NodeSet()
        seen: set[int] = set()
        for node in other:
            if node is None or id(node) in seen:
                continue
            seen.add(id(node))
            if id(node) in members:
                common.append(node)
            else:
                remainder.append(node)
        log.debug("intersection: %d found, %d remainder", len(common), len(remainder))
        return common, remainder

    def is_intersection(self, subset: Iterable[Node]) -> bool:
        """True if every node of ``subset`` is also in this set."""
        _, remainder = self.intersection(subset)
        return not remainder

    def subtract(self, to_subtract: Iterable[Node]) -> NodeSet:
        """Return the nodes of this set that are not in ``to_subtract``."""
        _, remainder = NodeSet(to_subtract).intersection(self)
        return remainder

    def union(self, *args: Iterable[Node]) -> NodeSet:
        """Return the nodes of this set and all given sets, in order."""
        result = NodeSet()
        seen: set[int] = set()
        for nodes in (self, *args):
            for node in nodes:
                if node is not None and id(node) not in seen:
                    seen.add(id(node))
                    result.append(node)
        return result