"""Sets of JSONPath selectors evaluated together."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import Optional

from .jsonpath import JsonPath, JsonPathError, compile_path
from .nodes import Node
from .nodeset import NodeSet

log = logging.getLogger(__name__)


class SelectorSet:
    """A set of compiled JSONPath selectors.

    An empty set is allowed; searching with it yields no results.
    """

    def __init__(self, selectors: Optional[Iterable[str]] = None) -> None:
        sources = list(selectors or [])
        compiled: list[JsonPath] = []
        for source in sources:
            try:
                compiled.append(compile_path(source))
            except JsonPathError as err:
                raise JsonPathError(
                    f"selector '{source}' is not a valid JSONpath expression; {err}"
                ) from err
        self._sources = sources
        self._paths = compiled

    def __repr__(self) -> str:
        return f"SelectorSet({self._sources!r})"

    def is_empty(self) -> bool:
        """True if the set holds no selectors."""
        return not self._paths

    def sources(self) -> list[str]:
        """Return a copy of the selector expressions."""
        return list(self._sources)

    def find(self, node_to_search: Node) -> NodeSet:
        """Run every selector on ``node_to_search``; results hold no duplicates."""
        if node_to_search is None:
            raise ValueError("expected node_to_search to be non-None")
        results = NodeSet()
        seen: set[int] = set()
        for source, path in zip(self._sources, self._paths):
            matches = path.find(node_to_search)
            log.debug("selector %r found %d nodes", source, len(matches))
            for match in matches:
                if match is not None and id(match) not in seen:
                    seen.add(id(match))
                    results.append(match)
        return results