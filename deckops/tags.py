"""Adding, removing and listing tags on entities of a declarative configuration.

Entities are picked out with JSONPath selectors; each selected object may
hold a ``tags`` array of strings.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from typing import Any, Optional

from .jsonpath import JsonPath, JsonPathError, compile_path
from .nodes import (
    Kind,
    Node,
    append,
    from_value,
    get_field_value,
    new_array,
    new_string,
    remove_field,
    set_field_value,
    to_value,
)

log = logging.getLogger(__name__)

TAG_ARRAY_NAME = "tags"

# Selectors for the entities that can carry tags.
DEFAULT_SELECTORS = (
    "$..services[*]",
    "$..routes[*]",
    "$..consumers[*]",
    "$..consumer_groups[*]",
    "$..plugins[*]",
    "$..upstreams[*]",
    "$..targets[*]",
    "$..certificates[*]",
    "$..ca_certificates[*]",
    "$..snis[*]",
    "$..vaults[*]",
)


class Tagger:
    """Manages the tags of the entities that a set of selectors picks out."""

    def __init__(self) -> None:
        self._selectors: Optional[list[JsonPath]] = None
        self._owners: Optional[list[Node]] = None
        self._data: Optional[Node] = None

    def set_data(self, data: Mapping[str, Any]) -> None:
        """Set the document to operate on from plain values."""
        if data is None:
            raise ValueError("data cannot be None")
        self._data = from_value(data)
        self._owners = None

    def get_data(self) -> dict[str, Any]:
        """Return the (modified) document as plain values."""
        if self._data is None:
            raise ValueError("data hasn't been set, see set_data()")
        return to_value(self._data)

    def set_selectors(self, selectors: Optional[Iterable[str]]) -> None:
        """Compile the selectors to use; empty or None selects the defaults."""
        sources = list(selectors or [])
        if not sources:
            log.debug("no selectors provided, using defaults")
            sources = list(DEFAULT_SELECTORS)
        compiled = []
        for source in sources:
            try:
                compiled.append(compile_path(source))
            except JsonPathError as err:
                raise JsonPathError(
                    f"selector '{source}' is not a valid JSONpath expression; {err}"
                ) from err
        self._selectors = compiled
        self._owners = None

    def _search(self) -> list[Node]:
        if self._owners is not None:
            return self._owners
        if self._data is None:
            raise ValueError("data hasn't been set, see set_data()")
        if self._selectors is None:
            self.set_selectors(None)

        owners: list[Node] = []
        seen: set[int] = set()
        for idx, selector in enumerate(self._selectors or []):
            nodes = selector.find(self._data)
            count = 0
            for node in nodes:
                if node.kind == Kind.MAPPING and id(node) not in seen:
                    seen.add(id(node))
                    owners.append(node)
                    count += 1
            log.debug("selector %d: %d results, %d objects", idx, len(nodes), count)
        self._owners = owners
        return owners

    def _tag_arrays(self) -> Iterable[tuple[Node, Node]]:
        for owner in self._search():
            tag_array = get_field_value(owner, TAG_ARRAY_NAME)
            if tag_array is not None and tag_array.kind == Kind.SEQUENCE:
                yield owner, tag_array

    def remove_tags(self, tags: Iterable[str], remove_empty_tag_arrays: bool) -> None:
        """Remove the given tags from every selected entity, keeping order.

        Tag arrays left empty are removed if ``remove_empty_tag_arrays`` is true.
        """
        to_remove = set(tags or [])
        if not to_remove and not remove_empty_tag_arrays:
            log.debug("no tags to remove")
            return

        for owner, tag_array in list(self._tag_arrays()):
            tag_array.content[:] = [
                node
                for node in tag_array.content
                if node is None
                or node.kind != Kind.SCALAR
                or node.value not in to_remove
            ]
            if remove_empty_tag_arrays and not tag_array.content:
                remove_field(owner, TAG_ARRAY_NAME)

    def add_tags(self, tags: Iterable[str]) -> None:
        """Add the given tags, in order, to every selected entity lacking them."""
        tags = list(tags or [])
        if not tags:
            log.debug("no tags to add")
            return

        for owner in self._search():
            tag_array = get_field_value(owner, TAG_ARRAY_NAME)
            if tag_array is None or tag_array.kind != Kind.SEQUENCE:
                tag_array = new_array()
                set_field_value(owner, TAG_ARRAY_NAME, tag_array)
            for tag in tags:
                present = any(
                    node is not None and node.kind == Kind.SCALAR and node.value == tag
                    for node in tag_array.content
                )
                if not present:
                    append(tag_array, new_string(tag))

    def list_tags(self) -> list[str]:
        """Return the tags in use on the selected entities, sorted and unique."""
        found = {
            node.value
            for _, tag_array in self._tag_arrays()
            for node in tag_array.content
            if node is not None and node.kind == Kind.SCALAR
        }
        return sorted(found)

    def remove_unknown_tags(
        self, known_tags: Iterable[str], remove_empty_tag_arrays: bool
    ) -> None:
        """Remove every tag not in ``known_tags`` from the selected entities."""
        known = set(known_tags or [])
        unknown = [tag for tag in self.list_tags() if tag not in known]
        if unknown:
            self.remove_tags(unknown, remove_empty_tag_arrays)