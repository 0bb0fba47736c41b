"""Patches that set, remove or append values on selected parts of a document.

A :class:`DeckPatch` selects nodes with JSONPath expressions and then either
updates fields on the selected objects (``obj_values`` and ``remove``) or
appends entries to the selected arrays (``arr_values``). A
:class:`DeckPatchFile` applies a list of such patches in order.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any

from .jsonpath import JsonPath, JsonPathError, compile_path
from .nodes import (
    Kind,
    Node,
    NodeKind,
    NodeTypeError,
    check_type,
    from_value,
    new_string,
)

log = logging.getLogger(__name__)

DEFAULT_SELECTOR = ("$",)


class PatchError(ValueError):
    """A patch definition is invalid or could not be applied."""


def _string_array_field(obj: Mapping[str, Any], key: str) -> list[str]:
    """Return the string entries of ``obj[key]``; missing means empty.

    Raises PatchError if the field is present but not an array.
    """
    value = obj.get(key)
    if value is None:
        return []
    if not isinstance(value, (list, tuple)):
        raise PatchError(f"field '{key}' is not an array")
    return [entry for entry in value if isinstance(entry, str)]


def _compile(sources: Iterable[str]) -> list[JsonPath]:
    compiled = []
    for source in sources:
        try:
            compiled.append(compile_path(source))
        except JsonPathError as err:
            raise PatchError(
                f"selector '{source}' is not a valid JSONpath expression; {err}"
            ) from err
    return compiled


@dataclass
class DeckPatch:
    """A single patch: selectors plus the changes to make on what they select."""

    selector_sources: list[str] = field(default_factory=list)
    selectors: list[JsonPath] = field(default_factory=list)
    obj_values: dict[str, Any] = field(default_factory=dict)
    arr_values: list[Any] = field(default_factory=list)
    remove: list[str] = field(default_factory=list)

    @classmethod
    def parse(cls, obj: Mapping[str, Any], bread_crumb: str) -> DeckPatch:
        """Build a patch from its JSON object form.

        ``selectors`` defaults to ``["$"]``, ``values`` may be an object or an
        array, and ``remove`` is a list of keys; ``bread_crumb`` prefixes error
        messages.
        """
        try:
            selector_sources = _string_array_field(obj, "selectors")
        except PatchError:
            raise PatchError(f"{bread_crumb}.selectors is not a string-array") from None
        if obj.get("selectors") is None:
            log.info(
                "No selectors specified for %s.selectors, defaulting to %s",
                bread_crumb,
                list(DEFAULT_SELECTOR),
            )
            selector_sources = list(DEFAULT_SELECTOR)

        selectors = []
        for idx, source in enumerate(selector_sources):
            try:
                selectors.append(compile_path(source))
            except JsonPathError as err:
                raise PatchError(
                    f"{bread_crumb}.selectors[{idx}] is not a valid JSONpath "
                    f"expression; {err}"
                ) from err

        values = obj.get("values")
        obj_values: dict[str, Any] = {}
        arr_values: list[Any] = []
        if isinstance(values, Mapping):
            obj_values = dict(values)
        elif isinstance(values, (list, tuple)):
            arr_values = list(values)
        elif values is not None:
            raise PatchError(f"{bread_crumb}.values is neither an object nor an array")

        try:
            remove = _string_array_field(obj, "remove")
        except PatchError:
            raise PatchError(f"{bread_crumb}.remove is not an array") from None

        for key in remove:
            if key in obj_values:
                raise PatchError(
                    f"{bread_crumb} is trying to change and remove '{key}' at the same time"
                )

        return cls(
            selector_sources=selector_sources,
            selectors=selectors,
            obj_values=obj_values,
            arr_values=arr_values,
            remove=remove,
        )

    def apply_to_object_node(self, node: Node) -> None:
        """Set, replace and remove fields on an object node."""
        if node is None or node.kind != Kind.MAPPING:
            raise NodeTypeError("expected node to be a mapping node/object")

        to_remove = set(self.remove)
        handled: set[str] = set()
        updated: list[Node] = []
        for key_node, value_node in zip(node.content[::2], node.content[1::2]):
            key = key_node.value if key_node is not None else None
            if key in self.obj_values:
                value_node = from_value(self.obj_values[key])
                handled.add(key)
            if key in to_remove:
                continue
            updated.extend((key_node, value_node))
        node.content[:] = updated

        for name, value in self.obj_values.items():
            if name not in handled:
                node.content.extend((new_string(name), from_value(value)))

    def apply_to_array_node(self, node: Node) -> None:
        """Append the array values to an array node."""
        if node is None or node.kind != Kind.SEQUENCE:
            raise NodeTypeError("expected node to be a sequence node/array")
        node.content.extend(from_value(value) for value in self.arr_values)

    def apply_to_nodes(self, yaml_data: Node) -> None:
        """Apply the patch to every node the selectors find.

        When array values are set only arrays are patched, otherwise only
        objects; other nodes are skipped.
        """
        if not self.obj_values and not self.remove and not self.arr_values:
            return

        if not self.selector_sources:
            log.info("Patch has no selectors specified")

        if not self.selectors:
            self.selectors = _compile(self.selector_sources)

        nodes: list[Node] = []
        for selector in self.selectors:
            nodes.extend(selector.find(yaml_data))

        for node in nodes:
            if self.arr_values:
                try:
                    check_type(node, NodeKind.ARRAY)
                except NodeTypeError as err:
                    log.info("Skipping non-array node: %s", err)
                    continue
                self.apply_to_array_node(node)
            else:
                try:
                    check_type(node, NodeKind.OBJECT)
                except NodeTypeError as err:
                    log.info("Skipping non-object node: %s", err)
                    continue
                self.apply_to_object_node(node)


@dataclass
class DeckPatchFile:
    """A versioned list of patches."""

    version_major: int = 0
    version_minor: int = 0
    patches: list[DeckPatch] = field(default_factory=list)

    def apply(self, yaml_data: Node) -> None:
        """Apply all patches in order."""
        for idx, patch in enumerate(self.patches):
            try:
                patch.apply_to_nodes(yaml_data)
            except (PatchError, JsonPathError) as err:
                raise PatchError(f"failed to apply patch {idx}; {err}") from err

    def must_apply(self, yaml_data: Node, source: str) -> None:
        """Apply all patches, naming ``source`` in the error if one fails."""
        try:
            self.apply(yaml_data)
        except PatchError as err:
            raise PatchError(f"failed to apply patchfile '{source}'; {err}") from err


def validate_values_flags(
    values: Iterable[str],
) -> tuple[dict[str, Any], list[str], list[Any]]:
    """Parse ``--value`` flags into (values to set, keys to remove, entries to append).

    ``key:json`` sets a key, ``key:`` removes it, and ``[ ... ]`` appends the
    array's entries to selected arrays. String values must be JSON-quoted.
    """
    values_map: dict[str, Any] = {}
    remove: list[str] = []
    append_values: list[Any] = []

    for content in values:
        stripped = content.strip()
        if stripped.startswith("[") and stripped.endswith("]"):
            try:
                parsed = json.loads(content)
            except ValueError:
                raise PatchError(
                    "expected '--value' entry to be a valid json array "
                    "'[ entry1, entry2, ... ]', "
                    f"failed parsing json-string in '{content}'"
                ) from None
            log.debug("parsed patch-instruction, array %r", parsed)
            append_values.extend(parsed)
            continue

        key, sep, raw = content.partition(":")
        if not sep:
            raise PatchError(
                "expected '--value' entry to have format 'key:json-string', "
                f"or '[ json-array ], got: '{content}'"
            )
        raw = raw.strip()
        if not raw:
            log.debug("parsed delete-instruction, key %r", key)
            remove.append(key)
            continue
        try:
            value = json.loads(raw)
        except ValueError:
            raise PatchError(
                "expected '--value' entry to have format 'key:json-string', "
                f"failed parsing json-string in '{content}' "
                "(did you forget to wrap a json-string-value in quotes?)"
            ) from None
        log.debug("parsed patch-instruction, key %r value %r", key, value)
        values_map[key] = value

    return values_map, remove, append_values